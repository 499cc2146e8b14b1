"""
FastAPI layer for voxai.

    - routes.py: Generation, account, voice, history, health and metrics endpoints
    - auth.py: Login, callback, preview login and logout
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
