"""
Utility modules for voxai.

    - audio.py: PCM to WAV container encoding
    - text.py: Text previews for logs and history
    - timeit.py: Stage timing
"""
