"""
Speech generation layer.

    - model.py: SpeechModel capability and the Gemini implementation
    - pipeline.py: Mode dispatch and the generation state machine
    - voices.py: Prebuilt voice catalog
    - cache.py: Voice preview cache
"""
