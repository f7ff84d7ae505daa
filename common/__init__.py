"""
common - Shared library for the Rekognition bot.

Quick imports:
    from common.config import TEMP_DIR, load_rekognition_settings
    from common.models import ImageInput, FeatureResult, ComparisonResult
    from common.tempfiles import sweep_temp_dir
"""
