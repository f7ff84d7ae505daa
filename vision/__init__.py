# vision/__init__.py
"""
Rekognition image pipeline for the Discord bot.

All detection happens remotely in AWS Rekognition; this package only
moves images in and results out:

  acquisition.py  - download URL / attachment, validate, temp copy
  rekognition.py  - async wrapper over the boto3 client
  analysis.py     - concurrent multi-feature fan-out + face comparison
  reports.py      - JSON report documents and their persistence
  formatting.py   - Discord embeds and user-facing error text
  errors.py       - error kinds and remote error classification

Main entry points:
  run_analyses()   - one image, N features, one result per feature
  compare_faces()  - source vs target face similarity
"""
from .analysis import Feature, compare_faces, normalize_threshold, parse_features, run_analyses
from .errors import ErrorKind, NoFaceDetected, VisionError
from .rekognition import RekognitionClient

__all__ = [
    'Feature',
    'compare_faces',
    'normalize_threshold',
    'parse_features',
    'run_analyses',
    'ErrorKind',
    'NoFaceDetected',
    'VisionError',
    'RekognitionClient',
]
