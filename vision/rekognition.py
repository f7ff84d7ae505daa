"""
AWS Rekognition client wrapper.

Thin async layer over the boto3 Rekognition client. boto3 is blocking,
so every call runs in a worker thread via asyncio.to_thread() to keep
the Discord event loop free. Any exception the SDK raises is passed
through vision.errors.classify_remote_error() so callers only ever see
VisionError subclasses.

The client is constructed and passed in explicitly (no module-level
singleton), which is what lets the tests swap in a fake:

    from common.config import load_rekognition_settings
    from vision.rekognition import RekognitionClient

    client = RekognitionClient.from_settings(load_rekognition_settings())
    labels = await client.detect_labels(image_bytes)
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config

from common.config import RekognitionSettings
from .errors import classify_remote_error

logger = logging.getLogger("Vision.Rekognition")

# Request parameters sent with every call
LABELS_MAX = 50
LABELS_MIN_CONFIDENCE = 70
MODERATION_MIN_CONFIDENCE = 50
FACE_ATTRIBUTES = ["ALL"]


def _strip_metadata(response: Dict[str, Any]) -> Dict[str, Any]:
    """Drop the HTTP envelope boto3 attaches to every response."""
    return {k: v for k, v in response.items() if k != "ResponseMetadata"}


class RekognitionClient:
    """
    Async facade over a boto3 "rekognition" client.

    Each public coroutine maps 1:1 to a Rekognition operation and returns
    the service response as a plain dict. Retries are left to botocore's
    standard retry mode configured in from_settings().
    """

    def __init__(self, boto_client):
        self._client = boto_client

    @classmethod
    def from_settings(cls, settings: RekognitionSettings) -> "RekognitionClient":
        config = Config(
            region_name=settings.region,
            retries={"max_attempts": settings.max_attempts, "mode": "standard"},
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
        )
        boto_client = boto3.client(
            "rekognition",
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            aws_session_token=settings.session_token,
            region_name=settings.region,
            config=config,
        )
        logger.info(f"Rekognition client ready (region={settings.region})")
        return cls(boto_client)

    # ============== SYNC CALLS (run in worker threads) ==============

    def _call(self, operation: str, **params) -> Dict[str, Any]:
        """
        Invoke one boto3 operation synchronously.

        Args:
            operation: Rekognition operation name, e.g. "DetectLabels"
            params: Request parameters for that operation

        Raises:
            VisionError: classified from whatever botocore raised
        """
        method = getattr(self._client, _snake_case(operation))
        try:
            response = method(**params)
        except Exception as e:
            error = classify_remote_error(e, operation)
            logger.debug(f"{operation} failed: {error.kind.value}: {error}")
            raise error from e
        return _strip_metadata(response)

    async def _call_async(self, operation: str, **params) -> Dict[str, Any]:
        return await asyncio.to_thread(self._call, operation, **params)

    # ============== OPERATIONS ==============

    async def detect_labels(self, image: bytes) -> Dict[str, Any]:
        return await self._call_async(
            "DetectLabels",
            Image={"Bytes": image},
            MaxLabels=LABELS_MAX,
            MinConfidence=LABELS_MIN_CONFIDENCE,
        )

    async def detect_text(self, image: bytes) -> Dict[str, Any]:
        return await self._call_async("DetectText", Image={"Bytes": image})

    async def detect_faces(self, image: bytes) -> Dict[str, Any]:
        return await self._call_async(
            "DetectFaces", Image={"Bytes": image}, Attributes=FACE_ATTRIBUTES
        )

    async def detect_moderation_labels(self, image: bytes) -> Dict[str, Any]:
        return await self._call_async(
            "DetectModerationLabels",
            Image={"Bytes": image},
            MinConfidence=MODERATION_MIN_CONFIDENCE,
        )

    async def recognize_celebrities(self, image: bytes) -> Dict[str, Any]:
        return await self._call_async("RecognizeCelebrities", Image={"Bytes": image})

    async def compare_faces(self, source: bytes, target: bytes,
                            threshold_percent: Optional[float] = None) -> Dict[str, Any]:
        """
        Args:
            source: Image holding the reference face
            target: Image to search for that face
            threshold_percent: Minimum similarity, 0-100 as the API expects
        """
        params = {
            "SourceImage": {"Bytes": source},
            "TargetImage": {"Bytes": target},
        }
        if threshold_percent is not None:
            params["SimilarityThreshold"] = float(threshold_percent)
        return await self._call_async("CompareFaces", **params)


def _snake_case(operation: str) -> str:
    """DetectModerationLabels -> detect_moderation_labels"""
    out = []
    for i, ch in enumerate(operation):
        if ch.isupper() and i:
            out.append("_")
        out.append(ch.lower())
    return "".join(out)
