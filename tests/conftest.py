import asyncio
import io

import pytest
from PIL import Image

from common.models import ImageInput
from vision.errors import NoFaceDetected, RemoteServiceError, ErrorKind


def make_image_bytes(fmt="PNG", size=(8, 8), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


SAMPLE_RESPONSES = {
    "detect_labels": {
        "Labels": [
            {"Name": "Cat", "Confidence": 98.1},
            {"Name": "Pet", "Confidence": 97.4},
            {"Name": "Animal", "Confidence": 99.2},
        ],
        "LabelModelVersion": "3.0",
    },
    "detect_text": {
        "TextDetections": [
            {"DetectedText": "HELLO WORLD", "Type": "LINE", "Confidence": 99.0},
            {"DetectedText": "HELLO", "Type": "WORD", "Confidence": 99.0},
        ],
    },
    "detect_faces": {
        "FaceDetails": [{
            "Gender": {"Value": "Female", "Confidence": 99.5},
            "AgeRange": {"Low": 24, "High": 32},
            "Emotions": [
                {"Type": "CALM", "Confidence": 12.0},
                {"Type": "HAPPY", "Confidence": 85.3},
            ],
        }],
    },
    "detect_moderation_labels": {"ModerationLabels": [], "ModerationModelVersion": "6.0"},
    "recognize_celebrities": {
        "CelebrityFaces": [{"Name": "Jane Example", "MatchConfidence": 96.0}],
        "UnrecognizedFaces": [],
    },
}


class FakeRekognition:
    """
    In-memory stand-in for RekognitionClient.

    `failures` maps method name -> exception to raise. For compare_faces
    the fake returns one match with `face_similarity` when it clears the
    requested threshold, mimicking how the service filters matches.
    """

    def __init__(self, failures=None, delays=None, face_similarity=None,
                 unmatched=0, no_face=False):
        self.failures = failures or {}
        self.delays = delays or {}
        self.face_similarity = face_similarity
        self.unmatched = unmatched
        self.no_face = no_face
        self.calls = []
        self.compare_thresholds = []

    async def _respond(self, method, image):
        self.calls.append(method)
        if method in self.delays:
            await asyncio.sleep(self.delays[method])
        if method in self.failures:
            raise self.failures[method]
        return SAMPLE_RESPONSES[method]

    async def detect_labels(self, image):
        return await self._respond("detect_labels", image)

    async def detect_text(self, image):
        return await self._respond("detect_text", image)

    async def detect_faces(self, image):
        return await self._respond("detect_faces", image)

    async def detect_moderation_labels(self, image):
        return await self._respond("detect_moderation_labels", image)

    async def recognize_celebrities(self, image):
        return await self._respond("recognize_celebrities", image)

    async def compare_faces(self, source, target, threshold_percent=None):
        self.calls.append("compare_faces")
        self.compare_thresholds.append(threshold_percent)
        if self.no_face:
            raise NoFaceDetected("Request has invalid parameters", code="InvalidParameterException",
                                 operation="CompareFaces")
        if "compare_faces" in self.failures:
            raise self.failures["compare_faces"]

        matches = []
        if self.face_similarity is not None and self.face_similarity >= (threshold_percent or 0):
            matches.append({
                "Similarity": self.face_similarity,
                "Face": {"Confidence": 99.9, "BoundingBox": {"Width": 0.2, "Height": 0.3, "Left": 0.4, "Top": 0.1}},
            })
        unmatched = [{"Confidence": 99.0} for _ in range(self.unmatched)]
        if self.face_similarity is not None and not matches:
            unmatched.append({"Confidence": 99.0})
        return {
            "SourceImageFace": {"Confidence": 99.8},
            "FaceMatches": matches,
            "UnmatchedFaces": unmatched,
        }


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG")


@pytest.fixture
def image(png_bytes):
    return ImageInput(data=png_bytes, source="https://example.com/cat.png", content_type="image/png")


@pytest.fixture
def fake_client():
    return FakeRekognition()


@pytest.fixture
def throttled():
    return RemoteServiceError("Rate exceeded", code="ThrottlingException", kind=ErrorKind.THROTTLED,
                              operation="DetectText")
