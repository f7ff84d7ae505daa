"""
Shared data models for the Rekognition pipeline.

These dataclasses are the typed contracts passed between acquisition,
analysis, reporting and presentation. All of them are frozen: they are
built once per request and never mutated afterwards.

Usage:
    from common.models import ImageInput, FeatureResult

    image = ImageInput(data=raw_bytes, source="https://example.com/cat.png")
    ok = FeatureResult.success("labels", {"Labels": [...]})
    failed = FeatureResult.failure("text", "Request has invalid image format")
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ImageInput:
    """
    One image ready to send to Rekognition.

    `source` is what gets shown to the user and written to reports:
    the URL for downloaded images, "uploaded image (name.png)" for
    Discord attachments.
    """
    data: bytes
    source: str
    content_type: Optional[str] = None
    # Temp copy on disk, if one was written (swept by common.tempfiles)
    path: Optional[Path] = None

    @property
    def size(self) -> int:
        return len(self.data)

    def __repr__(self):
        return f"ImageInput(source={self.source!r}, size={self.size})"


@dataclass(frozen=True)
class FeatureResult:
    """
    Outcome of a single feature call: either the remote payload or an
    error record, never both.
    """
    feature: str
    data: Optional[Mapping[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def __post_init__(self):
        if (self.data is None) == (self.error is None):
            raise ValueError("FeatureResult needs exactly one of data or error")

    @classmethod
    def success(cls, feature: str, data: Mapping[str, Any]) -> "FeatureResult":
        return cls(feature=feature, data=data)

    @classmethod
    def failure(cls, feature: str, error: str, error_kind: Optional[str] = None) -> "FeatureResult":
        return cls(feature=feature, error=error or "unknown error", error_kind=error_kind)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"status": "ok", "data": self.data}
        return {
            "status": "error",
            "feature": self.feature,
            "error": self.error,
            "kind": self.error_kind,
        }

    @classmethod
    def from_dict(cls, feature: str, payload: Mapping[str, Any]) -> "FeatureResult":
        if payload.get("status") == "ok":
            return cls.success(feature, payload.get("data") or {})
        return cls.failure(
            payload.get("feature", feature),
            payload.get("error", ""),
            payload.get("kind"),
        )


@dataclass(frozen=True)
class ReportMetadata:
    source: str
    kind: str
    target: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        meta = {
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "analysisType": self.kind,
        }
        if self.target is not None:
            meta["target"] = self.target
        return meta

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ReportMetadata":
        return cls(
            source=payload["source"],
            kind=payload["analysisType"],
            target=payload.get("target"),
            timestamp=datetime.fromisoformat(payload["timestamp"]),
        )


@dataclass(frozen=True)
class AnalysisReport:
    """Metadata plus one FeatureResult per requested feature."""
    metadata: ReportMetadata
    results: Mapping[str, FeatureResult]

    def __post_init__(self):
        # Freeze the mapping too, the report is the audit artifact
        object.__setattr__(self, "results", MappingProxyType(dict(self.results)))

    @property
    def failed(self) -> Tuple[str, ...]:
        return tuple(name for name, result in self.results.items() if not result.ok)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.metadata.to_dict(),
            "results": {name: result.to_dict() for name, result in self.results.items()},
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AnalysisReport":
        return cls(
            metadata=ReportMetadata.from_dict(payload["meta"]),
            results={
                name: FeatureResult.from_dict(name, result)
                for name, result in payload["results"].items()
            },
        )


@dataclass(frozen=True)
class MatchedFace:
    similarity: float
    confidence: Optional[float] = None
    bounding_box: Optional[Mapping[str, float]] = None


@dataclass(frozen=True)
class ComparisonResult:
    """
    Result of one CompareFaces call. Matches are ordered by similarity,
    highest first. `raw` keeps the full service response for the report.
    """
    matched_faces: Tuple[MatchedFace, ...] = ()
    unmatched_face_count: int = 0
    source_face_confidence: Optional[float] = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @property
    def matched(self) -> bool:
        return bool(self.matched_faces)

    @property
    def best_similarity(self) -> Optional[float]:
        return self.matched_faces[0].similarity if self.matched_faces else None

    @classmethod
    def from_response(cls, response: Mapping[str, Any]) -> "ComparisonResult":
        matches = []
        for match in response.get("FaceMatches", []):
            face = match.get("Face", {})
            matches.append(MatchedFace(
                similarity=float(match.get("Similarity", 0.0)),
                confidence=face.get("Confidence"),
                bounding_box=face.get("BoundingBox"),
            ))
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return cls(
            matched_faces=tuple(matches),
            unmatched_face_count=len(response.get("UnmatchedFaces", [])),
            source_face_confidence=response.get("SourceImageFace", {}).get("Confidence"),
            raw=dict(response),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matchedFaces": [
                {
                    "similarity": m.similarity,
                    "confidence": m.confidence,
                    "boundingBox": dict(m.bounding_box) if m.bounding_box else None,
                }
                for m in self.matched_faces
            ],
            "unmatchedFaceCount": self.unmatched_face_count,
            "sourceFaceConfidence": self.source_face_confidence,
            "response": dict(self.raw),
        }
