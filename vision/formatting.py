"""
Discord presentation for Rekognition results.

Turns AnalysisReport-style results and ComparisonResults into bounded
embeds, and every VisionError into the message the user sees. This is
the only place results get trimmed (top 8 labels, 5 text lines, first
face, 3 celebrities); the JSON report attached next to the embed keeps
everything.
"""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from interactions import Embed

from common.models import ComparisonResult, FeatureResult
from .errors import ErrorKind, VisionError

AWS_ORANGE = 0xFF9900
FOOTER_TEXT = "Powered by AWS Rekognition"

# Discord caps embed field values at 1024 characters
FIELD_LIMIT = 1024

TOP_LABELS = 8
TOP_TEXT_LINES = 5
TOP_CELEBRITIES = 3
TOP_MODERATION = 5

FEATURE_TITLES = {
    "labels": "Labels & Objects",
    "text": "Text Detection",
    "faces": "Face Analysis",
    "moderation": "Content Moderation",
    "celebrities": "Celebrity Recognition",
}


def _truncate(text: str, limit: int = FIELD_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 4].rstrip() + "\n..."


def _ok_data(results: Mapping[str, FeatureResult], feature: str) -> Optional[Mapping[str, Any]]:
    result = results.get(feature)
    if result is None or not result.ok:
        return None
    return result.data


# ============== FIELD BUILDERS ==============

def format_labels(data: Mapping[str, Any]) -> str:
    labels = sorted(data.get("Labels", []), key=lambda l: l.get("Confidence", 0), reverse=True)
    lines = [f"• {l['Name']} ({l.get('Confidence', 0):.1f}%)" for l in labels[:TOP_LABELS]]
    return "\n".join(lines) or "No labels detected"


def format_text(data: Mapping[str, Any]) -> str:
    text_lines = [t for t in data.get("TextDetections", []) if t.get("Type") == "LINE"]
    body = "\n".join(f"• {t['DetectedText']}" for t in text_lines[:TOP_TEXT_LINES])
    if not body:
        return "No text detected"
    body = body[:1020]
    if len(text_lines) > TOP_TEXT_LINES:
        body += "\n..."
    return body


def format_face(face: Mapping[str, Any]) -> str:
    """Gender, age range and strongest emotion of one FaceDetail."""
    info = []
    gender = face.get("Gender")
    if gender:
        info.append(f"Gender: {gender['Value']} ({gender.get('Confidence', 0):.1f}%)")
    age = face.get("AgeRange")
    if age:
        info.append(f"Age: {age.get('Low')}-{age.get('High')}")
    emotions = face.get("Emotions") or []
    if emotions:
        top = max(emotions, key=lambda e: e.get("Confidence", 0))
        info.append(f"Emotion: {top['Type']} ({top.get('Confidence', 0):.1f}%)")
    return "\n".join(info) or "Face detected"


def format_celebrities(data: Mapping[str, Any]) -> str:
    celebs = data.get("CelebrityFaces", [])[:TOP_CELEBRITIES]
    return "\n".join(f"• {c['Name']} ({c.get('MatchConfidence', 0):.1f}%)" for c in celebs)


def format_moderation(data: Mapping[str, Any]) -> str:
    labels = data.get("ModerationLabels", [])[:TOP_MODERATION]
    return "\n".join(f"• {l['Name']} ({l.get('Confidence', 0):.1f}%)" for l in labels)


# ============== EMBEDS ==============

def analysis_embed(
        results: Mapping[str, FeatureResult],
        source: str,
        thumbnail_name: Optional[str] = None,
) -> Embed:
    """
    Summary embed for /rekognition analyze.

    Args:
        results: {feature name: FeatureResult} from run_analyses()
        source: Image description shown at the top
        thumbnail_name: File name of the re-attached image, if any
    """
    embed = Embed(
        title="🔍 AWS Rekognition Analysis",
        description=f"**Image:** {source}",
        color=AWS_ORANGE,
        timestamp=datetime.now(timezone.utc),
    )
    embed.set_footer(text=FOOTER_TEXT)
    if thumbnail_name:
        embed.set_thumbnail(url=f"attachment://{thumbnail_name}")

    labels = _ok_data(results, "labels")
    if labels is not None:
        embed.add_field(name="🏷️ Objects & Scenes", value=_truncate(format_labels(labels)), inline=True)

    text = _ok_data(results, "text")
    if text is not None:
        embed.add_field(name="📝 Detected Text", value=_truncate(format_text(text)), inline=True)

    faces = _ok_data(results, "faces")
    if faces is not None and faces.get("FaceDetails"):
        details = faces["FaceDetails"]
        embed.add_field(
            name=f"👤 Faces ({len(details)})",
            value=_truncate(format_face(details[0])),
            inline=False,
        )

    celebrities = _ok_data(results, "celebrities")
    if celebrities is not None and celebrities.get("CelebrityFaces"):
        embed.add_field(name="🌟 Celebrities", value=_truncate(format_celebrities(celebrities)), inline=False)

    moderation = _ok_data(results, "moderation")
    if moderation is not None and moderation.get("ModerationLabels"):
        embed.add_field(name="⚠️ Content Moderation", value=_truncate(format_moderation(moderation)), inline=False)

    failed = [r for r in results.values() if not r.ok]
    if failed:
        lines = [
            f"• {FEATURE_TITLES.get(r.feature, r.feature)}: {r.error}"
            for r in failed
        ]
        embed.add_field(name="❗ Failed Features", value=_truncate("\n".join(lines)), inline=False)

    return embed


def comparison_embed(
        result: ComparisonResult,
        source: str,
        target: str,
        threshold_percent: float,
) -> Embed:
    embed = Embed(
        title="👥 Face Comparison Results",
        description=(
            f"**Similarity Threshold:** {threshold_percent:g}%\n"
            f"**Source:** {source}\n"
            f"**Target:** {target}"
        ),
        color=AWS_ORANGE,
        timestamp=datetime.now(timezone.utc),
    )
    embed.set_footer(text=FOOTER_TEXT)

    if result.matched_faces:
        lines = [
            f"Match {i}: {m.similarity:.1f}% similarity"
            for i, m in enumerate(result.matched_faces, 1)
        ]
        embed.add_field(
            name=f"✅ Matched Faces ({len(result.matched_faces)})",
            value=_truncate("\n".join(lines)),
            inline=False,
        )
    else:
        embed.add_field(
            name="❌ No Matches Found",
            value=f"No faces matched above the {threshold_percent:g}% threshold.",
            inline=False,
        )

    if result.unmatched_face_count:
        embed.add_field(
            name=f"ℹ️ Additional Faces ({result.unmatched_face_count})",
            value=f"{result.unmatched_face_count} faces in target image did not match.",
            inline=False,
        )

    return embed


# ============== USER-FACING ERRORS ==============

ERROR_MESSAGES = {
    ErrorKind.CONFIGURATION: (
        "❌ **AWS Configuration Error**\n"
        "AWS credentials are not configured. Please set the following environment variables:\n"
        "• `AWS_ACCESS_KEY_ID`\n"
        "• `AWS_SECRET_ACCESS_KEY`\n"
        "• `AWS_REGION` (optional, defaults to us-east-1)"
    ),
    ErrorKind.NO_FACE_DETECTED: (
        "👤 **No Faces Detected**\n"
        "No faces were found in one or both images. Please use images with clearly visible faces."
    ),
    ErrorKind.INVALID_IMAGE_FORMAT: "🖼️ **Invalid Image Format**\nPlease use JPEG or PNG format.",
    ErrorKind.IMAGE_TOO_LARGE: "📏 **Image Too Large**\nMaximum size: 5MB for JPEG, 8MB for PNG.",
    ErrorKind.ACCESS_DENIED: "🔐 **Access Denied**\nPlease check your AWS credentials and permissions.",
    ErrorKind.THROTTLED: "⏳ **Rekognition is busy**\nToo many requests right now, please try again in a moment.",
}

# Kinds whose own message is the most useful thing to show
_MESSAGE_PREFIXES = {
    ErrorKind.INVALID_INPUT: "📷 **Invalid Input**\n",
    ErrorKind.TOO_LARGE: "📏 **Image Too Large**\n",
    ErrorKind.DOWNLOAD_FAILED: "🌐 **Download Failed**\n",
    ErrorKind.TIMEOUT: "⏱️ **Timed Out**\n",
}


def user_error_message(error: BaseException) -> str:
    """Message shown to the user for any failure of a /rekognition command."""
    if isinstance(error, VisionError):
        if error.kind in ERROR_MESSAGES:
            return ERROR_MESSAGES[error.kind]
        if error.kind in _MESSAGE_PREFIXES:
            suffix = "\nPlease try again." if error.kind in (ErrorKind.DOWNLOAD_FAILED, ErrorKind.TIMEOUT) else ""
            return f"{_MESSAGE_PREFIXES[error.kind]}{error.message}{suffix}"
    text = str(error)
    if text:
        return f"❌ **Error:** {text}"
    return "❌ **An error occurred while processing your request.**"
