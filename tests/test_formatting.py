import pytest

from common.models import ComparisonResult, FeatureResult
from conftest import SAMPLE_RESPONSES
from vision.errors import (
    ConfigurationError,
    DownloadTimeout,
    ErrorKind,
    InvalidInput,
    NoFaceDetected,
    RemoteServiceError,
)
from vision.formatting import (
    analysis_embed,
    comparison_embed,
    format_face,
    format_labels,
    format_text,
    user_error_message,
)


def fields_by_name(embed):
    return {field.name: field.value for field in embed.fields}


def full_results():
    methods = {
        "labels": "detect_labels",
        "text": "detect_text",
        "faces": "detect_faces",
        "moderation": "detect_moderation_labels",
        "celebrities": "recognize_celebrities",
    }
    return {name: FeatureResult.success(name, SAMPLE_RESPONSES[m]) for name, m in methods.items()}


def test_labels_sorted_and_capped():
    labels = [{"Name": f"L{i}", "Confidence": float(i)} for i in range(20)]
    lines = format_labels({"Labels": labels}).splitlines()

    assert len(lines) == 8
    assert lines[0] == "• L19 (19.0%)"


def test_text_only_lines_with_ellipsis():
    detections = [{"DetectedText": f"line {i}", "Type": "LINE"} for i in range(7)]
    detections.append({"DetectedText": "word", "Type": "WORD"})
    body = format_text({"TextDetections": detections})

    assert body.splitlines()[:5] == [f"• line {i}" for i in range(5)]
    assert body.endswith("\n...")
    assert "word" not in body
    assert format_text({"TextDetections": []}) == "No text detected"


def test_face_summary_uses_top_emotion():
    face = SAMPLE_RESPONSES["detect_faces"]["FaceDetails"][0]
    assert format_face(face) == "Gender: Female (99.5%)\nAge: 24-32\nEmotion: HAPPY (85.3%)"


def test_analysis_embed_fields():
    embed = analysis_embed(full_results(), "https://example.com/cat.png", thumbnail_name="image_ab12.png")
    fields = fields_by_name(embed)

    assert embed.title == "🔍 AWS Rekognition Analysis"
    assert "https://example.com/cat.png" in embed.description
    assert embed.thumbnail.url == "attachment://image_ab12.png"
    assert fields["🏷️ Objects & Scenes"].splitlines()[0] == "• Animal (99.2%)"
    assert fields["📝 Detected Text"] == "• HELLO WORLD"
    assert "👤 Faces (1)" in fields
    assert fields["🌟 Celebrities"] == "• Jane Example (96.0%)"
    # No moderation labels -> no moderation field
    assert "⚠️ Content Moderation" not in fields
    assert "❗ Failed Features" not in fields


def test_analysis_embed_lists_failed_features():
    results = full_results()
    results["text"] = FeatureResult.failure("text", "Rate exceeded", ErrorKind.THROTTLED.value)
    fields = fields_by_name(analysis_embed(results, "src"))

    assert "📝 Detected Text" not in fields
    assert fields["❗ Failed Features"] == "• Text Detection: Rate exceeded"


def test_field_values_are_truncated():
    labels = [{"Name": "x" * 300, "Confidence": 50.0} for _ in range(8)]
    results = {"labels": FeatureResult.success("labels", {"Labels": labels})}
    value = fields_by_name(analysis_embed(results, "src"))["🏷️ Objects & Scenes"]

    assert len(value) <= 1024
    assert value.endswith("...")


def test_comparison_embed_matches():
    result = ComparisonResult.from_response({
        "FaceMatches": [{"Similarity": 91.4}],
        "UnmatchedFaces": [{}, {}],
    })
    fields = fields_by_name(comparison_embed(result, "a.png", "b.png", 80))

    assert fields["✅ Matched Faces (1)"] == "Match 1: 91.4% similarity"
    assert fields["ℹ️ Additional Faces (2)"] == "2 faces in target image did not match."


def test_comparison_embed_no_match():
    embed = comparison_embed(ComparisonResult(), "a.png", "b.png", 75)
    fields = fields_by_name(embed)

    assert fields["❌ No Matches Found"] == "No faces matched above the 75% threshold."
    assert "**Similarity Threshold:** 75%" in embed.description


@pytest.mark.parametrize("error, expected", [
    (ConfigurationError("missing"), "AWS Configuration Error"),
    (NoFaceDetected("Request has invalid parameters"), "No Faces Detected"),
    (RemoteServiceError("bad", kind=ErrorKind.INVALID_IMAGE_FORMAT), "Please use JPEG or PNG format."),
    (RemoteServiceError("bad", kind=ErrorKind.ACCESS_DENIED), "Access Denied"),
    (InvalidInput("Invalid URL."), "Invalid URL."),
    (DownloadTimeout("Timeout while downloading image."), "Please try again."),
    (RemoteServiceError("Internal failure", code="InternalServerError"), "❌ **Error:** Internal failure"),
    (RuntimeError("kaboom"), "❌ **Error:** kaboom"),
    (RuntimeError(), "An error occurred"),
])
def test_user_error_message(error, expected):
    assert expected in user_error_message(error)
