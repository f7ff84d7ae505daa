import json
from datetime import datetime, timezone

from common.models import ComparisonResult, FeatureResult, ReportMetadata
from vision.reports import (
    ANALYSIS_REPORT_TYPE,
    COMPARISON_REPORT_TYPE,
    build_analysis_report,
    build_comparison_report,
    build_report,
    parse_report,
    save_report,
)

STAMP = datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)


def sample_results():
    return {
        "labels": FeatureResult.success("labels", {"Labels": [{"Name": "Cat", "Confidence": 98.1}]}),
        "text": FeatureResult.failure("text", "Request has invalid image format", "invalid_image_format"),
        "faces": FeatureResult.success("faces", {"FaceDetails": []}),
    }


def test_report_round_trip_keeps_keys_and_tagging():
    results = sample_results()
    document = build_analysis_report(results, "https://example.com/cat.png", timestamp=STAMP)

    parsed = parse_report(json.dumps(document))

    assert set(parsed.results) == set(results)
    for name, original in results.items():
        assert parsed.results[name].ok == original.ok
        assert parsed.results[name] == original
    assert parsed.metadata.source == "https://example.com/cat.png"
    assert parsed.metadata.kind == ANALYSIS_REPORT_TYPE
    assert parsed.metadata.timestamp == STAMP
    assert parsed.failed == ("text",)


def test_report_keeps_full_payload():
    labels = [{"Name": f"Label {i}", "Confidence": 90.0 - i} for i in range(30)]
    results = {"labels": FeatureResult.success("labels", {"Labels": labels})}
    document = build_report(results, ReportMetadata(source="x", kind=ANALYSIS_REPORT_TYPE))

    assert document["results"]["labels"]["data"]["Labels"] == labels


def test_failure_record_shape():
    document = build_analysis_report(sample_results(), "src", timestamp=STAMP)
    assert document["results"]["text"] == {
        "status": "error",
        "feature": "text",
        "error": "Request has invalid image format",
        "kind": "invalid_image_format",
    }
    assert document["meta"] == {
        "timestamp": "2026-03-01T12:30:00+00:00",
        "source": "src",
        "analysisType": ANALYSIS_REPORT_TYPE,
    }


def test_comparison_report():
    result = ComparisonResult.from_response({
        "SourceImageFace": {"Confidence": 99.1},
        "FaceMatches": [
            {"Similarity": 85.0, "Face": {"Confidence": 99.0}},
            {"Similarity": 97.5, "Face": {"Confidence": 98.0}},
        ],
        "UnmatchedFaces": [{}],
    })
    document = build_comparison_report(result, "a.png", "b.png", 80.0, timestamp=STAMP)

    assert document["meta"]["analysisType"] == COMPARISON_REPORT_TYPE
    assert document["meta"]["target"] == "b.png"
    assert document["meta"]["similarityThreshold"] == 80.0
    assert [m["similarity"] for m in document["results"]["matchedFaces"]] == [97.5, 85.0]
    assert document["results"]["unmatchedFaceCount"] == 1


def test_save_report_writes_unique_json_files(tmp_path):
    document = build_analysis_report(sample_results(), "src", timestamp=STAMP)

    first = save_report(document, "analysis", tmp_path)
    second = save_report(document, "analysis", tmp_path)

    assert first != second
    assert first.parent == tmp_path
    assert first.name.startswith("analysis_") and first.suffix == ".json"
    with open(first, encoding="utf-8") as f:
        assert json.load(f) == json.loads(json.dumps(document))
