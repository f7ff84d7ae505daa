"""
JSON reports attached to every /rekognition reply.

The builders are pure: they turn results + metadata into a plain,
json-serializable dict and never touch the disk. save_report() is the
persistence side and writes that dict into the temp directory.

Reports are the audit artifact, so nothing is summarized here: every
feature keeps its full Rekognition payload or its error record. Top-N
trimming belongs to vision.formatting.

Report shape:
    {
        "meta": {"timestamp": ..., "source": ..., "analysisType": ...},
        "results": {
            "labels": {"status": "ok", "data": {...}},
            "text": {"status": "error", "feature": "text", "error": "...", "kind": "..."}
        }
    }
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from common.models import AnalysisReport, ComparisonResult, FeatureResult, ReportMetadata
from common.tempfiles import ensure_temp_dir, unique_name

logger = logging.getLogger("Vision.Reports")

ANALYSIS_REPORT_TYPE = "comprehensive_image_analysis"
COMPARISON_REPORT_TYPE = "face_comparison"


def build_report(results: Mapping[str, FeatureResult], metadata: ReportMetadata) -> Dict[str, Any]:
    """Wrap per-feature results and metadata into a report document."""
    return AnalysisReport(metadata=metadata, results=results).to_dict()


def build_analysis_report(
        results: Mapping[str, FeatureResult],
        source: str,
        timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    meta_kwargs = {"source": source, "kind": ANALYSIS_REPORT_TYPE}
    if timestamp is not None:
        meta_kwargs["timestamp"] = timestamp
    return build_report(results, ReportMetadata(**meta_kwargs))


def build_comparison_report(
        result: ComparisonResult,
        source: str,
        target: str,
        threshold_percent: Optional[float] = None,
        timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    meta_kwargs = {"source": source, "target": target, "kind": COMPARISON_REPORT_TYPE}
    if timestamp is not None:
        meta_kwargs["timestamp"] = timestamp
    meta = ReportMetadata(**meta_kwargs).to_dict()
    if threshold_percent is not None:
        meta["similarityThreshold"] = threshold_percent
    return {"meta": meta, "results": result.to_dict()}


def parse_report(document: Union[str, Mapping[str, Any]]) -> AnalysisReport:
    """Load an analysis report back from its JSON text or dict form."""
    if isinstance(document, str):
        document = json.loads(document)
    return AnalysisReport.from_dict(document)


def save_report(
        document: Mapping[str, Any],
        filename_hint: str,
        directory: Union[str, Path, None] = None,
) -> Path:
    """
    Write a report as indented UTF-8 JSON.

    Args:
        document: Output of one of the build_* functions
        filename_hint: Name stem, e.g. "analysis" -> analysis_<hex>.json
        directory: Target directory, defaults to TEMP_DIR

    Returns:
        Path of the written file (swept later by common.tempfiles).
    """
    target_dir = ensure_temp_dir(directory)
    path = target_dir / unique_name(filename_hint, ".json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, ensure_ascii=False, default=str)

    logger.debug(f"Saved report {path.name}")
    return path
