"""
Multi-feature image analysis and face comparison.

run_analyses() fans one image out to every requested Rekognition
feature at once and waits for all of them to settle. A feature that
fails never takes its siblings down: its exception is turned into a
FeatureResult failure record and the rest of the results are kept.

compare_faces() is a single CompareFaces call. It has no partial state:
either a ComparisonResult comes back or the error propagates, with the
"no face in one of the images" case surfaced as NoFaceDetected.

Usage:
    from vision.analysis import parse_features, run_analyses

    features = parse_features("all")
    results = await run_analyses(client, image, features)
    results["labels"].ok  # True / False

    python -m vision.analysis photo.jpg --features labels,text
    python -m vision.analysis a.jpg --compare b.jpg --similarity 90
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union

from common.models import ComparisonResult, FeatureResult, ImageInput
from .errors import ErrorKind, InvalidInput, VisionError

logger = logging.getLogger("Vision.Analysis")


class Feature(Enum):
    """One independently invokable Rekognition capability."""
    LABELS = "labels"
    TEXT = "text"
    FACES = "faces"
    MODERATION = "moderation"
    CELEBRITIES = "celebrities"

    @property
    def client_method(self) -> str:
        return _CLIENT_METHODS[self]


_CLIENT_METHODS = {
    Feature.LABELS: "detect_labels",
    Feature.TEXT: "detect_text",
    Feature.FACES: "detect_faces",
    Feature.MODERATION: "detect_moderation_labels",
    Feature.CELEBRITIES: "recognize_celebrities",
}

ALL_FEATURES = "all"

# Display order; results themselves are an unordered mapping
FEATURE_ORDER = tuple(Feature)


def parse_features(option: Union[str, Iterable[str], None]) -> frozenset:
    """
    Turn the slash-command "features" option into a set of Features.

    Accepts "all", a single name, or a comma/space separated list.
    Empty input means all features. Unknown names are rejected.

    Raises:
        InvalidInput: if any name isn't a known feature
    """
    if option is None:
        names = []
    elif isinstance(option, str):
        names = [n for n in re.split(r"[\s,]+", option.strip().lower()) if n]
    else:
        names = [str(n).strip().lower() for n in option if str(n).strip()]

    if not names or ALL_FEATURES in names:
        return frozenset(Feature)

    features = set()
    unknown = []
    for name in names:
        try:
            features.add(Feature(name))
        except ValueError:
            unknown.append(name)

    if unknown:
        valid = ", ".join([ALL_FEATURES] + [f.value for f in Feature])
        raise InvalidInput(f"Unknown feature(s): {', '.join(unknown)}. Choose from: {valid}")

    return frozenset(features)


def ordered(features: Iterable[Feature]) -> list:
    return [f for f in FEATURE_ORDER if f in set(features)]


# ============== ORCHESTRATOR ==============

async def _run_feature(client, feature: Feature, image: ImageInput) -> FeatureResult:
    """Run one feature, converting any failure into a FeatureResult."""
    try:
        data = await getattr(client, feature.client_method)(image.data)
    except VisionError as e:
        logger.warning(f"{feature.value} failed ({e.kind.value}): {e}")
        return FeatureResult.failure(feature.value, str(e), e.kind.value)
    except Exception as e:
        logger.warning(f"{feature.value} failed unexpectedly: {e!r}")
        return FeatureResult.failure(
            feature.value, str(e) or e.__class__.__name__, ErrorKind.UNEXPECTED.value
        )
    return FeatureResult.success(feature.value, data)


async def run_analyses(
        client,
        image: ImageInput,
        features: Iterable[Feature],
        timeout: Optional[float] = None,
) -> Dict[str, FeatureResult]:
    """
    Run every requested feature concurrently and collect all outcomes.

    Args:
        client: Object exposing the RekognitionClient coroutines
        image: Image to analyze (shared read-only by every task)
        features: Concrete features; "all" must already be expanded
        timeout: Stop waiting after this many seconds. Features still
                 running are cancelled and recorded as timeout failures.

    Returns:
        {feature name: FeatureResult}, one entry per requested feature.

    Raises:
        ValueError: on an empty feature set or a non-Feature entry.
    """
    requested = list(dict.fromkeys(features))
    if not requested:
        raise ValueError("run_analyses needs at least one feature")
    for feature in requested:
        if not isinstance(feature, Feature):
            raise ValueError(f"Expected Feature, got {feature!r} (expand 'all' first)")

    tasks = {
        feature: asyncio.create_task(
            _run_feature(client, feature, image), name=f"rekognition-{feature.value}"
        )
        for feature in requested
    }
    logger.info(f"Running {len(tasks)} feature(s) on {image.source}: "
                f"{', '.join(f.value for f in ordered(requested))}")

    try:
        done, pending = await asyncio.wait(tasks.values(), timeout=timeout)
    except asyncio.CancelledError:
        # Caller gave up: take the feature tasks down with us
        for task in tasks.values():
            task.cancel()
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        raise

    if pending:
        for task in pending:
            task.cancel()
        # Let the cancellations land so nothing is left dangling
        await asyncio.gather(*pending, return_exceptions=True)

    results = {}
    for feature, task in tasks.items():
        if task in pending:
            results[feature.value] = FeatureResult.failure(
                feature.value,
                f"Timed out after {timeout:g}s",
                ErrorKind.TIMEOUT.value,
            )
        else:
            results[feature.value] = task.result()

    failed = [name for name, r in results.items() if not r.ok]
    if failed and len(failed) < len(results):
        logger.info(f"Partial failure: {', '.join(failed)} failed, "
                    f"{len(results) - len(failed)} succeeded")
    elif failed:
        logger.warning(f"All {len(failed)} feature(s) failed for {image.source}")

    return results


# ============== FACE COMPARISON ==============

def normalize_threshold(percent: Optional[float], default: float = 80.0) -> float:
    """
    Convert a user-supplied percentage (0-100) to a 0-1 fraction.
    Out-of-range values are clamped; None uses the default.
    """
    if percent is None:
        percent = default
    percent = min(max(float(percent), 0.0), 100.0)
    return percent / 100.0


def threshold_to_percent(threshold: float) -> float:
    return round(float(threshold) * 100.0, 6)


async def compare_faces(
        client,
        source: ImageInput,
        target: ImageInput,
        threshold: float,
) -> ComparisonResult:
    """
    Compare the largest face in `source` against the faces in `target`.

    Args:
        client: Object exposing RekognitionClient.compare_faces
        source: Reference face image
        target: Image to search
        threshold: Minimum similarity as a 0-1 fraction

    Raises:
        ValueError: threshold outside [0, 1]
        NoFaceDetected: no face in the source or target image
        VisionError: any other remote failure (the whole call fails)
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be within [0, 1], got {threshold}")

    percent = threshold_to_percent(threshold)
    logger.info(f"Comparing faces: {source.source} -> {target.source} (threshold {percent:g}%)")

    response = await client.compare_faces(source.data, target.data, percent)
    result = ComparisonResult.from_response(response)

    logger.info(f"Comparison done: {len(result.matched_faces)} match(es), "
                f"{result.unmatched_face_count} unmatched")
    return result


# ============== STANDALONE CLI ==============

def _load_local_image(path: str) -> ImageInput:
    from pathlib import Path
    from .acquisition import validate_image_bytes

    file_path = Path(path)
    data = file_path.read_bytes()
    content_type = validate_image_bytes(data)
    return ImageInput(data=data, source=f"local file ({file_path.name})", content_type=content_type)


def main(argv: Optional[Sequence[str]] = None):
    """CLI entry point for running the pipeline on local files."""
    import argparse
    import json
    import sys
    import time
    from pathlib import Path

    from common.config import DEFAULT_SIMILARITY, load_rekognition_settings
    from common.logger import get_logger
    from .rekognition import RekognitionClient
    from .reports import build_analysis_report, build_comparison_report

    parser = argparse.ArgumentParser(
        description="Run AWS Rekognition analysis on local images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m vision.analysis photo.jpg                        # all features
  python -m vision.analysis photo.jpg --features labels,text
  python -m vision.analysis a.jpg --compare b.jpg --similarity 90
        """
    )
    parser.add_argument("image", help="Image file to analyze (source face when comparing)")
    parser.add_argument("--features", default=ALL_FEATURES,
                        help="Comma separated features or 'all'")
    parser.add_argument("--compare", metavar="TARGET", help="Compare faces against this image")
    parser.add_argument("--similarity", type=float, default=DEFAULT_SIMILARITY,
                        help="Similarity threshold in percent (default: %(default)s)")
    parser.add_argument("--json", action="store_true", help="Print the full JSON report")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show timing and debug logs")
    args = parser.parse_args(argv)

    log = get_logger("Vision")
    log.setLevel(logging.DEBUG if args.verbose else logging.INFO)

    for path in filter(None, [args.image, args.compare]):
        if not Path(path).is_file():
            print(f"Error: {path} not found", file=sys.stderr)
            return 1

    try:
        client = RekognitionClient.from_settings(load_rekognition_settings())
        source = _load_local_image(args.image)
        start = time.time()

        if args.compare:
            target = _load_local_image(args.compare)
            threshold = normalize_threshold(args.similarity)
            result = asyncio.run(compare_faces(client, source, target, threshold))
            document = build_comparison_report(
                result, source.source, target.source, threshold_to_percent(threshold)
            )
            if not args.json:
                print(f"Matches: {len(result.matched_faces)}")
                for i, match in enumerate(result.matched_faces, 1):
                    print(f"  Match {i}: {match.similarity:.1f}% similarity")
                print(f"Unmatched faces in target: {result.unmatched_face_count}")
        else:
            features = parse_features(args.features)
            results = asyncio.run(run_analyses(client, source, features))
            document = build_analysis_report(results, source.source)
            if not args.json:
                for name, result in results.items():
                    status = "ok" if result.ok else f"FAILED ({result.error})"
                    print(f"{name:12s} {status}")

        if args.json:
            print(json.dumps(document, indent=2, default=str))

    except VisionError as e:
        print(f"Error ({e.kind.value}): {e}", file=sys.stderr)
        return 2

    if args.verbose:
        print(f"\nTime: {time.time() - start:.2f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
