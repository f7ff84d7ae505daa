import asyncio
import itertools

import pytest

from conftest import FakeRekognition
from vision.analysis import Feature, parse_features, run_analyses
from vision.errors import ErrorKind, InvalidInput, RemoteServiceError

ALL_NAMES = {f.value for f in Feature}


def all_subsets():
    features = list(Feature)
    for size in range(1, len(features) + 1):
        for combo in itertools.combinations(features, size):
            yield frozenset(combo)


# ============== parse_features ==============

@pytest.mark.parametrize("option", [None, "", "all", "ALL", "labels,all"])
def test_parse_features_all_expands_to_every_feature(option):
    assert parse_features(option) == frozenset(Feature)


def test_parse_features_single_and_list():
    assert parse_features("text") == {Feature.TEXT}
    assert parse_features("labels, faces  moderation") == {Feature.LABELS, Feature.FACES, Feature.MODERATION}
    assert parse_features(["celebrities"]) == {Feature.CELEBRITIES}


def test_parse_features_rejects_unknown_names():
    with pytest.raises(InvalidInput) as exc:
        parse_features("labels,colours")
    assert "colours" in str(exc.value)
    assert exc.value.kind is ErrorKind.INVALID_INPUT


# ============== run_analyses ==============

@pytest.mark.parametrize("features", list(all_subsets()), ids=lambda s: "+".join(sorted(f.value for f in s)))
async def test_one_result_per_requested_feature(image, features):
    client = FakeRekognition()
    results = await run_analyses(client, image, features)

    assert set(results) == {f.value for f in features}
    assert all(r.ok for r in results.values())
    assert sorted(client.calls) == sorted(f.client_method for f in features)


async def test_single_failure_is_isolated(image, throttled):
    client = FakeRekognition(failures={"detect_text": throttled})
    results = await run_analyses(client, image, set(Feature))

    assert set(results) == ALL_NAMES
    assert not results["text"].ok
    assert results["text"].error == "Rate exceeded"
    assert results["text"].error_kind == ErrorKind.THROTTLED.value
    for name in ALL_NAMES - {"text"}:
        assert results[name].ok
        assert results[name].data is not None
    assert results["labels"].data["Labels"][0]["Name"] == "Cat"


async def test_all_failures_still_return_mapping(image):
    failures = {
        f.client_method: RemoteServiceError(f"{f.value} broke", code="InternalServerError")
        for f in Feature
    }
    client = FakeRekognition(failures=failures)
    results = await run_analyses(client, image, set(Feature))

    assert set(results) == ALL_NAMES
    for name, result in results.items():
        assert not result.ok
        assert result.feature == name
        assert result.error == f"{name} broke"
        assert result.data is None


async def test_unexpected_exception_becomes_failure_record(image):
    client = FakeRekognition(failures={"detect_faces": RuntimeError("socket closed")})
    results = await run_analyses(client, image, {Feature.FACES, Feature.LABELS})

    assert results["labels"].ok
    assert results["faces"].error == "socket closed"
    assert results["faces"].error_kind == ErrorKind.UNEXPECTED.value


async def test_features_are_dispatched_concurrently(image):
    features = set(Feature)
    started = 0
    all_started = asyncio.Event()

    class BarrierClient(FakeRekognition):
        async def _respond(self, method, data):
            nonlocal started
            started += 1
            if started == len(features):
                all_started.set()
            # Only returns once every call is in flight; sequential dispatch would stall here
            await asyncio.wait_for(all_started.wait(), timeout=2)
            return await super()._respond(method, data)

    results = await run_analyses(BarrierClient(), image, features)
    assert all(r.ok for r in results.values())


async def test_timeout_records_unsettled_features(image):
    client = FakeRekognition(delays={"recognize_celebrities": 5})
    results = await run_analyses(
        client, image, {Feature.LABELS, Feature.CELEBRITIES}, timeout=0.2
    )

    assert results["labels"].ok
    assert not results["celebrities"].ok
    assert results["celebrities"].error_kind == ErrorKind.TIMEOUT.value

    pending = [t for t in asyncio.all_tasks() if t.get_name().startswith("rekognition-")]
    assert pending == []


async def test_cancelling_the_caller_cancels_every_feature(image):
    client = FakeRekognition(delays={"detect_labels": 5, "detect_text": 5})

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(
            run_analyses(client, image, {Feature.LABELS, Feature.TEXT}), timeout=0.1
        )

    pending = [t for t in asyncio.all_tasks() if t.get_name().startswith("rekognition-")]
    assert pending == []


async def test_empty_feature_set_is_a_programming_error(image, fake_client):
    with pytest.raises(ValueError):
        await run_analyses(fake_client, image, set())


async def test_unexpanded_all_is_rejected(image, fake_client):
    with pytest.raises(ValueError):
        await run_analyses(fake_client, image, {"all"})
