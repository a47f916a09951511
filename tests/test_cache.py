from datetime import datetime, timedelta

import pytest

from learnflow.cache import MemoryResultCache
from learnflow.results import CanonicalResult, ResultStatus


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _result(status=ResultStatus.COMPLETED, subject="S1", kind="score-analysis", parameter=""):
    return CanonicalResult(subject=subject, task_kind=kind, parameter=parameter, payload={"score": 1}, status=status)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0))


@pytest.fixture
def cache(clock) -> MemoryResultCache:
    return MemoryResultCache(clock=clock)


def test_put_then_get_within_ttl(cache, clock):
    assert cache.put("S1", "score-analysis", "", _result(), timedelta(hours=24))

    clock.advance(hours=23)
    hit = cache.get("S1", "score-analysis", "")

    assert hit is not None
    assert hit.payload == {"score": 1}
    assert hit.expires_at == datetime(2024, 1, 2, 12, 0, 0)


def test_expired_entry_is_evicted_on_read(cache, clock):
    cache.put("S1", "score-analysis", "", _result(), timedelta(hours=24))

    clock.advance(hours=24)
    assert cache.get("S1", "score-analysis", "") is not None

    clock.advance(seconds=1)
    assert cache.get("S1", "score-analysis", "") is None
    assert len(cache) == 0


@pytest.mark.parametrize("status", [ResultStatus.PENDING, ResultStatus.FAILED])
def test_non_servable_results_are_not_stored(cache, status):
    assert not cache.put("S1", "score-analysis", "", _result(status), timedelta(hours=1))
    assert cache.get("S1", "score-analysis", "") is None


def test_zero_ttl_is_not_stored(cache):
    assert not cache.put("S1", "score-analysis", "", _result(), timedelta(0))
    assert len(cache) == 0


def test_keys_include_parameter(cache):
    cache.put("S1", "career-details", "Pilot", _result(kind="career-details", parameter="Pilot"), timedelta(hours=1))

    assert cache.get("S1", "career-details", "Chef") is None
    assert cache.get("S1", "career-details", "Pilot") is not None


def test_invalidate_subject_scopes_by_kind(cache):
    ttl = timedelta(hours=1)
    cache.put("S1", "score-analysis", "", _result(), ttl)
    cache.put("S1", "career-options", "", _result(kind="career-options"), ttl)
    cache.put("S2", "score-analysis", "", _result(subject="S2"), ttl)

    assert cache.invalidate_subject("S1", "career-options") == 1
    assert cache.get("S1", "score-analysis", "") is not None
    assert cache.invalidate_subject("S1") == 1
    assert len(cache) == 1


def test_invalidate_single_key(cache):
    cache.put("S1", "score-analysis", "", _result(), timedelta(hours=1))

    assert cache.invalidate("S1", "score-analysis", "")
    assert not cache.invalidate("S1", "score-analysis", "")


def test_stored_copy_is_independent_of_caller_result(cache):
    original = _result()
    cache.put("S1", "score-analysis", "", original, timedelta(hours=1))

    assert original.expires_at is None
    assert cache.get("S1", "score-analysis", "").expires_at is not None


def test_payload_is_copied_on_put_and_get(cache):
    original = CanonicalResult(subject="S1", task_kind="score-analysis", parameter="", payload={"score": 75, "tags": ["a"]}, status=ResultStatus.COMPLETED)
    cache.put("S1", "score-analysis", "", original, timedelta(hours=1))

    original.payload["score"] = 5
    first = cache.get("S1", "score-analysis", "")
    first.payload["tags"].append("b")
    second = cache.get("S1", "score-analysis", "")

    assert second.payload == {"score": 75, "tags": ["a"]}
