import asyncio

import pytest

from geotrail.geocoding.errors import QueueFullError
from geotrail.geocoding.request_queue import RequestQueue
from geotrail.models.geocode import CityQuery


class RecordingHandler:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.dispatched = []
        self.times = []

    async def __call__(self, query):
        self.dispatched.append(query.name)
        self.times.append(asyncio.get_running_loop().time())
        if query.name in self.fail_on:
            raise RuntimeError(f"boom {query.name}")
        return query.name.upper()


def _query(name):
    return CityQuery.from_name(name)


def test_requests_are_dispatched_in_fifo_order():
    handler = RecordingHandler()

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0, spacing=0)
        futures = [queue.enqueue(_query(name)) for name in ("a", "b", "c")]
        return await asyncio.gather(*futures)

    assert asyncio.run(scenario()) == ["A", "B", "C"]
    assert handler.dispatched == ["a", "b", "c"]


def test_dispatches_are_spaced_by_min_interval():
    handler = RecordingHandler()

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0.05, spacing=0)
        await asyncio.gather(*(queue.enqueue(_query(str(i))) for i in range(4)))

    asyncio.run(scenario())
    gaps = [later - earlier for earlier, later in zip(handler.times, handler.times[1:])]
    assert len(gaps) == 3
    # small tolerance for timer granularity
    assert all(gap >= 0.045 for gap in gaps)


def test_full_queue_rejects_without_dispatching():
    handler = RecordingHandler()

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0.5, max_queue_size=100, spacing=0)
        futures = [queue.enqueue(_query(f"city {i}")) for i in range(100)]
        with pytest.raises(QueueFullError) as excinfo:
            queue.enqueue(_query("one too many"))
        queue.close()
        return futures, excinfo.value

    futures, error = asyncio.run(scenario())
    assert error.provider == "test"
    assert error.queue_length == 100
    assert error.retry_after == 50
    assert "one too many" not in handler.dispatched
    assert all(future.cancelled() for future in futures)


def test_queue_accepts_again_after_draining():
    handler = RecordingHandler()

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0, max_queue_size=2, spacing=0)
        first = [queue.enqueue(_query("a")), queue.enqueue(_query("b"))]
        with pytest.raises(QueueFullError):
            queue.enqueue(_query("c"))
        await asyncio.gather(*first)
        assert queue.get_queue_length() == 0
        return await queue.enqueue(_query("c"))

    assert asyncio.run(scenario()) == "C"


def test_priority_requests_jump_the_normal_tier():
    handler = RecordingHandler()

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0, spacing=0)
        futures = [
            queue.enqueue(_query("normal 1")),
            queue.enqueue(_query("normal 2")),
            queue.enqueue(_query("urgent 1"), priority=True),
            queue.enqueue(_query("urgent 2"), priority=True),
        ]
        await asyncio.gather(*futures)

    asyncio.run(scenario())
    assert handler.dispatched == ["urgent 1", "urgent 2", "normal 1", "normal 2"]


def test_handler_errors_reach_only_their_caller():
    handler = RecordingHandler(fail_on={"bad"})

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0, spacing=0)
        futures = [queue.enqueue(_query(name)) for name in ("good", "bad", "after")]
        return await asyncio.gather(*futures, return_exceptions=True)

    good, bad, after = asyncio.run(scenario())
    assert good == "GOOD"
    assert isinstance(bad, RuntimeError)
    assert after == "AFTER"


def test_abandoned_requests_are_skipped():
    handler = RecordingHandler()

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0, spacing=0)
        abandoned = queue.enqueue(_query("gone"))
        kept = queue.enqueue(_query("kept"))
        abandoned.cancel()
        return await kept

    assert asyncio.run(scenario()) == "KEPT"
    assert handler.dispatched == ["kept"]


def test_queue_length_and_processing_flag():
    handler = RecordingHandler()

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0, spacing=0)
        assert not queue.is_processing()
        future = queue.enqueue(_query("a"))
        assert queue.get_queue_length() == 1
        assert queue.is_processing()
        await future
        await asyncio.sleep(0.01)
        assert queue.get_queue_length() == 0
        assert not queue.is_processing()

    asyncio.run(scenario())


def test_close_during_pacing_wait_cancels_the_waiting_request():
    handler = RecordingHandler()

    async def scenario():
        queue = RequestQueue("test", handler, min_interval=0.5, spacing=0)
        first = queue.enqueue(_query("first"))
        second = queue.enqueue(_query("second"))
        await first
        await asyncio.sleep(0.05)
        assert queue.get_queue_length() == 0

        queue.close()

        assert second.cancelled()
        with pytest.raises(asyncio.CancelledError):
            await second

    asyncio.run(scenario())
    assert handler.dispatched == ["first"]
