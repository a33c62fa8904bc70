"""Tests for the AI request queue."""

import asyncio

import pytest

from services.ai_queue import (
    AIQueue,
    AIRequestError,
    PermanentAIError,
    ResponseCache,
    RetryableAIError,
    is_retryable,
)

INTERVAL = 0.5


def _queue(upstream, clock, sleep, **kwargs):
    kwargs.setdefault("request_interval", INTERVAL)
    return AIQueue(upstream, clock=clock, sleep=sleep, **kwargs)


def _backoffs(sleep):
    return [d for d in sleep.delays if d != INTERVAL]


# --- Error classification ---


class TestIsRetryable:
    def test_typed_errors_use_flag(self):
        assert is_retryable(RetryableAIError("anything"))
        assert not is_retryable(PermanentAIError("quota exceeded"))
        assert is_retryable(AIRequestError("x", retryable=True))

    @pytest.mark.parametrize(
        "message",
        ["Rate limit reached", "Quota exceeded", "HTTP 429 Too Many Requests", "503 Service Unavailable"],
    )
    def test_untyped_transient_messages(self, message):
        assert is_retryable(RuntimeError(message))

    def test_untyped_other_messages(self):
        assert not is_retryable(ValueError("Gemini API not configured"))


# --- Response cache ---


class TestResponseCache:
    def test_expires_after_ttl(self, fake_clock):
        cache = ResponseCache(ttl=60, clock=fake_clock)
        cache.set("hello", "world")
        fake_clock.advance(59)
        assert cache.get("hello") == "world"
        fake_clock.advance(1)
        assert cache.get("hello") is None
        assert len(cache) == 0

    def test_evicts_oldest_inserted(self, fake_clock):
        cache = ResponseCache(ttl=60, max_entries=2, clock=fake_clock)
        cache.set("a", "1")
        cache.set("b", "2")
        cache.get("a")  # reads do not refresh eviction order
        cache.set("c", "3")
        assert cache.get("a") is None
        assert cache.get("b") == "2"
        assert cache.get("c") == "3"

    def test_shared_prefix_prompts_do_not_collide(self, fake_clock):
        prefix = "You are a career assistant reviewing a long shared template. "
        first, second = prefix + "Internship A", prefix + "Internship B"
        assert ResponseCache.key(first) == ResponseCache.key(second)

        cache = ResponseCache(clock=fake_clock)
        cache.set(first, "answer A")
        assert cache.get(second) is None
        cache.set(second, "answer B")
        assert cache.get(second) == "answer B"

    def test_key_is_truncated_base64(self):
        assert ResponseCache.key("P1") == "UDE="
        assert len(ResponseCache.key("x" * 500)) == 50


# --- Queue behaviour ---


class TestAIQueue:
    @pytest.mark.asyncio
    async def test_success_resolves_and_caches(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory(default="generated text")
        queue = _queue(upstream, fake_clock, recording_sleep)

        assert await queue.generate_response("P1") == "generated text"
        assert await queue.generate_response("P1") == "generated text"
        assert upstream.calls == ["P1"]
        assert queue.stats().cache_hits == 1

    @pytest.mark.asyncio
    async def test_repeated_prompt_within_window_dispatches_once(
        self, upstream_factory, fake_clock, recording_sleep
    ):
        upstream = upstream_factory(default="same")
        queue = _queue(upstream, fake_clock, recording_sleep)

        results = []
        for _ in range(3):
            results.append(await queue.generate_response("P1"))
            fake_clock.advance(0.3)

        assert results == ["same", "same", "same"]
        assert len(upstream.calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_identical_prompts_coalesce(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory(default="shared")
        queue = _queue(upstream, fake_clock, recording_sleep)

        results = await asyncio.gather(*(queue.generate_response("P1") for _ in range(3)))

        assert results == ["shared", "shared", "shared"]
        assert upstream.calls == ["P1"]

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory(default="fresh")
        queue = _queue(upstream, fake_clock, recording_sleep, cache_ttl=1800)

        await queue.generate_response("P1")
        fake_clock.advance(1799)
        await queue.generate_response("P1")
        assert len(upstream.calls) == 1

        fake_clock.advance(1)
        await queue.generate_response("P1")
        assert len(upstream.calls) == 2

    @pytest.mark.asyncio
    async def test_retryable_failure_exhausts_ceiling(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory(default=RetryableAIError("429 rate limit"))
        queue = _queue(upstream, fake_clock, recording_sleep, max_retries=3, retry_base_delay=2.0)

        with pytest.raises(RetryableAIError):
            await queue.generate_response("P1")

        # One initial attempt plus three retries
        assert len(upstream.calls) == 4
        assert _backoffs(recording_sleep) == [2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_permanent_failure_fails_fast(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory(default=PermanentAIError("Gemini API not configured"))
        queue = _queue(upstream, fake_clock, recording_sleep)

        with pytest.raises(PermanentAIError):
            await queue.generate_response("P1")

        assert len(upstream.calls) == 1
        assert _backoffs(recording_sleep) == []

    @pytest.mark.asyncio
    async def test_untyped_errors_classified_by_message(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory([RuntimeError("503 Service Unavailable"), ValueError("bad request")])
        queue = _queue(upstream, fake_clock, recording_sleep)

        with pytest.raises(ValueError):
            await queue.generate_response("P1")
        assert len(upstream.calls) == 2

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory([RetryableAIError("quota"), "recovered"])
        queue = _queue(upstream, fake_clock, recording_sleep)

        assert await queue.generate_response("P1") == "recovered"
        assert _backoffs(recording_sleep) == [2.0]

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory([PermanentAIError("blocked"), "second try"])
        queue = _queue(upstream, fake_clock, recording_sleep)

        with pytest.raises(PermanentAIError):
            await queue.generate_response("P1")
        assert await queue.generate_response("P1") == "second try"

    @pytest.mark.asyncio
    async def test_retried_item_goes_to_front(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory([RetryableAIError("429"), "A done", "B done"])
        queue = _queue(upstream, fake_clock, recording_sleep)

        results = await asyncio.gather(queue.generate_response("A"), queue.generate_response("B"))

        assert results == ["A done", "B done"]
        assert upstream.calls == ["A", "A", "B"]

    @pytest.mark.asyncio
    async def test_interval_follows_every_dispatch(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory(default=lambda prompt: prompt.lower())
        queue = _queue(upstream, fake_clock, recording_sleep)

        assert await asyncio.gather(queue.generate_response("A"), queue.generate_response("B")) == ["a", "b"]
        while queue.is_processing:
            await asyncio.sleep(0)
        assert recording_sleep.delays == [INTERVAL, INTERVAL]

    @pytest.mark.asyncio
    async def test_one_request_in_flight_at_a_time(self, fake_clock, recording_sleep):
        in_flight = 0
        peak = 0

        async def upstream(prompt):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return prompt

        queue = _queue(upstream, fake_clock, recording_sleep)
        await asyncio.gather(*(queue.generate_response(f"P{i}") for i in range(5)))
        assert peak == 1

    @pytest.mark.asyncio
    async def test_abandoned_waiter_does_not_cancel_shared_request(self, fake_clock, recording_sleep):
        release = asyncio.Event()
        calls = []

        async def upstream(prompt):
            calls.append(prompt)
            await release.wait()
            return "done"

        queue = _queue(upstream, fake_clock, recording_sleep)
        impatient = asyncio.create_task(queue.generate_response("P1"))
        patient = asyncio.create_task(queue.generate_response("P1"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        impatient.cancel()
        release.set()

        assert await patient == "done"
        assert impatient.cancelled()
        assert calls == ["P1"]

    @pytest.mark.asyncio
    async def test_stopped_worker_rejects_waiters_and_recovers(self, fake_clock, recording_sleep):
        hang = asyncio.Event()
        calls = []

        async def upstream(prompt):
            calls.append(prompt)
            if len(calls) == 1:
                await hang.wait()
            return "fresh"

        queue = _queue(upstream, fake_clock, recording_sleep)
        first = asyncio.create_task(queue.generate_response("P1"))
        second = asyncio.create_task(queue.generate_response("P2"))
        while not calls:
            await asyncio.sleep(0)

        worker = queue._worker
        worker.cancel()
        with pytest.raises(asyncio.CancelledError):
            await worker

        with pytest.raises(PermanentAIError, match="worker stopped"):
            await first
        with pytest.raises(PermanentAIError, match="worker stopped"):
            await second
        assert queue._pending == {}
        assert queue.queue_size == 0
        assert not queue.is_processing

        assert await queue.generate_response("P1") == "fresh"
        assert calls == ["P1", "P1"]

    @pytest.mark.asyncio
    async def test_stats_and_clear_cache(self, upstream_factory, fake_clock, recording_sleep):
        upstream = upstream_factory(default="x")
        queue = _queue(upstream, fake_clock, recording_sleep)

        await queue.generate_response("P1")
        await queue.generate_response("P2")
        stats = queue.stats()
        assert stats.upstream_calls == 2
        assert stats.cache_entries == 2
        assert stats.queue_size == 0

        queue.clear_cache()
        assert queue.stats().cache_entries == 0
        await queue.generate_response("P1")
        assert len(upstream.calls) == 3
