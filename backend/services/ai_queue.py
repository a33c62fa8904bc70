"""Single-flight, cached, retrying queue in front of the text generation API.

Exactly one upstream request is in flight at any time. Each prompt moves
through:

    enqueued -> dispatched -> succeeded (cached, future resolved)
                           -> retryable failure -> re-enqueued at front
                              (after base_delay * 2**retries)
                           -> permanent failure / retries exhausted
                              (future rejected with the upstream error)

A fixed pause follows every dispatch regardless of outcome. Identical
prompts that are already pending share one future, and completed responses
are served from a TTL cache without touching the queue.

Everything runs on one event loop, so the queue and cache need no locking.
"""

import asyncio
import base64
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable

from models.responses import QueueStats

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 30 * 60  # seconds
DEFAULT_CACHE_MAX_ENTRIES = 100
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 2.0
DEFAULT_REQUEST_INTERVAL = 1.0

CACHE_KEY_LENGTH = 50

# Fallback classification for exceptions that carry no retryable flag
RETRYABLE_MARKERS = ("rate limit", "quota", "429", "503")


class AIRequestError(Exception):
    """Upstream generation failure with an explicit retryability flag."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class RetryableAIError(AIRequestError):
    def __init__(self, message: str):
        super().__init__(message, retryable=True)


class PermanentAIError(AIRequestError):
    def __init__(self, message: str):
        super().__init__(message, retryable=False)


def is_retryable(exc: BaseException) -> bool:
    """Typed errors decide for themselves; anything else is judged by its message."""
    if isinstance(exc, AIRequestError):
        return exc.retryable
    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


@dataclass
class _CacheEntry:
    prompt: str
    response: str
    timestamp: float


class ResponseCache:
    """Prompt -> response cache with TTL expiry and insertion-order eviction.

    Keys are the first CACHE_KEY_LENGTH characters of the base64-encoded
    prompt. Entries keep the full prompt, and a lookup whose prompt differs
    from the stored one is a miss, so prompts sharing a long prefix never
    answer for each other.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    @staticmethod
    def key(prompt: str) -> str:
        return base64.b64encode(prompt.encode("utf-8")).decode("ascii")[:CACHE_KEY_LENGTH]

    def get(self, prompt: str) -> str | None:
        key = self.key(prompt)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl:
            del self._entries[key]
            return None
        if entry.prompt != prompt:
            logger.debug("Cache key collision for prompt prefix %r", prompt[:40])
            return None
        return entry.response

    def set(self, prompt: str, response: str) -> None:
        key = self.key(prompt)
        # Re-setting a key moves it to the back of the eviction order
        self._entries.pop(key, None)
        self._entries[key] = _CacheEntry(prompt, response, self._clock())
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class _QueueItem:
    prompt: str
    future: asyncio.Future
    retries: int = 0


class AIQueue:
    """Serialises prompts to ``generate`` with caching and bounded retries.

    ``generate`` is any coroutine function taking a prompt and returning the
    response text. ``clock`` and ``sleep`` are injectable so tests can drive
    TTL expiry and backoff without real time passing.
    """

    def __init__(
        self,
        generate: Callable[[str], Awaitable[str]],
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        request_interval: float = DEFAULT_REQUEST_INTERVAL,
    ):
        self._generate = generate
        self._sleep = sleep
        self._cache = ResponseCache(cache_ttl, cache_max_entries, clock)
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.request_interval = request_interval

        self._queue: deque[_QueueItem] = deque()
        self._pending: dict[str, asyncio.Future] = {}
        self._worker: asyncio.Task | None = None
        self._current: _QueueItem | None = None
        self._processing = False
        self._upstream_calls = 0
        self._cache_hits = 0

    async def generate_response(self, prompt: str) -> str:
        """Return the response for ``prompt``, dispatching upstream only on a cache miss.

        Raises the upstream error once retries are exhausted or the failure
        is permanent. There is no cancellation: a caller that stops waiting
        leaves the request in the queue for any other waiters.
        """
        cached = self._cache.get(prompt)
        if cached is not None:
            self._cache_hits += 1
            return cached

        future = self._pending.get(prompt)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            self._pending[prompt] = future
            self._queue.append(_QueueItem(prompt, future))
        else:
            logger.debug("Coalescing duplicate prompt with pending request")
        self._ensure_worker()

        return await asyncio.shield(future)

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._process_queue())

    async def _process_queue(self) -> None:
        self._processing = True
        try:
            while self._queue:
                item = self._queue.popleft()
                self._current = item
                self._upstream_calls += 1
                try:
                    response = await self._generate(item.prompt)
                except Exception as exc:
                    if item.retries < self.max_retries and is_retryable(exc):
                        delay = self.retry_base_delay * 2 ** item.retries
                        logger.warning(
                            "AI request failed (%s); retry %d/%d in %.1fs",
                            exc, item.retries + 1, self.max_retries, delay,
                        )
                        await self._sleep(delay)
                        item.retries += 1
                        self._queue.appendleft(item)
                    else:
                        logger.error("AI request failed after %d retries: %s", item.retries, exc)
                        self._settle(item, error=exc)
                else:
                    self._cache.set(item.prompt, response)
                    self._settle(item, response=response)
                self._current = None

                await self._sleep(self.request_interval)
        finally:
            self._processing = False
            self._fail_unfinished()

    def _fail_unfinished(self) -> None:
        """Reject whatever a stopped worker left behind so no waiter hangs."""
        stranded = [self._current] if self._current is not None else []
        stranded.extend(self._queue)
        self._current = None
        self._queue.clear()
        if not stranded:
            return
        logger.error("AI queue worker stopped with %d unfinished requests", len(stranded))
        for item in stranded:
            self._settle(item, error=PermanentAIError("AI queue worker stopped before the request completed"))
        self._pending.clear()

    def _settle(
        self,
        item: _QueueItem,
        response: str | None = None,
        error: BaseException | None = None,
    ) -> None:
        self._pending.pop(item.prompt, None)
        if item.future.done():
            return
        if error is not None:
            item.future.set_exception(error)
        else:
            item.future.set_result(response)

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        return self._processing

    def clear_cache(self) -> None:
        self._cache.clear()

    def stats(self) -> QueueStats:
        return QueueStats(
            queue_size=self.queue_size,
            processing=self._processing,
            cache_entries=len(self._cache),
            upstream_calls=self._upstream_calls,
            cache_hits=self._cache_hits,
        )
