"""
Synchronization engine.

Runs fetches and other blocking work on a thread pool and reports every
outcome as a message on a queue that the event loop drains. The engine owns
the cache store; nothing else writes to it.

Guarantees:
- At most one outstanding fetch per resource key. A non-superseding request
  for a key already in flight is coalesced onto it; a superseding request
  (manual refresh) is issued and the older result is dropped on arrival.
- Every issued fetch produces exactly one FetchCompleted message.
- Successful results of persistent kinds are written to the cache before the
  message is posted, and only when they carry the highest generation issued
  for the key. Failures never touch the cache.

Usage:
    >>> engine = SyncEngine(store, loader)
    >>> engine.request(Fetch(key, generation=1))
    >>> message = engine.outbox.get()
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any

from pydantic import ValidationError

from ghui.core.app.commands import Fetch
from ghui.core.app.messages import (
    CacheLoaded,
    FetchCompleted,
    FetchError,
    LabelOperationFailed,
    LabelsLoaded,
    Message,
)
from ghui.core.cache.store import CacheStore
from ghui.core.errors import CacheError, ErrorKind, GatewayError
from ghui.core.sync.keys import ResourceKey, decode_payload, encode_payload
from ghui.core.sync.loader import ResourceLoader

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


class SyncEngine:
    """
    Background work coordinator.

    Args:
        store: Cache store (the engine is its only writer)
        loader: Turns Fetch commands into typed values
        owner: Repository owner, for label scoping
        repo: Repository name, for label scoping
        executor: Executor to run work on (defaults to a thread pool)
        outbox: Queue that receives result messages
    """

    def __init__(
        self,
        store: CacheStore,
        loader: ResourceLoader,
        owner: str | None = None,
        repo: str | None = None,
        executor: Executor | None = None,
        outbox: queue.Queue[Message] | None = None,
    ) -> None:
        self.store = store
        self.loader = loader
        self.owner = owner
        self.repo = repo
        self.outbox: queue.Queue[Message] = outbox if outbox is not None else queue.Queue()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=DEFAULT_WORKERS, thread_name_prefix="ghui-sync"
        )
        self._lock = threading.Lock()
        self._latest: dict[ResourceKey, int] = {}
        self._in_flight: dict[ResourceKey, int] = {}

    # ------------------------------------------------------------------
    # Fetches
    # ------------------------------------------------------------------

    def request(self, fetch: Fetch) -> int:
        """
        Issue a fetch unless one for the same key is already in flight.

        Args:
            fetch: Fetch command from the state machine

        Returns:
            The generation whose result will be reported: the in-flight one
            when the request was coalesced, otherwise ``fetch.generation``
        """
        with self._lock:
            current = self._in_flight.get(fetch.key)
            if current is not None and not fetch.supersede:
                logger.debug("Coalesced %s onto generation %d", fetch.key, current)
                return current
            self._latest[fetch.key] = max(self._latest.get(fetch.key, 0), fetch.generation)
            self._in_flight[fetch.key] = fetch.generation

        logger.debug("Fetching %s (generation %d)", fetch.key, fetch.generation)
        self._submit(self._run_fetch, fetch)
        return fetch.generation

    def in_flight(self, key: ResourceKey) -> int | None:
        with self._lock:
            return self._in_flight.get(key)

    def latest_generation(self, key: ResourceKey) -> int:
        with self._lock:
            return self._latest.get(key, 0)

    def _run_fetch(self, fetch: Fetch) -> None:
        key, generation = fetch.key, fetch.generation
        try:
            value = self.loader.load(fetch)
        except GatewayError as e:
            logger.info("Fetch %s failed: %s", key, e.message)
            result = FetchCompleted(key, generation, error=FetchError(e.kind, e.message))
        except Exception as e:
            logger.exception("Unexpected error fetching %s", key)
            result = FetchCompleted(key, generation, error=FetchError(ErrorKind.NETWORK, str(e)))
        else:
            self._write_through(key, generation, value)
            result = FetchCompleted(key, generation, value=value)
        finally:
            with self._lock:
                if self._in_flight.get(key) == generation:
                    del self._in_flight[key]

        self.outbox.put(result)

    def _write_through(self, key: ResourceKey, generation: int, value: Any) -> None:
        if not key.kind.is_persistent:
            return
        # Held across the write so a newer generation cannot be issued between
        # the check and the put.
        with self._lock:
            if self._latest.get(key, 0) != generation:
                logger.debug("Not caching superseded %s generation %d", key, generation)
                return
            try:
                self.store.put(str(key), encode_payload(value), generation)
            except (CacheError, TypeError, ValueError) as e:
                logger.warning("Could not cache %s: %s", key, e)

    # ------------------------------------------------------------------
    # Cache reads
    # ------------------------------------------------------------------

    def load_cached(self, keys: Iterable[ResourceKey]) -> None:
        """Read cached entries and post one CacheLoaded per key."""
        self._submit(self._run_load_cached, tuple(keys))

    def _run_load_cached(self, keys: tuple[ResourceKey, ...]) -> None:
        for key in keys:
            message = CacheLoaded(key)
            try:
                entry = self.store.get(str(key))
                if entry is not None:
                    message = CacheLoaded(
                        key,
                        value=decode_payload(key.kind, entry.payload),
                        fetched_at=entry.fetched_at,
                        generation=entry.generation,
                    )
            except (CacheError, ValidationError, ValueError, TypeError) as e:
                logger.warning("Ignoring cached %s: %s", key, e)
            self.outbox.put(message)

    # ------------------------------------------------------------------
    # Label configuration
    # ------------------------------------------------------------------

    def load_labels(self) -> None:
        self._submit(self._run_label_op, None, False)

    def save_label(self, label_name: str, global_scope: bool) -> None:
        owner, repo = (None, None) if global_scope else (self.owner, self.repo)
        self._submit(self._run_label_op, lambda: self.store.add_label(label_name, owner, repo), True)

    def delete_label(self, label_id: int) -> None:
        self._submit(self._run_label_op, lambda: self.store.delete_label(label_id), True)

    def _run_label_op(self, operation: Callable[[], Any] | None, changed: bool) -> None:
        try:
            if operation is not None:
                operation()
            labels = self.store.list_labels(self.owner, self.repo)
        except CacheError as e:
            logger.warning("Label operation failed: %s", e)
            self.outbox.put(LabelOperationFailed(str(e)))
            return
        self.outbox.put(LabelsLoaded(labels=labels, changed=changed))

    # ------------------------------------------------------------------
    # Other background work
    # ------------------------------------------------------------------

    def run_background(self, work: Callable[[], Message | None]) -> None:
        """
        Run blocking work (checkout, clipboard, browser) off the loop thread.

        ``work`` returns the message to post, or None.
        """
        self._submit(self._run_work, work)

    def _run_work(self, work: Callable[[], Message | None]) -> None:
        message = work()
        if message is not None:
            self.outbox.put(message)

    def _submit(self, fn: Callable[..., None], *args: Any) -> None:
        future = self._executor.submit(fn, *args)
        future.add_done_callback(_log_worker_failure)

    def shutdown(self) -> None:
        """Stop accepting work; in-flight calls finish in the background."""
        self._executor.shutdown(wait=False, cancel_futures=True)


def _log_worker_failure(future: Future[None]) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("Background task failed", exc_info=error)
