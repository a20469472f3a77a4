"""Memoization of rendered responsive image markup.

Rendering an image means planning its breakpoints, checking (and possibly
writing) every derivative and running the template. The result only depends on
the image, its effective attributes, the page it appears on and whether 2x
variants are produced, so it is cached under a key made of exactly those. Each
entry also records a staleness value (the source file's modification time, the
derivative URL path and the template version); a different value recomputes it.

The store follows the interface of Pelican's ``FileDataCacher``
(``get_cached_data`` / ``cache_data`` / ``save_cache``) so the cache can live
in memory for a single build or on disk across builds.
"""
from __future__ import annotations

from concurrent.futures import Future
import logging
import threading
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

KEY_PREFIX = 'responsive-image'


def make_cache_key(image_path: str, attributes, page_destination: str, hidpi: bool) -> str:
    attributes_json = attributes if isinstance(attributes, str) else attributes.to_json()
    density = 'hidpi' if hidpi else '1x'
    return f"{KEY_PREFIX}:{image_path}:{attributes_json}:{page_destination}:{density}"


class MemoryStore:
    def __init__(self):
        self._cache: Dict[str, Any] = {}

    def get_cached_data(self, key, default=None):
        return self._cache.get(key, default)

    def cache_data(self, key, data) -> None:
        self._cache[key] = data

    def save_cache(self) -> None:
        pass


class MarkupCache:
    def __init__(self, store=None):
        self.store = store if store is not None else MemoryStore()
        self._lock = threading.Lock()
        self._inflight: Dict[Tuple[str, Hashable], Future] = {}

    def get_or_compute(self, key: str, staleness: Hashable, compute: Callable[[], str]) -> str:
        """Return the cached markup for ``key`` or compute and store it.

        Concurrent callers asking for the same key and staleness wait for the
        first caller's result; ``compute`` runs at most once per generation.
        """
        with self._lock:
            entry: Optional[Tuple[Hashable, str]] = self.store.get_cached_data(key)
            if entry is not None and entry[0] == staleness:
                logger.debug(f"responsive_images: markup cache hit for {key}")
                return entry[1]

            future = self._inflight.get((key, staleness))
            owner = future is None
            if owner:
                future = Future()
                self._inflight[(key, staleness)] = future

        if not owner:
            return future.result()

        try:
            markup = compute()
        except BaseException as e:
            with self._lock:
                del self._inflight[(key, staleness)]
            future.set_exception(e)
            raise

        with self._lock:
            self.store.cache_data(key, (staleness, markup))
            del self._inflight[(key, staleness)]
        future.set_result(markup)
        return markup

    def save(self) -> None:
        self.store.save_cache()
