"""
Stage runner - named, versioned units of work with incremental caching.
"""
import json
import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

from .cache import FileCache, cache_key, compute_fingerprint, stable_json_dumps


logger = logging.getLogger(__name__)

I = TypeVar("I")
O = TypeVar("O")


@dataclass(frozen=True)
class Stage(Generic[I, O]):
    """
    One named, versioned unit of pipeline work.

    Bump ``version`` whenever ``run`` changes in a way that affects its
    output; that is the only way to recompute an unchanged input.

    ``should_cache`` lets a stage that dropped failed items return its
    partial result without persisting it, so the next run retries them.
    """
    name: str
    version: str
    run: Callable[[I], O]
    output_type: Any
    should_cache: Optional[Callable[[O], bool]] = None


@lru_cache(maxsize=None)
def _adapter(output_type: Any) -> TypeAdapter:
    return TypeAdapter(output_type)


class StageRunner:
    """
    Runs stages through the fingerprint cache.
    Safe to share between worker threads.
    """

    def __init__(self, cache: FileCache):
        self.cache = cache
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    def fingerprint(self, stage: Stage, data: Any) -> str:
        return compute_fingerprint(stage.name, stage.version, data)

    def run(self, stage: Stage[I, O], data: I) -> O:
        """
        Return the stage output for ``data``, computing it only on a cache miss.

        Exceptions from ``stage.run`` propagate and nothing is cached, so a
        retry recomputes from scratch.
        """
        key = cache_key(stage.name, self.fingerprint(stage, data))
        adapter = _adapter(stage.output_type)

        cached = self.cache.get(key)
        if cached is not None:
            try:
                value = adapter.validate_python(json.loads(cached))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"[cache corrupt] {stage.name}: {e.__class__.__name__}, recomputing")
            else:
                logger.info(f"[cache hit] {stage.name}")
                self._count(hit=True)
                return value

        logger.info(f"[computing] {stage.name}...")
        self._count(hit=False)
        result = stage.run(data)
        if stage.should_cache is not None and not stage.should_cache(result):
            logger.info(f"[not cached] {stage.name}: incomplete result")
            return result
        self.cache.put(key, stable_json_dumps(result))
        return result

    def _count(self, hit: bool) -> None:
        with self._lock:
            if hit:
                self.hits += 1
            else:
                self.misses += 1
