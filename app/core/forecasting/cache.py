from __future__ import annotations

import hashlib
import struct
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from app.core.forecasting.domain import NormalizationParameters
from app.core.forecasting.predictor import Predictor


CacheKey = tuple[str, int, int, Optional[date], Optional[date]]


def make_cache_key(
    product_id: str,
    lookback: int,
    horizon: int,
    window_start: Optional[date],
    window_end: Optional[date],
) -> CacheKey:
    return (product_id, lookback, horizon, window_start, window_end)


def series_fingerprint(values: Sequence[float]) -> str:
    digest = hashlib.sha1()
    for v in values:
        digest.update(struct.pack("<d", float(v)))
    return digest.hexdigest()


@dataclass
class CachedModel:
    predictor: Predictor
    normalization: NormalizationParameters
    train_sample_count: int
    backtest_error: Optional[float] = None


@dataclass
class _Entry:
    fingerprint: str
    model: CachedModel


class ModelCache:
    """Bounded LRU of trained models per (product, lookback, horizon, window).

    An entry is only returned when the series it was trained on has the same
    fingerprint as the series being forecast; a changed series drops it.
    """

    def __init__(self, max_entries: int = 256) -> None:
        self._max_entries = max(0, max_entries)
        self._entries: OrderedDict[CacheKey, _Entry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._max_entries > 0

    def get(self, key: CacheKey, fingerprint: str) -> Optional[CachedModel]:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.fingerprint != fingerprint:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.model

    def put(self, key: CacheKey, fingerprint: str, model: CachedModel) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries[key] = _Entry(fingerprint=fingerprint, model=model)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, product_id: str) -> int:
        """Drop every entry of a product; returns how many were removed."""

        with self._lock:
            stale = [key for key in self._entries if key[0] == product_id]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
