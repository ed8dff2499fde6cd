"""Measurement store: per-user time series persisted as JSON.

Each user's series live in one file, ``<data_dir>/<user_id>.json``::

    {"Weight": {"values": [75.3, 75.1],
                "timestamps": ["2023-05-15T00:00:00+00:00", "..."]}}

Metric names are matched case-insensitively, so "Weight" and "weight" share
one series; the first spelling stored is kept as the display name.

Writes for one user are serialized by a per-user lock. The new state is
written to disk before it replaces the in-memory copy, so a failed write
leaves both the file and the cache as they were.
"""

import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from logging_config import get_logger
from config import DATA_DIR
from utils.file_utils import atomic_write_json, read_json
from utils.measurement_parser import ParsedRecord

logger = get_logger()


@dataclass(frozen=True)
class DataPoint:
    """A stored measurement."""

    key: str
    value: float
    timestamp: datetime


def as_utc(timestamp: datetime) -> datetime:
    """Return ``timestamp`` as an aware UTC datetime (naive means UTC)."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def _find_key(series: dict, key: str) -> Optional[str]:
    """Return the stored spelling of ``key``, ignoring case."""
    folded = key.casefold()
    for existing in series:
        if existing.casefold() == folded:
            return existing
    return None


class MeasurementStore:
    """Per-user append-only measurement series with point deletion."""

    def __init__(self, data_dir: str | Path | None = None):
        """Initialize the store.

        Args:
            data_dir: Directory holding one JSON file per user.
                      Defaults to DATA_DIR/measurements.
        """
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR / "measurements"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        # user_id -> {key: {"values": [...], "timestamps": [datetime, ...]}}
        self._cache: dict[int, dict] = {}
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Locking & persistence
    # ------------------------------------------------------------------

    def _lock_for(self, user_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    def _user_file(self, user_id: int) -> Path:
        return self.data_dir / f"{int(user_id)}.json"

    def _load(self, user_id: int) -> dict:
        """Return the user's series, reading the file on first access.

        Must be called with the user's lock held.
        """
        if user_id in self._cache:
            return self._cache[user_id]

        path = self._user_file(user_id)
        try:
            raw = read_json(path, {})
            series = {
                key: {
                    "values": [float(v) for v in entry["values"]],
                    "timestamps": [as_utc(datetime.fromisoformat(t)) for t in entry["timestamps"]],
                }
                for key, entry in raw.items()
            }
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(
                f"Unreadable measurement file for user {user_id}, starting empty: {e}",
                exc_info=True,
                extra={"user_id": user_id, "path": str(path)}
            )
            series = {}

        with self._locks_guard:
            self._cache[user_id] = series
        return series

    def _commit(self, user_id: int, series: dict) -> None:
        """Persist ``series`` and make it the cached state.

        Must be called with the user's lock held.
        """
        path = self._user_file(user_id)
        if series:
            atomic_write_json(path, {
                key: {
                    "values": entry["values"],
                    "timestamps": [t.isoformat() for t in entry["timestamps"]],
                }
                for key, entry in series.items()
            })
        else:
            path.unlink(missing_ok=True)
        with self._locks_guard:
            self._cache[user_id] = series

    @staticmethod
    def _copy(series: dict) -> dict:
        return {
            key: {"values": list(entry["values"]), "timestamps": list(entry["timestamps"])}
            for key, entry in series.items()
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(
        self,
        user_id: int,
        records: Iterable[ParsedRecord],
        default_timestamp: Optional[datetime] = None
    ) -> list[DataPoint]:
        """Append parsed records to the user's series.

        Args:
            user_id: Owner of the measurements
            records: Parsed records; each keeps its own timestamp if it has one
            default_timestamp: Timestamp for records without one
                               (defaults to the current UTC time)

        Returns:
            The stored data points, in input order
        """
        default = as_utc(default_timestamp) if default_timestamp else datetime.now(timezone.utc)

        with self._lock_for(user_id):
            series = self._copy(self._load(user_id))
            stored = []
            for record in records:
                timestamp = as_utc(record.timestamp) if record.timestamp else default
                key = _find_key(series, record.key) or record.key
                entry = series.setdefault(key, {"values": [], "timestamps": []})
                entry["values"].append(float(record.value))
                entry["timestamps"].append(timestamp)
                stored.append(DataPoint(key=key, value=float(record.value), timestamp=timestamp))

            if stored:
                self._commit(user_id, series)

        logger.info(
            f"Stored {len(stored)} measurement(s)",
            extra={"user_id": user_id, "keys": [p.key for p in stored]}
        )
        return stored

    def delete_point(
        self,
        user_id: int,
        key: str,
        timestamp: datetime,
        value: Optional[float] = None
    ) -> bool:
        """Delete one data point.

        Points sharing a key and timestamp are resolved the same way as in
        ``latest_points``: the one appended last is removed. Passing ``value``
        narrows the match to points with that value.

        Returns:
            True if a matching point existed and was removed
        """
        timestamp = as_utc(timestamp)
        with self._lock_for(user_id):
            series = self._load(user_id)
            stored_key = _find_key(series, key)
            if stored_key is None:
                return False
            entry = series[stored_key]
            matches = [
                i for i, (ts, v) in enumerate(zip(entry["timestamps"], entry["values"]))
                if ts == timestamp and (value is None or v == value)
            ]
            if not matches:
                return False
            index = matches[-1]

            series = self._copy(series)
            entry = series[stored_key]
            del entry["values"][index]
            del entry["timestamps"][index]
            if not entry["values"]:
                del series[stored_key]
            self._commit(user_id, series)

        logger.info(
            f"Deleted data point {stored_key} at {timestamp.isoformat()}",
            extra={"user_id": user_id}
        )
        return True

    def clear(self, user_id: int) -> None:
        """Remove all of a user's data."""
        with self._lock_for(user_id):
            self._commit(user_id, {})
        logger.info("Cleared user data", extra={"user_id": user_id})

    def clear_all(self) -> None:
        """Remove every user's data."""
        for user_id in self.user_ids():
            self.clear(user_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def all_points(self, user_id: int) -> list[DataPoint]:
        """All of a user's data points, oldest first."""
        with self._lock_for(user_id):
            series = self._load(user_id)
            points = [
                DataPoint(key=key, value=value, timestamp=timestamp)
                for key, entry in series.items()
                for value, timestamp in zip(entry["values"], entry["timestamps"])
            ]
        points.sort(key=lambda p: p.timestamp)
        return points

    def latest_points(self, user_id: int) -> list[DataPoint]:
        """The latest data point of each metric, sorted by metric name.

        Latest means the greatest timestamp; on a tie the point appended
        last wins.
        """
        with self._lock_for(user_id):
            series = self._load(user_id)
            latest = []
            for key, entry in series.items():
                pairs = list(zip(entry["timestamps"], entry["values"]))
                if not pairs:
                    continue
                index = max(range(len(pairs)), key=lambda i: (pairs[i][0], i))
                timestamp, value = pairs[index]
                latest.append(DataPoint(key=key, value=value, timestamp=timestamp))
        latest.sort(key=lambda p: p.key.casefold())
        return latest

    def latest_per_key(self, user_id: int) -> dict[str, float]:
        """Mapping of metric name to its latest value."""
        return {point.key: point.value for point in self.latest_points(user_id)}

    def keys(self, user_id: int) -> list[str]:
        """The user's metric names, sorted."""
        with self._lock_for(user_id):
            return sorted(self._load(user_id))

    def user_ids(self) -> list[int]:
        """Ids of all users that have stored data."""
        with self._locks_guard:
            cached = list(self._cache.items())
        ids = {user_id for user_id, series in cached if series}
        for path in self.data_dir.glob("*.json"):
            try:
                ids.add(int(path.stem))
            except ValueError:
                continue
        return sorted(ids)


_store: Optional[MeasurementStore] = None
_store_lock = threading.Lock()


def get_measurement_store() -> MeasurementStore:
    """Return the process-wide store, creating it on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = MeasurementStore()
        return _store
