"""Staleness decisions for cached records."""

from datetime import datetime, timedelta
from typing import Optional, Union

from .types import CachedFeatureRecord, CachedFlagRecord

# How far a degraded record's refreshed_at is pushed into the past.
BACKDATE_INTERVAL = timedelta(days=1)


class StalenessPolicy:
    """Decides whether a cached record can be served without a refresh.

    Without a freshness window, records stay fresh until they are replaced
    or evicted; only a record with an empty mapping (the degraded marker) is
    stale. With a window, records older than the window are stale as well.
    """

    def __init__(self, freshness_window: Optional[timedelta] = None) -> None:
        self._window = freshness_window

    @property
    def freshness_window(self) -> Optional[timedelta]:
        """Return the configured freshness window, if any."""
        return self._window

    def is_stale(
        self,
        record: Union[CachedFlagRecord, CachedFeatureRecord],
        now: datetime,
    ) -> bool:
        if not record.values:
            return True
        if self._window is None:
            return False
        return now - record.refreshed_at > self._window
