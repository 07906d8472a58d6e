import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.core.metrics import Metric
from app.core.store import MetricStore, normalize_timestamp

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class Companion:
    """A sample picked to pair with a target date, plus how far away it is."""

    value: float
    timestamp: datetime
    distance: timedelta
    in_window: bool


def find_companion(
    store: MetricStore,
    metric: Metric,
    target: datetime,
    *,
    window: timedelta = DEFAULT_WINDOW,
) -> Optional[Companion]:
    """
    Return the sample of `metric` closest to `target`.

    Samples within ±window (inclusive) are preferred. When none are in the
    window, the closest sample of the whole series is returned however far
    away it is; check `in_window`/`distance` before trusting such a match.

    Ties on distance go to the earlier timestamp; ties on timestamp go to the
    most recently inserted sample.
    """
    series = store.query(metric)
    if not series:
        return None

    target = normalize_timestamp(target)

    # query() orders by (timestamp, id): a later index is a newer insert
    def _key(item):
        idx, sample = item
        return (abs(sample.timestamp - target), sample.timestamp, -idx)

    candidates = list(enumerate(series))
    in_window = [c for c in candidates if abs(c[1].timestamp - target) <= window]
    pool = in_window or candidates

    _, best = min(pool, key=_key)
    companion = Companion(
        value=best.value,
        timestamp=best.timestamp,
        distance=abs(best.timestamp - target),
        in_window=bool(in_window),
    )

    if not companion.in_window:
        logger.debug(
            "%s: no sample within %s of %s, falling back to %s (%s away)",
            metric.value,
            window,
            target.isoformat(),
            companion.timestamp.isoformat(),
            companion.distance,
        )
    return companion
