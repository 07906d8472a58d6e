from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.core.metrics import Metric
from app.models.sample import MetricSample


def normalize_timestamp(ts: datetime) -> datetime:
    """Store everything as naive UTC so SQLite and Postgres compare alike."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


class MetricStore:
    """
    Keyed time series of samples on top of a SQLAlchemy session.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _series(self, metric: Metric):
        return self.db.query(MetricSample).filter(MetricSample.metric_name == metric.value)

    def append(
        self,
        metric: Metric,
        value: float,
        timestamp: datetime,
        *,
        source_weight: Optional[float] = None,
        source_height: Optional[float] = None,
    ) -> MetricSample:
        sample = MetricSample(
            metric_name=metric.value,
            unit=metric.unit,
            value=float(value),
            timestamp=normalize_timestamp(timestamp),
            source_weight=source_weight,
            source_height=source_height,
        )
        self.db.add(sample)
        self.db.flush()
        return sample

    def query(self, metric: Metric) -> list[MetricSample]:
        return self._series(metric).order_by(MetricSample.timestamp, MetricSample.id).all()

    def latest(self, metric: Metric) -> Optional[MetricSample]:
        return (
            self._series(metric)
            .order_by(MetricSample.timestamp.desc(), MetricSample.id.desc())
            .first()
        )

    def timestamps(self, metric: Metric) -> list[datetime]:
        rows = (
            self.db.query(MetricSample.timestamp)
            .filter(MetricSample.metric_name == metric.value)
            .distinct()
            .order_by(MetricSample.timestamp)
            .all()
        )
        return [r[0] for r in rows]

    def delete_by_identity(self, metric: Metric, value: float, timestamp: datetime) -> int:
        """
        Delete samples matching (metric, value, timestamp) exactly.

        Returns the number of rows removed.
        """
        deleted = (
            self._series(metric)
            .filter(
                MetricSample.value == float(value),
                MetricSample.timestamp == normalize_timestamp(timestamp),
            )
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def delete_at(self, metric: Metric, timestamp: datetime) -> int:
        deleted = (
            self._series(metric)
            .filter(MetricSample.timestamp == normalize_timestamp(timestamp))
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def clear_all(self, metric: Metric) -> int:
        deleted = self._series(metric).delete(synchronize_session=False)
        self.db.flush()
        return deleted

    def upsert(
        self,
        metric: Metric,
        value: float,
        timestamp: datetime,
        *,
        source_weight: Optional[float] = None,
        source_height: Optional[float] = None,
    ) -> MetricSample:
        """
        Replace the sample of `metric` at exactly `timestamp`, or append one.

        Extra rows at the same timestamp are dropped so the series keeps a
        single point per timestamp.
        """
        ts = normalize_timestamp(timestamp)
        existing = (
            self._series(metric)
            .filter(MetricSample.timestamp == ts)
            .order_by(MetricSample.id)
            .all()
        )

        if not existing:
            return self.append(
                metric,
                value,
                ts,
                source_weight=source_weight,
                source_height=source_height,
            )

        sample, duplicates = existing[0], existing[1:]
        for dup in duplicates:
            self.db.delete(dup)

        sample.unit = metric.unit
        sample.value = float(value)
        sample.source_weight = source_weight
        sample.source_height = source_height
        self.db.flush()
        return sample
