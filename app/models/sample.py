# app/models/sample.py

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from app.core.db import Base


class MetricSample(Base):
    """
    One time-series point for a raw or derived metric.

    Raw and derived series share this table and are told apart by metric_name.
    """

    __tablename__ = "metric_samples"
    __table_args__ = (Index("ix_metric_samples_name_ts", "metric_name", "timestamp"),)

    id = Column(Integer, primary_key=True, index=True)

    metric_name = Column(String(32), nullable=False)
    unit = Column(String(8), nullable=False)
    value = Column(Float, nullable=False)

    # When the measurement happened (naive UTC)
    timestamp = Column(DateTime, nullable=False)

    # Inputs a BMI sample was computed from, kept for auditing
    source_weight = Column(Float)
    source_height = Column(Float)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return (
            f"MetricSample({self.metric_name}={self.value}{self.unit} "
            f"@ {self.timestamp.isoformat() if self.timestamp else None})"
        )
