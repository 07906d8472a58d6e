from app.models.sample import MetricSample

__all__ = [
    "MetricSample",
]
