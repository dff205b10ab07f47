"""Database models."""

from database import Base

from models.credential import UserCredential
from models.metric_sample import MetricSample

__all__ = [
    "Base",
    "UserCredential",
    "MetricSample",
]
