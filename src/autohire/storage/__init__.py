"""SQL persistence for jobs, applications and screening runs."""

from .applications import ApplicationRepository
from .database import Base, Database, init_database, utcnow
from .jobs import JobRepository
from .runs import RunTracker

__all__ = [
    "ApplicationRepository",
    "Base",
    "Database",
    "JobRepository",
    "RunTracker",
    "init_database",
    "utcnow",
]
