"""Background analysis jobs."""

from equilens.jobs.manager import JobManager
from equilens.jobs.models import Job, JobStatus

__all__ = ["Job", "JobManager", "JobStatus"]
