"""Scheduler 모듈 - 크론 기반 잡 트리거"""

from scheduler.main import Scheduler, is_due
from scheduler.model import JobSnapshot
from scheduler.exception import (
    SchedulerError,
    JobNotFoundError,
    JobAlreadyRunningError,
)

__all__ = [
    "Scheduler",
    "is_due",
    "JobSnapshot",
    "SchedulerError",
    "JobNotFoundError",
    "JobAlreadyRunningError",
]
