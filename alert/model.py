"""
알림 메시지 모델
"""

import traceback
from dataclasses import dataclass
from datetime import datetime

from settings.model import QueryConfig


@dataclass(frozen=True)
class AlertMessage:
    """채널에 관계없이 알림에 들어가는 내용"""
    job_name: str
    database: str
    endpoint: str
    cron: str
    occurred_at: datetime
    query_text: str
    error_type: str
    error_message: str
    stack_trace: str | None = None

    @classmethod
    def from_failure(
        cls,
        job: QueryConfig,
        query_text: str,
        error: BaseException,
        occurred_at: datetime,
    ) -> "AlertMessage":
        stack = None
        if error.__traceback__ is not None:
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return cls(
            job_name=job.name,
            database=job.database,
            endpoint=job.endpoint,
            cron=job.cron,
            occurred_at=occurred_at,
            query_text=query_text,
            error_type=type(error).__name__,
            error_message=str(error),
            stack_trace=stack,
        )
