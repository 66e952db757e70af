"""
실행 이력 모델

상태 파일(JSON)의 구조:
    {
        "last_run_times": {"<job>": "<ISO-8601>"},
        "last_alert_times": {"<job>:<channel>": "<ISO-8601>"}
    }

오프셋이 붙은 시각("Z", "+02:00")은 로컬 naive 시각으로 변환해 보관합니다.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def alert_key(job_name: str, channel: str) -> str:
    """(job, channel) 복합 키"""
    return f"{job_name}:{channel}"


def to_local_naive(value: datetime) -> datetime:
    """aware datetime -> 로컬 naive datetime (naive는 그대로)"""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class RunState(BaseModel):
    """잡별 마지막 성공 실행 / 알림 시각"""
    last_run_times: dict[str, datetime] = Field(default_factory=dict)
    last_alert_times: dict[str, datetime] = Field(default_factory=dict)

    @field_validator("last_run_times", "last_alert_times")
    @classmethod
    def normalize_timezone(cls, v: dict[str, datetime]) -> dict[str, datetime]:
        return {key: to_local_naive(value) for key, value in v.items()}
