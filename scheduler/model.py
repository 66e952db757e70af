"""
스케줄러 모델 정의
"""

from dataclasses import dataclass, field
from datetime import datetime

from settings.model import EndpointConfig, QueryConfig


@dataclass(frozen=True)
class JobSnapshot:
    """
    설정 한 세대의 잡 집합

    리로드 시 부분 수정 없이 통째로 교체됩니다.
    """
    jobs: dict[str, QueryConfig] = field(default_factory=dict)
    endpoints: dict[str, EndpointConfig] = field(default_factory=dict)
    # 잡별 최초 로드 시각 (run_on_startup=false 잡의 첫 실행 기준)
    first_seen: dict[str, datetime] = field(default_factory=dict)
    loaded_at: datetime | None = None

    def endpoint_for(self, job: QueryConfig) -> EndpointConfig | None:
        return self.endpoints.get(job.endpoint)
