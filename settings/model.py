"""
QueryPush 설정 모델 정의

설정 파일(YAML)의 구조를 그대로 표현합니다. 한 번 로드된 설정은
다음 리로드 전까지 변경되지 않습니다.
"""

import sys
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

UNBOUNDED = sys.maxsize
SUPPORTED_PROVIDERS = ("sqlite", "mysql")


class HttpMethod(str, Enum):
    """엔드포인트 HTTP 메서드"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class RetryStrategy(str, Enum):
    """재시도 전략"""
    DELAY = "delay"
    EXPONENTIAL_BACKOFF = "exponential_backoff"


class PayloadFormat(str, Enum):
    """전송 페이로드 포맷"""
    JSON_ARRAY = "json_array"
    JSON_LINES = "json_lines"


class FailurePolicy(str, Enum):
    """재시도 소진 후 처리 방식"""
    LOG_AND_CONTINUE = "log_and_continue"
    HALT = "halt"
    SLACK_ALERT = "slack_alert"
    EMAIL_ALERT = "email_alert"


class RotationStrategy(str, Enum):
    """로그 파일 롤오버 주기"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    NONE = "none"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class DatabaseConfig(_Frozen):
    """데이터 소스 설정"""
    name: str = Field(min_length=1)
    provider: str = Field(default="sqlite", description="sqlite | mysql")
    # sqlite
    path: str | None = None
    # mysql
    host: str = "localhost"
    port: int = Field(default=3306, ge=1, le=65535)
    database: str | None = None
    user: str | None = None
    password: str = ""
    pool_minsize: int = Field(default=1, ge=0)
    pool_maxsize: int = Field(default=5, ge=1)


class HeaderConfig(_Frozen):
    """HTTP 헤더"""
    name: str = Field(min_length=1)
    value: str


class EndpointConfig(_Frozen):
    """전송 대상 엔드포인트 설정"""
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    method: HttpMethod = HttpMethod.POST
    headers: tuple[HeaderConfig, ...] = ()
    retry_attempts: int = Field(default=3, ge=0, le=10)
    retry_strategy: RetryStrategy = RetryStrategy.DELAY
    backoff_seconds: float = Field(default=15, ge=0, le=300)
    send_request_if_no_results: bool = False
    payload_size: int = Field(default=UNBOUNDED, ge=1, description="청크당 최대 행 수")
    request_delay_ms: int = Field(default=500, ge=0, le=10000)
    request_timeout_seconds: float = Field(default=100, gt=0, le=3600)

    @property
    def max_attempts(self) -> int:
        return self.retry_attempts + 1


class SlackAlertConfig(_Frozen):
    """Slack 웹훅 알림 설정"""
    webhook_url: str = Field(min_length=1)
    channel: str = "#alerts"
    username: str = "QueryPush"
    alert_cooldown_minutes: int = Field(default=60, ge=1, le=1440)


class EmailAlertConfig(_Frozen):
    """이메일 알림 설정"""
    smtp_host: str = Field(min_length=1)
    smtp_port: int = Field(default=587, ge=1, le=65535)
    use_ssl: bool = True
    from_address: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    to_address: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    username: str = ""
    password: str = ""
    timeout_seconds: float = Field(default=30, gt=0)
    alert_cooldown_minutes: int = Field(default=60, ge=1, le=1440)


class AlertConfig(_Frozen):
    """알림 채널 설정 묶음"""
    slack: SlackAlertConfig | None = None
    email: EmailAlertConfig | None = None


class LoggingConfig(_Frozen):
    """로그 설정"""
    level: str = "INFO"
    json_format: bool = False
    log_directory: str | None = "logs"
    rotation_strategy: RotationStrategy = RotationStrategy.DAILY
    retention_days: int = Field(default=30, ge=1, le=365)


class QueryConfig(_Frozen):
    """
    잡 정의

    query_text와 query_file 중 정확히 하나가 지정되어야 하며,
    이 조건은 validate_settings에서 다른 참조 오류와 함께 수집됩니다.
    """
    name: str = Field(min_length=1)
    cron: str = Field(min_length=1)
    database: str = Field(min_length=1)
    endpoint: str = Field(min_length=1)
    enabled: bool = True
    run_on_startup: bool = True
    timeout_seconds: int = Field(default=30, ge=1, le=3600)
    max_rows: int = Field(default=UNBOUNDED, ge=1)
    payload_format: PayloadFormat = PayloadFormat.JSON_ARRAY
    on_failure: FailurePolicy = FailurePolicy.LOG_AND_CONTINUE
    query_text: str | None = None
    query_file: str | None = None


class SchedulerConfig(_Frozen):
    """스케줄러 설정"""
    poll_interval_seconds: float = Field(default=1.0, gt=0, le=60)
    shutdown_timeout_seconds: int = Field(default=30, ge=0, le=3600)
    config_check_interval_seconds: float = Field(default=5.0, gt=0, le=600)
    state_file: str = "QueryState.json"


class QueryPushSettings(_Frozen):
    """설정 파일 루트"""
    databases: tuple[DatabaseConfig, ...] = ()
    endpoints: tuple[EndpointConfig, ...] = ()
    alerts: AlertConfig = AlertConfig()
    logging: LoggingConfig = LoggingConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    queries: tuple[QueryConfig, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _none_to_empty(cls, data):
        # YAML에서 빈 섹션은 None으로 들어옴
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    def get_endpoint(self, name: str) -> EndpointConfig | None:
        return next((e for e in self.endpoints if e.name == name), None)

    def get_database(self, name: str) -> DatabaseConfig | None:
        return next((d for d in self.databases if d.name == name), None)

    @property
    def enabled_queries(self) -> list[QueryConfig]:
        return [q for q in self.queries if q.enabled]
