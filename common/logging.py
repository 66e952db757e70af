"""
JSON 구조화 로깅 설정

ELK/Loki 등 로그 수집 시스템과 연동 가능한 JSON 포맷 로깅을 제공합니다.
잡 실행 단위로 correlation_id를 부여하여 한 번의 실행에서 나온 로그를 묶어볼 수 있습니다.
"""

import base64
import contextvars
import logging
import re
import sys
import uuid
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

LOG_FILE_NAME = "querypush.log"

# 현재 실행 중인 잡의 correlation id (태스크별로 분리됨)
_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_short_id() -> str:
    """8자리 url-safe 식별자 생성"""
    return base64.urlsafe_b64encode(uuid.uuid4().bytes).decode("ascii")[:8]


def set_correlation_id(value: str | None) -> contextvars.Token:
    return _correlation_id.set(value)


def reset_correlation_id(token: contextvars.Token) -> None:
    _correlation_id.reset(token)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


class CorrelationIdFilter(logging.Filter):
    """모든 로그 레코드에 correlation_id 속성 추가"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or "-"
        return True


class CustomJsonFormatter(JsonFormatter):
    """JSON 로그 포매터"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = self.formatTime(record)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['correlation_id'] = getattr(record, 'correlation_id', '-')

        # message 필드 정리
        if 'message' not in log_record and record.getMessage():
            log_record['message'] = record.getMessage()


class MonthlyRotatingFileHandler(TimedRotatingFileHandler):
    """매월 1일 자정에 롤오버하는 파일 핸들러"""

    def __init__(self, filename, backupCount: int = 0, encoding: str | None = None):
        super().__init__(filename, when="midnight", backupCount=backupCount, encoding=encoding)
        self.suffix = "%Y-%m"
        self.extMatch = re.compile(r"^\d{4}-\d{2}$", re.ASCII)

    def computeRollover(self, currentTime: int) -> int:
        now = datetime.fromtimestamp(currentTime)
        if now.month == 12:
            first_of_next = datetime(now.year + 1, 1, 1)
        else:
            first_of_next = datetime(now.year, now.month + 1, 1)
        return int(first_of_next.timestamp())


def _create_file_handler(
    log_directory: str,
    rotation_strategy: str,
    retention_days: int,
) -> logging.Handler:
    """rotation_strategy에 맞는 파일 핸들러 생성"""
    log_dir = Path(log_directory)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    if rotation_strategy == "daily":
        return TimedRotatingFileHandler(
            log_path, when="midnight", backupCount=retention_days, encoding="utf-8"
        )
    if rotation_strategy == "weekly":
        # 백업 파일 수는 보존 일수를 주 단위로 환산
        return TimedRotatingFileHandler(
            log_path, when="W0", backupCount=max(1, retention_days // 7), encoding="utf-8"
        )
    if rotation_strategy == "monthly":
        return MonthlyRotatingFileHandler(
            log_path, backupCount=max(1, retention_days // 30), encoding="utf-8"
        )
    return logging.FileHandler(log_path, encoding="utf-8")


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_directory: str | None = None,
    rotation_strategy: str = "daily",
    retention_days: int = 30,
) -> None:
    """
    로깅 설정

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON 포맷 사용 여부 (False면 기본 텍스트 포맷)
        log_directory: 로그 파일 디렉토리 (None이면 stdout만 사용)
        rotation_strategy: 로그 파일 롤오버 주기 (daily, weekly, monthly, none)
        retention_days: 로그 파일 보존 일수
    """
    handlers = []

    # stdout 핸들러
    stream_handler = logging.StreamHandler(sys.stdout)

    if json_format:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s'
        )

    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    # 파일 핸들러 (옵션)
    if log_directory:
        file_handler = _create_file_handler(log_directory, rotation_strategy, retention_days)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    correlation_filter = CorrelationIdFilter()
    for h in handlers:
        h.addFilter(correlation_filter)

    # 루트 로거 설정
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True  # 기존 설정 덮어쓰기
    )

    # 외부 라이브러리 로그 레벨 조정
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('aiosqlite').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
