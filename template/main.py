"""
Template Engine: 쿼리 텍스트 변수 치환

지원 변수:
    DateTimeNow     현재 로컬 시각
    UtcNow          현재 UTC 시각
    DateNow         오늘 날짜 (로컬, 00:00:00)
    LastRun         해당 잡의 마지막 성공 실행 시각 (없으면 빈 문자열)
    Guid            새 UUID
    MachineName     호스트 이름
    Env:<NAME>      환경 변수

사용 예시:
    engine = TemplateEngine(state_store)
    sql = engine.resolve("SELECT * FROM t WHERE updated_at > '{LastRun|-00:05:00|yyyy-MM-dd HH:mm:ss}'", "orders")
"""

import logging
import os
import socket
import uuid
from datetime import datetime, time, timezone
from typing import Any, Callable, Mapping

from state.main import StateStore
from template.formatting import DEFAULT_FORMAT, format_datetime
from template.token import TemplateToken, tokenize

logger = logging.getLogger(__name__)

ENV_PREFIX = "Env:"


class TemplateEngine:
    """{...} 토큰을 실제 값으로 치환"""

    def __init__(
        self,
        state_store: StateStore,
        clock: Callable[[], datetime] = datetime.now,
        environ: Mapping[str, str] | None = None,
    ):
        self._state_store = state_store
        self._clock = clock
        self._environ = environ

    def resolve(self, text: str, job_name: str) -> str:
        """텍스트 안의 모든 토큰 치환"""
        parts: list[str] = []
        token_count = 0

        for part in tokenize(text):
            if isinstance(part, str):
                parts.append(part)
                continue

            token_count += 1
            replacement = self.resolve_token(part, job_name)
            logger.debug(f"Replaced variable '{part.raw}' with '{replacement}' for query '{job_name}'")
            parts.append(replacement)

        if token_count:
            logger.debug(f"Variable replacement completed for query '{job_name}' (found {token_count} variables)")
        return "".join(parts)

    def resolve_token(self, token: TemplateToken, job_name: str) -> str:
        """토큰 하나를 문자열로 변환"""
        value = self._base_value(token.base, job_name)

        if isinstance(value, datetime):
            if token.offset is not None:
                value = value + token.offset
            if token.fmt is not None:
                return format_datetime(value, token.fmt)

        return self._to_string(value)

    def _base_value(self, base: str, job_name: str) -> Any:
        if base == "DateTimeNow":
            return self._clock()
        if base == "UtcNow":
            return self._utc_now()
        if base == "DateNow":
            return datetime.combine(self._clock().date(), time())
        if base == "LastRun":
            return self._state_store.get_last_run(job_name)
        if base == "Guid":
            return uuid.uuid4()
        if base == "MachineName":
            return socket.gethostname()
        if base.startswith(ENV_PREFIX):
            environ = self._environ if self._environ is not None else os.environ
            return environ.get(base[len(ENV_PREFIX):])
        return None

    def _utc_now(self) -> datetime:
        local = self._clock()
        if local.tzinfo is None:
            local = local.astimezone()
        return local.astimezone(timezone.utc)

    @staticmethod
    def _to_string(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, datetime):
            return format_datetime(value, DEFAULT_FORMAT)
        return str(value)
