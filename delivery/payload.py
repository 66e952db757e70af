"""
결과 행 청크 분할 및 직렬화
"""

import base64
import json
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Sequence

from database.base import Row
from settings.model import UNBOUNDED, PayloadFormat


def chunk_rows(rows: Sequence[Row], chunk_size: int | None) -> list[list[Row]]:
    """
    행 목록을 chunk_size 단위로 분할 (원래 순서 유지, 마지막 청크는 나머지)

    chunk_size가 None 또는 UNBOUNDED면 전체가 하나의 청크입니다.
    빈 목록은 청크가 없습니다.
    """
    if not rows:
        return []
    if chunk_size is None or chunk_size >= UNBOUNDED:
        return [list(rows)]
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    return [list(rows[i:i + chunk_size]) for i in range(0, len(rows), chunk_size)]


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, uuid.UUID):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(obj: Any) -> str:
    return json.dumps(obj, default=_json_default, ensure_ascii=False, separators=(",", ":"))


def serialize_chunk(rows: Sequence[Row], payload_format: PayloadFormat) -> str:
    """
    청크를 페이로드 문자열로 직렬화

    json_array: 하나의 JSON 배열
    json_lines: 행마다 JSON 객체 하나, 줄바꿈으로 연결
    """
    if payload_format == PayloadFormat.JSON_LINES:
        return "\n".join(_dumps(row) for row in rows)
    return _dumps(list(rows))
