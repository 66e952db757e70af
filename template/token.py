"""
변수 토큰 파서

쿼리 텍스트 안의 {...} 토큰을 세 가지 형태로 구분합니다 (우선순위 순):

    {Base|±HH:MM:SS|Format}   오프셋 형태
    {Base|Format}             포맷 형태
    {Base}                    기본 형태
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Iterator


@dataclass(frozen=True)
class TemplateToken:
    """파싱된 변수 토큰"""
    raw: str
    base: str
    offset: timedelta | None = None
    fmt: str | None = None


def _is_offset(text: str) -> bool:
    """±HH:MM:SS 형식인지 확인"""
    if len(text) != 9 or text[0] not in ("+", "-"):
        return False
    parts = text[1:].split(":")
    return len(parts) == 3 and all(
        len(p) == 2 and p.isascii() and p.isdigit() for p in parts
    )


def parse_offset(text: str) -> timedelta:
    """
    ±HH:MM:SS -> timedelta

    Raises:
        ValueError: 형식이 맞지 않는 경우
    """
    if not _is_offset(text):
        raise ValueError(f"Invalid offset '{text}', expected ±HH:MM:SS")
    hours, minutes, seconds = (int(p) for p in text[1:].split(":"))
    delta = timedelta(hours=hours, minutes=minutes, seconds=seconds)
    return -delta if text[0] == "-" else delta


def parse_token(body: str) -> TemplateToken:
    """중괄호 안쪽 문자열을 토큰으로 변환"""
    raw = "{" + body + "}"
    base, sep, rest = body.partition("|")
    if not sep:
        return TemplateToken(raw=raw, base=body)

    offset_text, sep2, fmt = rest.partition("|")
    if sep2 and fmt and _is_offset(offset_text):
        return TemplateToken(raw=raw, base=base, offset=parse_offset(offset_text), fmt=fmt)

    return TemplateToken(raw=raw, base=base, fmt=rest)


def tokenize(text: str) -> Iterator[str | TemplateToken]:
    """
    텍스트를 리터럴 문자열과 TemplateToken의 나열로 분해

    닫히지 않은 '{' 와 빈 '{}' 는 리터럴로 남습니다.
    """
    pos = 0
    literal_start = 0
    length = len(text)

    while pos < length:
        if text[pos] != "{":
            pos += 1
            continue

        end = text.find("}", pos + 1)
        if end == -1:
            break
        if end == pos + 1:
            pos += 1
            continue

        if literal_start < pos:
            yield text[literal_start:pos]
        yield parse_token(text[pos + 1:end])
        pos = end + 1
        literal_start = pos

    if literal_start < length:
        yield text[literal_start:]
