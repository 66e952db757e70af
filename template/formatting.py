"""
날짜 포맷 문자열 처리

설정 파일에서 사용하는 yyyy-MM-dd HH:mm:ss 스타일 포맷을 해석합니다.
월/요일 이름은 로캘과 무관하게 영어로 출력합니다.
"""

from datetime import datetime

DEFAULT_FORMAT = "yyyy-MM-dd HH:mm:ss"

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# 한 글자 표준 포맷
STANDARD_FORMATS = {
    "d": "MM/dd/yyyy",
    "D": "dddd, dd MMMM yyyy",
    "f": "dddd, dd MMMM yyyy HH:mm",
    "F": "dddd, dd MMMM yyyy HH:mm:ss",
    "g": "MM/dd/yyyy HH:mm",
    "G": "MM/dd/yyyy HH:mm:ss",
    "o": "yyyy-MM-dd'T'HH:mm:ss.fffffffK",
    "O": "yyyy-MM-dd'T'HH:mm:ss.fffffffK",
    "s": "yyyy-MM-dd'T'HH:mm:ss",
    "t": "HH:mm",
    "T": "HH:mm:ss",
    "u": "yyyy-MM-dd HH:mm:ss'Z'",
}


def _offset(dt: datetime) -> tuple[str, int, int]:
    aware = dt if dt.tzinfo is not None else dt.astimezone()
    delta = aware.utcoffset()
    total_minutes = int(delta.total_seconds() // 60)
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return sign, hours, minutes


def _run_length(fmt: str, pos: int) -> int:
    ch = fmt[pos]
    end = pos
    while end < len(fmt) and fmt[end] == ch:
        end += 1
    return end - pos


def _fraction(dt: datetime, digits: int, trim: bool) -> str:
    # 마이크로초 이하 자릿수는 0으로 채움
    text = f"{dt.microsecond:06d}0"[:digits]
    return text.rstrip("0") if trim else text


def _field(dt: datetime, ch: str, count: int) -> str | None:
    if ch == "y":
        if count <= 2:
            year = dt.year % 100
            return f"{year:02d}" if count == 2 else str(year)
        return f"{dt.year:0{count}d}"
    if ch == "M":
        if count >= 4:
            return MONTH_NAMES[dt.month - 1]
        if count == 3:
            return MONTH_NAMES[dt.month - 1][:3]
        return f"{dt.month:02d}" if count == 2 else str(dt.month)
    if ch == "d":
        if count >= 4:
            return DAY_NAMES[dt.weekday()]
        if count == 3:
            return DAY_NAMES[dt.weekday()][:3]
        return f"{dt.day:02d}" if count == 2 else str(dt.day)
    if ch in ("H", "h", "m", "s"):
        if ch == "H":
            value = dt.hour
        elif ch == "h":
            value = dt.hour % 12 or 12
        elif ch == "m":
            value = dt.minute
        else:
            value = dt.second
        return f"{value:02d}" if count >= 2 else str(value)
    if ch in ("f", "F"):
        return _fraction(dt, min(count, 7), trim=(ch == "F"))
    if ch == "t":
        marker = "AM" if dt.hour < 12 else "PM"
        return marker if count >= 2 else marker[0]
    if ch == "z":
        sign, hours, minutes = _offset(dt)
        if count >= 3:
            return f"{sign}{hours:02d}:{minutes:02d}"
        return f"{sign}{hours:02d}" if count == 2 else f"{sign}{hours}"
    if ch == "K":
        if dt.tzinfo is None:
            return ""
        sign, hours, minutes = _offset(dt)
        if sign == "+" and hours == 0 and minutes == 0:
            return "Z"
        return f"{sign}{hours:02d}:{minutes:02d}"
    return None


def format_datetime(dt: datetime, fmt: str) -> str:
    """
    포맷 문자열로 datetime 출력

    지원 지정자: yyyy yy y, MMMM MMM MM M, dddd ddd dd d, HH H hh h, mm m, ss s,
    f..fffffff, F..FFFFFFF, tt t, zzz zz z, K
    '...' / "..." 는 리터럴, \\x 는 한 글자 이스케이프, %x 는 한 글자 사용자 지정 포맷.
    한 글자 포맷(d, D, s, o, u 등)은 표준 포맷으로 해석합니다.
    """
    if len(fmt) == 1 and fmt in STANDARD_FORMATS:
        fmt = STANDARD_FORMATS[fmt]

    out: list[str] = []
    pos = 0
    while pos < len(fmt):
        ch = fmt[pos]

        if ch in ("'", '"'):
            end = fmt.find(ch, pos + 1)
            if end == -1:
                end = len(fmt)
            out.append(fmt[pos + 1:end])
            pos = end + 1
            continue

        if ch == "\\" and pos + 1 < len(fmt):
            out.append(fmt[pos + 1])
            pos += 2
            continue

        if ch == "%" and pos + 1 < len(fmt):
            pos += 1
            continue

        count = _run_length(fmt, pos)
        value = _field(dt, ch, count)
        if value is None:
            out.append(fmt[pos:pos + count])
        else:
            out.append(value)
        pos += count

    return "".join(out)
