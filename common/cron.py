"""
크론 표현식 헬퍼

5필드(분 시 일 월 요일) 또는 초 필드가 맨 앞에 오는 6필드 표현식을 지원합니다.
"""

from datetime import datetime

from croniter import croniter


class CronParseError(Exception):
    """크론 표현식 파싱 실패"""
    def __init__(self, cron_expression: str, message: str = None):
        self.cron_expression = cron_expression
        self.message = message or f"Invalid cron expression: {cron_expression}"
        super().__init__(self.message)


def _build(cron_expression: str, start: datetime) -> croniter:
    try:
        return croniter(cron_expression, start, second_at_beginning=True)
    except (ValueError, KeyError) as e:
        raise CronParseError(cron_expression, f"Invalid cron expression '{cron_expression}': {e}")


def validate_cron(cron_expression: str) -> None:
    """
    크론 표현식 검증

    Raises:
        CronParseError: 파싱 실패 시
    """
    _build(cron_expression, datetime.now())


def next_occurrence(cron_expression: str, after: datetime) -> datetime:
    """after 이후(after 자체는 제외) 첫 실행 시점"""
    return _build(cron_expression, after).get_next(datetime)
