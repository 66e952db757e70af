"""
공통 모듈 테스트 (크론, 재시도 지연, 로깅)

테스트 항목:
1. 크론 다음 실행 시점 (5필드 / 6필드)
2. 잘못된 크론 표현식
3. 고정 지연 / 지수 백오프
4. 로그 파일 핸들러 선택
5. correlation_id 필터 및 JSON 포맷

실행: python -m pytest test/common_test.py -v
"""

import io
import json
import logging
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from common.cron import CronParseError, next_occurrence, validate_cron
from common.logging import (
    CorrelationIdFilter,
    CustomJsonFormatter,
    MonthlyRotatingFileHandler,
    _create_file_handler,
    generate_short_id,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from common.retry import calculate_delay, endpoint_delay
from settings.model import EndpointConfig, RetryStrategy

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================
# Cron Tests
# ============================================================

class TestCron:
    """크론 헬퍼 테스트"""

    def test_next_occurrence_is_strictly_after(self):
        assert next_occurrence("*/5 * * * *", datetime(2024, 1, 1, 10, 0)) == datetime(2024, 1, 1, 10, 5)
        assert next_occurrence("*/5 * * * *", datetime(2024, 1, 1, 10, 3, 20)) == datetime(2024, 1, 1, 10, 5)

    def test_six_field_seconds_first(self):
        after = datetime(2024, 1, 1, 10, 0, 0)
        assert next_occurrence("30 * * * * *", after) == datetime(2024, 1, 1, 10, 0, 30)
        assert next_occurrence("0 0 6 * * *", after) == datetime(2024, 1, 2, 6, 0, 0)

    @pytest.mark.parametrize("expression", ["", "not a cron", "61 * * * *", "* * *"])
    def test_invalid_expression(self, expression):
        with pytest.raises(CronParseError) as exc_info:
            validate_cron(expression)
        assert exc_info.value.cron_expression == expression


# ============================================================
# Retry Tests
# ============================================================

class TestRetryDelay:
    """재시도 지연 계산 테스트"""

    def test_fixed_delay_is_constant(self):
        delays = [calculate_delay(RetryStrategy.DELAY, 15, attempt) for attempt in range(1, 6)]
        assert delays == [15.0] * 5

    def test_exponential_backoff(self):
        delays = [calculate_delay(RetryStrategy.EXPONENTIAL_BACKOFF, 2, attempt) for attempt in range(1, 4)]
        assert delays == [2, 4, 8]

    def test_attempt_is_one_indexed(self):
        with pytest.raises(ValueError):
            calculate_delay(RetryStrategy.DELAY, 1, 0)

    def test_endpoint_delay(self):
        endpoint = EndpointConfig(
            name="e",
            url="http://localhost",
            retry_strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
            backoff_seconds=3,
        )
        assert endpoint_delay(endpoint, 3) == 12


# ============================================================
# Logging Tests
# ============================================================

class TestLogging:
    """로깅 설정 테스트"""

    @pytest.mark.parametrize("strategy, expected_when, expected_backups", [
        ("daily", "MIDNIGHT", 30),
        ("weekly", "W0", 4),
    ])
    def test_timed_handlers(self, tmp_path, strategy, expected_when, expected_backups):
        handler = _create_file_handler(str(tmp_path), strategy, 30)
        try:
            assert isinstance(handler, TimedRotatingFileHandler)
            assert handler.when == expected_when
            assert handler.backupCount == expected_backups
            assert Path(handler.baseFilename).name == "querypush.log"
        finally:
            handler.close()

    def test_monthly_handler_rolls_on_first_of_month(self, tmp_path):
        handler = _create_file_handler(str(tmp_path), "monthly", 90)
        try:
            assert isinstance(handler, MonthlyRotatingFileHandler)
            assert handler.backupCount == 3
            rollover = handler.computeRollover(int(datetime(2024, 12, 15, 8, 0).timestamp()))
            assert datetime.fromtimestamp(rollover) == datetime(2025, 1, 1)
        finally:
            handler.close()

    def test_no_rotation(self, tmp_path):
        handler = _create_file_handler(str(tmp_path), "none", 30)
        try:
            assert type(handler) is logging.FileHandler
        finally:
            handler.close()

    def test_correlation_id_in_json_output(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(CustomJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s'))
        handler.addFilter(CorrelationIdFilter())

        test_logger = logging.getLogger("querypush.test.json")
        test_logger.addHandler(handler)
        test_logger.propagate = False

        correlation_id = generate_short_id()
        token = set_correlation_id(correlation_id)
        try:
            test_logger.warning("inside run")
        finally:
            reset_correlation_id(token)
            test_logger.removeHandler(handler)

        record = json.loads(stream.getvalue().strip())
        assert record["message"] == "inside run"
        assert record["level"] == "WARNING"
        assert record["logger"] == "querypush.test.json"
        assert record["correlation_id"] == correlation_id
        assert len(correlation_id) == 8
        assert get_correlation_id() is None
