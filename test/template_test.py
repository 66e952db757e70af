"""
Template Engine 테스트

테스트 항목:
1. 토큰 분해 (리터럴 / 기본 / 포맷 / 오프셋 형태)
2. 날짜 포맷 지정자
3. 변수 치환 (DateTimeNow, DateNow, LastRun, Env, 알 수 없는 변수)
4. 오프셋 + 포맷 조합

실행: python -m pytest test/template_test.py -v
"""

import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from state.main import StateStore
from template.formatting import format_datetime
from template.main import TemplateEngine
from template.token import TemplateToken, parse_offset, parse_token, tokenize

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

NOW = datetime(2024, 3, 9, 14, 5, 7, 123456)


@pytest.fixture
def state_store(tmp_path):
    return StateStore(tmp_path / "state.json")


@pytest.fixture
def engine(state_store):
    return TemplateEngine(state_store, clock=lambda: NOW, environ={"REGION": "eu-west"})


# ============================================================
# Token Tests
# ============================================================

class TestTokenize:
    """토큰 분해 테스트"""

    def test_plain_text(self):
        assert list(tokenize("SELECT 1")) == ["SELECT 1"]

    def test_base_token(self):
        parts = list(tokenize("a {Guid} b"))
        assert parts[0] == "a "
        assert parts[1] == TemplateToken(raw="{Guid}", base="Guid")
        assert parts[2] == " b"

    def test_format_token(self):
        token = parse_token("DateTimeNow|yyyy-MM-dd")
        assert token.base == "DateTimeNow"
        assert token.fmt == "yyyy-MM-dd"
        assert token.offset is None

    def test_offset_token(self):
        token = parse_token("LastRun|-00:05:00|HH:mm")
        assert token.base == "LastRun"
        assert token.offset == timedelta(minutes=-5)
        assert token.fmt == "HH:mm"

    def test_offset_without_format_is_format_form(self):
        """포맷이 없으면 오프셋 형태가 아님"""
        token = parse_token("LastRun|+01:00:00")
        assert token.offset is None
        assert token.fmt == "+01:00:00"

    def test_format_containing_pipe(self):
        """두 번째 조각이 오프셋이 아니면 나머지 전체가 포맷"""
        token = parse_token("DateTimeNow|yyyy|MM")
        assert token.offset is None
        assert token.fmt == "yyyy|MM"

    def test_unclosed_and_empty_braces_are_literal(self):
        assert list(tokenize("x {} y {Guid")) == ["x {} y {Guid"]

    def test_parse_offset_rejects_invalid(self):
        with pytest.raises(ValueError):
            parse_offset("01:00:00")
        assert parse_offset("+25:00:00") == timedelta(hours=25)


# ============================================================
# Formatting Tests
# ============================================================

class TestFormatting:
    """날짜 포맷 테스트"""

    def test_common_specifiers(self):
        assert format_datetime(NOW, "yyyy-MM-dd HH:mm:ss") == "2024-03-09 14:05:07"
        assert format_datetime(NOW, "yy/M/d h:m:s tt") == "24/3/9 2:5:7 PM"
        assert format_datetime(NOW, "dddd, MMMM dd") == "Saturday, March 09"
        assert format_datetime(NOW, "ddd MMM") == "Sat Mar"

    def test_fraction(self):
        assert format_datetime(NOW, "fff") == "123"
        assert format_datetime(NOW.replace(microsecond=100000), "FFF") == "1"

    def test_literals_and_escapes(self):
        assert format_datetime(NOW, "yyyy'T'HH") == "2024T14"
        assert format_datetime(NOW, "\\d\\a\\y d") == "day 9"

    def test_standard_formats(self):
        assert format_datetime(NOW, "s") == "2024-03-09T14:05:07"
        assert format_datetime(NOW, "d") == "03/09/2024"
        assert format_datetime(NOW, "%d") == "9"

    def test_utc_designator(self):
        aware = datetime(2024, 3, 9, 14, 5, 7, tzinfo=timezone.utc)
        assert format_datetime(aware, "HH:mmK") == "14:05Z"
        assert format_datetime(aware, "zzz") == "+00:00"


# ============================================================
# Engine Tests
# ============================================================

class TestTemplateEngine:
    """변수 치환 테스트"""

    def test_datetime_now_with_format(self, engine):
        assert engine.resolve("{DateTimeNow|yyyy-MM-dd}", "job") == "2024-03-09"

    def test_default_string_form(self, engine):
        assert engine.resolve("{DateTimeNow}", "job") == "2024-03-09 14:05:07"
        assert engine.resolve("{DateNow}", "job") == "2024-03-09 00:00:00"

    @pytest.mark.asyncio
    async def test_last_run_with_offset_and_format(self, engine, state_store):
        await state_store.set_last_run("job", datetime(2024, 3, 9, 10, 30, 0))
        assert engine.resolve("{LastRun|+01:00:00|HH:mm}", "job") == "11:30"

    def test_last_run_absent_is_empty(self, engine):
        assert engine.resolve("since '{LastRun|yyyy-MM-dd}'", "never") == "since ''"

    def test_unknown_variable_is_empty(self, engine):
        assert engine.resolve("[{NoSuchThing}]", "job") == "[]"
        assert engine.resolve("[{NoSuchThing|yyyy}]", "job") == "[]"

    def test_environment_variable(self, engine):
        assert engine.resolve("{Env:REGION}/{Env:MISSING}", "job") == "eu-west/"

    def test_format_ignored_for_non_timestamp(self, engine):
        assert engine.resolve("{Env:REGION|yyyy}", "job") == "eu-west"

    def test_guid_and_machine_name(self, engine):
        guid = engine.resolve("{Guid}", "job")
        assert len(guid) == 36
        assert engine.resolve("{Guid}", "job") != guid
        assert engine.resolve("{MachineName}", "job") != ""

    def test_utc_now_is_aware(self, engine):
        assert engine.resolve("{UtcNow|K}", "job") == "Z"

    def test_multiple_tokens(self, engine):
        sql = "WHERE d >= '{DateNow|-24:00:00|yyyy-MM-dd}' AND d < '{DateNow|yyyy-MM-dd}'"
        assert engine.resolve(sql, "job") == "WHERE d >= '2024-03-08' AND d < '2024-03-09'"
