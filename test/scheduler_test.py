"""
Scheduler 테스트

테스트 항목:
1. 실행 시점 판단 (실행 이력 없음 / 있음, */5 시나리오)
2. 잘못된 크론 표현식 -> 실행 안 함, 잡 단위 판단 오류 격리
3. run_on_startup=false 잡의 첫 실행
4. 실행 중인 잡 건너뜀 (skip_counts)
5. 실패한 잡 보류
6. 설정 리로드 (진행 중 실행은 계속)
7. 메인 루프 시작/종료, halt, 종료 대기 시간 초과

실행: python -m pytest test/scheduler_test.py -v
"""

import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from common.cron import CronParseError
from scheduler.exception import JobAlreadyRunningError, JobNotFoundError
from scheduler.main import Scheduler, is_due
from settings.model import (
    DatabaseConfig,
    EndpointConfig,
    QueryConfig,
    QueryPushSettings,
    SchedulerConfig,
)
from state.main import StateStore
from worker.exception import JobHaltError

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

T0 = datetime(2024, 6, 1, 10, 2, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeExecutor:
    """Executor 대체: 호출 기록, 성공 시 실행 이력 기록"""

    def __init__(self, state_store: StateStore, clock, result: bool = True, error: BaseException | None = None):
        self._state_store = state_store
        self._clock = clock
        self.result = result
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []
        self.tasks: list[asyncio.Task] = []

    async def execute(self, job, endpoint) -> bool:
        self.calls.append(job.name)
        self.tasks.append(asyncio.current_task())
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.result:
            await self._state_store.set_last_run(job.name, self._clock())
        return self.result


def make_job(name: str = "orders", **overrides) -> QueryConfig:
    values = {
        "name": name,
        "cron": "*/5 * * * *",
        "database": "default",
        "endpoint": "ingest",
        "query_text": "SELECT 1",
    }
    values.update(overrides)
    return QueryConfig(**values)


def make_settings(*jobs: QueryConfig) -> QueryPushSettings:
    return QueryPushSettings(
        databases=(DatabaseConfig(name="default", path="app.db"),),
        endpoints=(EndpointConfig(name="ingest", url="http://target.test/ingest"),),
        queries=jobs,
    )


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def state_store(tmp_path):
    return StateStore(tmp_path / "QueryState.json")


@pytest.fixture
def executor(state_store, clock):
    return FakeExecutor(state_store, clock)


@pytest.fixture
def scheduler(executor, state_store, clock):
    return Scheduler(executor, state_store, SchedulerConfig(poll_interval_seconds=0.05), clock=clock)


# ============================================================
# Due Tests
# ============================================================

class TestIsDue:
    """실행 시점 판단 테스트"""

    def test_no_last_run_follows_run_on_startup(self):
        assert is_due(make_job(run_on_startup=True), None, T0) is True
        assert is_due(make_job(run_on_startup=False), None, T0) is False

    def test_next_occurrence_after_last_run(self):
        job = make_job()
        last_run = datetime(2024, 6, 1, 10, 1, 30)
        assert is_due(job, last_run, datetime(2024, 6, 1, 10, 4, 59)) is False
        assert is_due(job, last_run, datetime(2024, 6, 1, 10, 5, 0)) is True
        assert is_due(job, last_run, datetime(2024, 6, 1, 10, 7, 0)) is True

    def test_long_outage_is_single_boundary(self):
        """장시간 중단 후에도 기준은 마지막 실행 다음 시점 하나"""
        job = make_job()
        assert is_due(job, datetime(2024, 1, 1), T0) is True

    def test_invalid_cron(self):
        with pytest.raises(CronParseError):
            is_due(make_job(cron="every minute"), None, T0)

    @pytest.mark.asyncio
    async def test_five_minute_scenario(self, scheduler, state_store, clock):
        """*/5, 이력 없음, run_on_startup -> 즉시 실행, 성공 후 다음 5분 경계부터 다시 실행"""
        job = make_job()
        scheduler.apply_config(make_settings(job))
        assert scheduler.get_due_jobs(T0) == [job]

        await scheduler.dispatch("orders")

        assert state_store.get_last_run("orders") == T0
        assert scheduler.get_due_jobs(datetime(2024, 6, 1, 10, 4, 59)) == []
        assert scheduler.get_due_jobs(datetime(2024, 6, 1, 10, 5, 0)) == [job]
        assert scheduler.next_occurrence(job) == datetime(2024, 6, 1, 10, 5, 0)

    def test_invalid_cron_job_never_due(self, scheduler):
        scheduler.apply_config(make_settings(make_job(cron="bogus"), make_job("ok")))

        assert list(scheduler.jobs) == ["ok"]
        assert scheduler.is_due(make_job(cron="bogus"), T0) is False

    @pytest.mark.asyncio
    async def test_offset_timestamps_in_state_file(self, scheduler, state_store):
        """Z / +02:00 시각이 저장된 상태 파일에서도 모든 잡을 판단"""
        state_store.path.write_text(
            json.dumps({
                "last_run_times": {"a": "2024-01-01T00:00:00Z"},
                "last_alert_times": {"a:slack": "2024-01-01T00:00:00+02:00"},
            }),
            encoding="utf-8",
        )
        await state_store.load()
        scheduler.apply_config(make_settings(make_job("a"), make_job("b")))

        due = scheduler.get_due_jobs(datetime(2025, 1, 1))
        assert [job.name for job in due] == ["a", "b"]

    def test_evaluation_error_isolated_to_job(self, scheduler, state_store, monkeypatch):
        """한 잡의 판단 오류는 다른 잡에 영향 없음"""
        original = state_store.get_last_run

        def broken_last_run(job_name):
            if job_name == "a":
                return datetime(2024, 1, 1, tzinfo=timezone.utc)
            return original(job_name)

        monkeypatch.setattr(state_store, "get_last_run", broken_last_run)
        scheduler.apply_config(make_settings(make_job("a"), make_job("b")))

        assert [job.name for job in scheduler.get_due_jobs(T0)] == ["b"]

    def test_disabled_job_not_scheduled(self, scheduler):
        scheduler.apply_config(make_settings(make_job(enabled=False)))
        assert scheduler.get_due_jobs(T0) == []

    def test_first_run_without_startup(self, scheduler):
        """run_on_startup=false: 로드 이후 첫 크론 시점에 실행"""
        job = make_job(run_on_startup=False)
        scheduler.apply_config(make_settings(job))

        assert scheduler.get_due_jobs(datetime(2024, 6, 1, 10, 4, 0)) == []
        assert scheduler.get_due_jobs(datetime(2024, 6, 1, 10, 5, 0)) == [job]


# ============================================================
# Dispatch Tests
# ============================================================

class TestDispatch:
    """실행/건너뜀/보류 테스트"""

    @pytest.mark.asyncio
    async def test_running_job_is_skipped(self, scheduler, executor, clock):
        executor.gate = asyncio.Event()
        scheduler.apply_config(make_settings(make_job()))

        task = scheduler.dispatch("orders")
        await asyncio.sleep(0)
        assert scheduler.is_job_running("orders")

        with pytest.raises(JobAlreadyRunningError):
            scheduler.dispatch("orders")

        # 같은 크론 시점 안에서는 건너뜀을 한 번만 센다
        scheduler._tick(T0)
        assert scheduler.skip_counts["orders"] == 0
        scheduler._tick(datetime(2024, 6, 1, 10, 5, 0))
        scheduler._tick(datetime(2024, 6, 1, 10, 6, 0))
        assert scheduler.skip_counts["orders"] == 1
        scheduler._tick(datetime(2024, 6, 1, 10, 10, 0))
        assert scheduler.skip_counts["orders"] == 2

        executor.gate.set()
        await task
        assert executor.calls == ["orders"]
        assert not scheduler.is_job_running("orders")

    @pytest.mark.asyncio
    async def test_distinct_jobs_run_in_parallel(self, scheduler, executor):
        executor.gate = asyncio.Event()
        scheduler.apply_config(make_settings(make_job("a"), make_job("b")))

        scheduler._tick(T0)
        tasks = list(scheduler._running_jobs.values())
        assert scheduler.running_job_count == 2

        executor.gate.set()
        await asyncio.gather(*tasks)
        assert sorted(executor.calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failed_job_held_until_next_boundary(self, scheduler, executor, state_store):
        executor.result = False
        job = make_job()
        scheduler.apply_config(make_settings(job))

        await scheduler.dispatch("orders")

        assert state_store.get_last_run("orders") is None
        assert scheduler.get_due_jobs(datetime(2024, 6, 1, 10, 3, 0)) == []
        assert scheduler.get_due_jobs(datetime(2024, 6, 1, 10, 5, 0)) == [job]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, scheduler, executor):
        executor.error = RuntimeError("state file unwritable")
        scheduler.apply_config(make_settings(make_job()))

        await scheduler.dispatch("orders")
        assert scheduler.fatal_error is None

    def test_unknown_job(self, scheduler):
        with pytest.raises(JobNotFoundError):
            scheduler.dispatch("missing")


# ============================================================
# Reload Tests
# ============================================================

class TestReload:
    """설정 리로드 테스트"""

    @pytest.mark.asyncio
    async def test_removed_job_finishes(self, scheduler, executor, state_store):
        executor.gate = asyncio.Event()
        scheduler.apply_config(make_settings(make_job("old")))
        task = scheduler.dispatch("old")
        await asyncio.sleep(0)

        scheduler.apply_config(make_settings(make_job("new")))
        assert list(scheduler.jobs) == ["new"]
        with pytest.raises(JobNotFoundError):
            scheduler.dispatch("old")

        executor.gate.set()
        await task
        assert state_store.get_last_run("old") == T0

    def test_reload_keeps_first_seen(self, scheduler, clock):
        job = make_job(run_on_startup=False)
        scheduler.apply_config(make_settings(job))

        clock.now = T0 + timedelta(minutes=10)
        scheduler.apply_config(make_settings(job))

        # 최초 로드 시각(10:02) 기준 첫 시점은 10:05
        assert scheduler.get_due_jobs(datetime(2024, 6, 1, 10, 12, 0)) == [job]

    def test_changed_cron_applies(self, scheduler):
        scheduler.apply_config(make_settings(make_job()))
        scheduler.apply_config(make_settings(make_job(cron="0 * * * *")))
        assert scheduler.jobs["orders"].cron == "0 * * * *"


# ============================================================
# Main Loop Tests
# ============================================================

class TestMainLoop:
    """메인 루프 테스트"""

    @staticmethod
    async def wait_for_calls(executor: FakeExecutor, count: int) -> None:
        for _ in range(200):
            if len(executor.calls) >= count:
                return
            await asyncio.sleep(0.01)
        raise AssertionError(f"expected {count} calls, got {executor.calls}")

    @pytest.mark.asyncio
    async def test_start_and_stop(self, state_store):
        executor = FakeExecutor(state_store, datetime.now)
        scheduler = Scheduler(executor, state_store, SchedulerConfig(poll_interval_seconds=0.05))
        scheduler.apply_config(make_settings(make_job(cron="0 0 1 1 *")))

        runner = asyncio.create_task(scheduler.start())
        await self.wait_for_calls(executor, 1)
        assert scheduler.is_running

        await scheduler.stop()
        await asyncio.wait_for(runner, timeout=2)

        assert executor.calls == ["orders"]
        assert not scheduler.is_running
        assert scheduler.fatal_error is None

    @pytest.mark.asyncio
    async def test_request_stop_from_signal_handler(self, state_store):
        """동기 종료 요청 (태스크 생성 없이 루프 종료)"""
        executor = FakeExecutor(state_store, datetime.now)
        scheduler = Scheduler(executor, state_store, SchedulerConfig(poll_interval_seconds=30))
        scheduler.apply_config(make_settings(make_job(cron="0 0 1 1 *")))

        runner = asyncio.create_task(scheduler.start())
        await self.wait_for_calls(executor, 1)

        scheduler.request_stop()
        await asyncio.wait_for(runner, timeout=2)

        assert not scheduler.is_running
        scheduler.request_stop()

    @pytest.mark.asyncio
    async def test_halt_stops_scheduler(self, state_store):
        executor = FakeExecutor(state_store, datetime.now, error=JobHaltError("orders", RuntimeError("boom")))
        scheduler = Scheduler(executor, state_store, SchedulerConfig(poll_interval_seconds=0.05))
        scheduler.apply_config(make_settings(make_job(cron="0 0 1 1 *")))

        await asyncio.wait_for(scheduler.start(), timeout=2)

        assert isinstance(scheduler.fatal_error, JobHaltError)
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_shutdown_timeout_cancels(self, state_store):
        executor = FakeExecutor(state_store, datetime.now)
        executor.gate = asyncio.Event()
        scheduler = Scheduler(
            executor,
            state_store,
            SchedulerConfig(poll_interval_seconds=0.05, shutdown_timeout_seconds=0),
        )
        scheduler.apply_config(make_settings(make_job(cron="0 0 1 1 *")))

        runner = asyncio.create_task(scheduler.start())
        await self.wait_for_calls(executor, 1)
        await scheduler.stop()
        await asyncio.wait_for(runner, timeout=2)

        await asyncio.gather(*executor.tasks, return_exceptions=True)
        assert executor.tasks[0].cancelled()
        assert state_store.get_last_run("orders") is None
