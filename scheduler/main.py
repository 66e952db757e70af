"""
Scheduler: 크론 기반 잡 트리거 모듈

활성화된 잡의 크론 표현식과 마지막 성공 실행 시각으로 실행 시점을 판단하고,
실행 시점에 도달한 잡을 Execution Engine에 넘겨 비동기 태스크로 실행합니다.

- 같은 잡은 동시에 두 번 실행되지 않습니다 (실행 중이면 건너뛰고 skip_counts 증가)
- 지난 실행 시점은 쌓아두지 않습니다 (장시간 중단 후에도 한 번만 실행)
- 설정 리로드는 잡 집합을 통째로 교체하며, 이미 시작된 실행은 끝까지 진행됩니다
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from functools import partial
from typing import Callable

from common.cron import CronParseError, next_occurrence, validate_cron
from common.logging import generate_short_id, reset_correlation_id, set_correlation_id
from scheduler.exception import JobAlreadyRunningError, JobNotFoundError
from scheduler.model import JobSnapshot
from settings.model import QueryConfig, QueryPushSettings, SchedulerConfig
from state.main import StateStore
from worker.exception import JobHaltError
from worker.executor import Executor

logger = logging.getLogger(__name__)


def is_due(job: QueryConfig, last_run: datetime | None, now: datetime) -> bool:
    """
    실행 시점 도달 여부

    - 실행 이력 없음: run_on_startup 설정 여부
    - 실행 이력 있음: now >= (last_run 이후 첫 크론 시점)

    Raises:
        CronParseError: 크론 표현식 파싱 실패
    """
    if last_run is None:
        validate_cron(job.cron)
        return job.run_on_startup
    return now >= next_occurrence(job.cron, last_run)


class Scheduler:
    """
    크론 기반 잡 스케줄러

    하나의 공유 틱 루프에서 실행 시점에 도달한 잡을 찾아 태스크로 실행합니다.
    """

    def __init__(
        self,
        executor: Executor,
        state_store: StateStore,
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._executor = executor
        self._state_store = state_store
        self._config = config or SchedulerConfig()
        self._clock = clock

        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._snapshot = JobSnapshot()

        self._running_jobs: dict[str, asyncio.Task] = {}
        self._dispatched_at: dict[str, datetime] = {}
        self._skip_marks: dict[str, datetime] = {}
        # 실패한 잡은 실패 시각 이후 다음 크론 시점까지 보류 (메모리에만 유지)
        self._held_until: dict[str, datetime] = {}

        self.skip_counts: dict[str, int] = defaultdict(int)
        self.fatal_error: JobHaltError | None = None

    # ------------------------------------------------------------------
    # 설정
    # ------------------------------------------------------------------

    def apply_config(self, settings: QueryPushSettings) -> None:
        """
        새 설정 세대 적용 (잡 집합 원자적 교체)

        크론 파싱에 실패한 잡은 로그를 남기고 제외합니다.
        """
        now = self._clock()
        previous = self._snapshot

        jobs: dict[str, QueryConfig] = {}
        for job in settings.enabled_queries:
            try:
                validate_cron(job.cron)
            except CronParseError as e:
                logger.error(f"Query '{job.name}' has an invalid schedule and will never run: {e}")
                continue
            jobs[job.name] = job

        first_seen = {name: previous.first_seen.get(name, now) for name in jobs}
        endpoints = {endpoint.name: endpoint for endpoint in settings.endpoints}

        self._snapshot = JobSnapshot(
            jobs=jobs,
            endpoints=endpoints,
            first_seen=first_seen,
            loaded_at=now,
        )

        # 정의가 바뀌었거나 제거된 잡의 보류 상태는 버림
        for name in list(self._held_until):
            if previous.jobs.get(name) != jobs.get(name):
                del self._held_until[name]

        logger.info(
            f"Scheduler configuration applied: {len(jobs)} active queries "
            f"({len(settings.queries)} configured)"
        )
        for job in jobs.values():
            logger.debug(f"Scheduled query '{job.name}' with cron '{job.cron}'")

    @property
    def jobs(self) -> dict[str, QueryConfig]:
        """현재 세대의 활성 잡"""
        return dict(self._snapshot.jobs)

    # ------------------------------------------------------------------
    # 실행 시점 계산
    # ------------------------------------------------------------------

    def next_occurrence(self, job: QueryConfig, after: datetime | None = None) -> datetime:
        """
        잡의 다음 실행 시점

        after 미지정 시 마지막 실행 시각(없으면 현재 시각) 기준.
        """
        if after is None:
            after = self._state_store.get_last_run(job.name) or self._clock()
        return next_occurrence(job.cron, after)

    def is_due(self, job: QueryConfig, now: datetime) -> bool:
        """저장된 실행 이력 기준 실행 시점 도달 여부 (크론 오류는 False)"""
        try:
            return is_due(job, self._state_store.get_last_run(job.name), now)
        except CronParseError as e:
            logger.error(f"Failed to evaluate schedule for query '{job.name}': {e}")
            return False

    def _is_triggerable(self, job: QueryConfig, now: datetime) -> bool:
        """루프 수준 판단: is_due + 최초 실행 기준 + 실패 보류"""
        held_until = self._held_until.get(job.name)
        if held_until is not None and now < held_until:
            return False

        if self.is_due(job, now):
            return True

        # 실행 이력이 없고 run_on_startup=false: 로드 이후 첫 크론 시점에 실행
        if self._state_store.get_last_run(job.name) is None:
            loaded_at = self._snapshot.first_seen.get(job.name)
            if loaded_at is not None:
                try:
                    return now >= next_occurrence(job.cron, loaded_at)
                except CronParseError:
                    return False
        return False

    def get_due_jobs(self, now: datetime | None = None) -> list[QueryConfig]:
        """실행 시점에 도달한 잡 목록"""
        now = now or self._clock()
        due_jobs = []
        for job in self._snapshot.jobs.values():
            # 한 잡의 판단 오류가 다른 잡의 실행을 막지 않도록 잡 단위로 처리
            try:
                if self._is_triggerable(job, now):
                    due_jobs.append(job)
            except Exception as e:
                logger.error(f"Failed to evaluate schedule for query '{job.name}': {e}", exc_info=True)
        return due_jobs

    def _next_sleep(self, now: datetime) -> float:
        """다음 틱까지 대기 시간: poll 간격과 가장 가까운 크론 시점 중 작은 값"""
        sleep_seconds = self._config.poll_interval_seconds
        for job in self._snapshot.jobs.values():
            try:
                seconds = (next_occurrence(job.cron, now) - now).total_seconds()
            except CronParseError:
                continue
            sleep_seconds = min(sleep_seconds, seconds)
        return max(sleep_seconds, 0.0)

    # ------------------------------------------------------------------
    # 실행
    # ------------------------------------------------------------------

    def is_job_running(self, job_name: str) -> bool:
        task = self._running_jobs.get(job_name)
        return task is not None and not task.done()

    def dispatch(self, job_name: str) -> asyncio.Task:
        """
        잡 실행 태스크 생성

        Raises:
            JobNotFoundError: 현재 세대에 없는 잡
            JobAlreadyRunningError: 이전 실행이 아직 진행 중
        """
        snapshot = self._snapshot
        job = snapshot.jobs.get(job_name)
        if job is None:
            raise JobNotFoundError(job_name)
        if self.is_job_running(job_name):
            raise JobAlreadyRunningError(job_name)

        endpoint = snapshot.endpoint_for(job)
        if endpoint is None:
            raise JobNotFoundError(job_name)

        self._dispatched_at[job_name] = self._clock()
        self._skip_marks.pop(job_name, None)

        task = asyncio.create_task(self._run_job(job, endpoint), name=f"query:{job_name}")
        self._running_jobs[job_name] = task
        task.add_done_callback(partial(self._on_task_done, job_name))
        logger.debug(f"Dispatched query '{job_name}'")
        return task

    def _record_skip(self, job: QueryConfig, now: datetime) -> None:
        """실행 중인 잡의 새 크론 시점마다 한 번씩 건너뜀 기록"""
        mark = self._skip_marks.get(job.name) or self._dispatched_at.get(job.name)
        if mark is not None and now < next_occurrence(job.cron, mark):
            return

        self._skip_marks[job.name] = now
        self.skip_counts[job.name] += 1
        logger.info(
            f"Query '{job.name}' is still running, skipping this trigger "
            f"(skipped {self.skip_counts[job.name]} times)"
        )

    async def _run_job(self, job, endpoint) -> None:
        """잡 실행 (실행 태스크)"""
        token = set_correlation_id(generate_short_id())
        started = self._clock()
        succeeded = False
        try:
            succeeded = await self._executor.execute(job, endpoint)
        except JobHaltError as e:
            logger.critical(f"Halting scheduler: {e}")
            self.fatal_error = e
            await self.stop()
        except Exception as e:
            logger.error(f"Unexpected error executing query '{job.name}': {e}", exc_info=True)
        finally:
            reset_correlation_id(token)

        if succeeded:
            self._held_until.pop(job.name, None)
        else:
            self._hold_back(job, started)

    def _hold_back(self, job: QueryConfig, failed_at: datetime) -> None:
        try:
            held_until = next_occurrence(job.cron, failed_at)
        except CronParseError:
            return
        self._held_until[job.name] = held_until
        logger.debug(f"Query '{job.name}' will be retried at the next schedule ({held_until})")

    def _on_task_done(self, job_name: str, task: asyncio.Task) -> None:
        """태스크 완료 콜백"""
        if self._running_jobs.get(job_name) is task:
            del self._running_jobs[job_name]
        if task.cancelled():
            logger.warning(f"Execution of query '{job_name}' was cancelled")
        elif task.exception():
            logger.error(f"Task exception: {task.exception()}")

    # ------------------------------------------------------------------
    # 메인 루프
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Scheduler 메인 루프 시작"""
        if self._running:
            logger.warning("Scheduler is already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()

        logger.info(
            f"Scheduler started with {len(self._snapshot.jobs)} queries "
            f"(poll_interval={self._config.poll_interval_seconds}s)"
        )

        try:
            await self._main_loop()
        except asyncio.CancelledError:
            logger.info("Scheduler cancelled")
        except Exception as e:
            logger.error(f"Scheduler error: {e}", exc_info=True)
            raise
        finally:
            await self._wait_running_tasks()
            self._running = False
            logger.info("Scheduler stopped")

    async def stop(self) -> None:
        """Scheduler graceful shutdown (새 실행 중단, 실행 중인 잡은 drain)"""
        self.request_stop()

    def request_stop(self) -> None:
        """동기 종료 요청 (시그널 핸들러용)"""
        if not self._running:
            return

        logger.info("Stopping scheduler...")
        self._running = False
        if self._stop_event:
            self._stop_event.set()

    async def _main_loop(self) -> None:
        """메인 루프: 실행 시점 판단 및 잡 실행"""
        while self._running:
            now = self._clock()
            try:
                self._tick(now)
                sleep_seconds = self._next_sleep(now)
            except Exception as e:
                logger.error(f"Unexpected error in scheduler loop: {e}", exc_info=True)
                sleep_seconds = self._config.poll_interval_seconds

            await self._sleep(sleep_seconds)

    def _tick(self, now: datetime) -> None:
        for job in self.get_due_jobs(now):
            try:
                self.dispatch(job.name)
            except JobAlreadyRunningError:
                self._record_skip(job, now)
            except JobNotFoundError as e:
                logger.error(f"Cannot dispatch query '{job.name}': {e}")

    async def _sleep(self, seconds: float) -> None:
        """인터럽트 가능한 sleep"""
        if self._stop_event:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass

    async def _wait_running_tasks(self) -> None:
        """실행 중인 잡 완료 대기 (graceful shutdown)"""
        current = asyncio.current_task()
        tasks = [task for task in self._running_jobs.values() if task is not current]
        if not tasks:
            return

        timeout = self._config.shutdown_timeout_seconds
        logger.info(f"Waiting for {len(tasks)} running queries...")

        try:
            await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True),
                timeout=timeout,
            )
            logger.info("All running queries completed")
        except asyncio.TimeoutError:
            logger.warning(
                f"Shutdown timeout ({timeout}s), "
                f"{sum(1 for task in tasks if not task.done())} queries still running"
            )
            # 강제 취소
            for task in tasks:
                task.cancel()

    @property
    def is_running(self) -> bool:
        """실행 중 여부"""
        return self._running

    @property
    def running_job_count(self) -> int:
        """실행 중인 잡 수"""
        return sum(1 for task in self._running_jobs.values() if not task.done())
