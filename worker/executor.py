"""
잡 실행기 모듈 (Execution Engine)

잡 하나를 끝까지 실행합니다:
쿼리 텍스트 해석 -> 변수 치환 -> 쿼리 실행 -> 결과 전송,
실패 시 재시도하고 재시도가 소진되면 실패 정책(log / halt / alert)을 적용합니다.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable

from alert.exception import AlertError
from alert.main import AlertDispatcher
from common.retry import endpoint_delay
from database.service import QueryService
from delivery.main import DeliveryService
from settings.model import EndpointConfig, FailurePolicy, QueryConfig
from state.exception import StateError
from state.main import StateStore
from template.main import TemplateEngine
from worker.exception import JobHaltError
from worker.query_text import resolve_query_text

logger = logging.getLogger(__name__)

# 재시도해도 성공할 수 없는 오류 메시지 패턴 (모든 조각이 포함되어야 일치)
INVALID_QUERY_SIGNATURES: tuple[tuple[str, ...], ...] = (
    ("syntax error",),
    ("incorrect syntax",),
    ("unknown column",),
    ("unknown table",),
    ("invalid object name",),
    ("no such table",),
    ("no such column",),
    ("table", "doesn't exist"),
    ("column", "doesn't exist"),
    ("relation", "does not exist"),
    ("column", "does not exist"),
    ("driver", "not found"),
)


def is_invalid_query_error(error: BaseException) -> bool:
    """invalid-query 오류 여부 (메시지 패턴 기반)"""
    message = str(error).lower()
    return any(
        all(fragment in message for fragment in signature)
        for signature in INVALID_QUERY_SIGNATURES
    )


class Executor:
    """잡 실행기"""

    def __init__(
        self,
        query_service: QueryService,
        template_engine: TemplateEngine,
        delivery_service: DeliveryService,
        alert_dispatcher: AlertDispatcher,
        state_store: StateStore,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._query_service = query_service
        self._template_engine = template_engine
        self._delivery_service = delivery_service
        self._alert_dispatcher = alert_dispatcher
        self._state_store = state_store
        self._clock = clock
        self._sleep = sleep

    async def execute(self, job: QueryConfig, endpoint: EndpointConfig) -> bool:
        """
        잡 실행

        Args:
            job: 실행할 잡 정의
            endpoint: 잡이 참조하는 엔드포인트 (스케줄 시점에 해석된 값)

        Returns:
            bool: 실행 성공 여부

        Raises:
            JobHaltError: 실패 정책이 halt인 잡이 최종 실패한 경우
            StateSaveError: 성공 후 실행 이력 저장 실패
        """
        max_attempts = endpoint.max_attempts
        logger.info(f"Starting execution of query '{job.name}' (max attempts: {max_attempts})")

        started = time.monotonic()
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                await self._run_attempt(job, endpoint)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e

                if is_invalid_query_error(e):
                    logger.error(f"Query '{job.name}' failed with invalid query error - skipping retries: {e}")
                    break

                if attempt < max_attempts:
                    delay = endpoint_delay(endpoint, attempt)
                    logger.warning(
                        f"Query '{job.name}' failed on attempt {attempt}/{max_attempts}: {e}. "
                        f"Retrying in {delay:.1f}s"
                    )
                    await self._sleep(delay)
                else:
                    logger.error(f"Query '{job.name}' failed on final attempt {attempt}/{max_attempts}: {e}")
                continue

            elapsed = time.monotonic() - started
            logger.info(f"Query '{job.name}' completed successfully on attempt {attempt} in {elapsed:.1f} seconds")
            await self._state_store.set_last_run(job.name, self._clock())
            await self._state_store.save()
            return True

        elapsed = time.monotonic() - started
        logger.error(f"Query '{job.name}' failed after {elapsed:.1f} seconds")
        await self._handle_failure(job, last_error)
        return False

    async def _run_attempt(self, job: QueryConfig, endpoint: EndpointConfig) -> None:
        """한 번의 시도"""
        raw_text = await resolve_query_text(job)
        query_text = self._template_engine.resolve(raw_text, job.name)

        rows = await self._query_service.run_query(
            job.database, query_text, job.timeout_seconds, job.max_rows
        )
        logger.debug(f"Database query returned {len(rows)} rows")

        if not rows and not endpoint.send_request_if_no_results:
            logger.info(
                f"Query '{job.name}' returned no results and send_request_if_no_results=false, "
                f"skipping HTTP request"
            )
            return

        await self._delivery_service.send(endpoint, rows, job.payload_format)

    async def _alert_query_text(self, job: QueryConfig) -> str:
        """알림에 넣을 쿼리 텍스트 (치환 결과, 실패 시 원본, 그것도 실패하면 안내 문구)"""
        try:
            raw_text = await resolve_query_text(job)
        except Exception as e:
            return f"<query text unavailable: {e}>"
        try:
            return self._template_engine.resolve(raw_text, job.name)
        except Exception:
            return raw_text

    async def _handle_failure(self, job: QueryConfig, error: Exception) -> None:
        """실패 정책 적용"""
        logger.error(
            f"Query '{job.name}' exhausted all retry attempts. "
            f"Handling failure with strategy: {job.on_failure.value}"
        )

        if job.on_failure == FailurePolicy.HALT:
            logger.critical(f"Query '{job.name}' configured to halt on failure, terminating execution")
            raise JobHaltError(job.name, error) from error

        if job.on_failure == FailurePolicy.LOG_AND_CONTINUE:
            logger.warning(f"Query '{job.name}' failed but configured to continue execution")
            return

        query_text = await self._alert_query_text(job)
        try:
            await self._alert_dispatcher.send_for_policy(job.on_failure, job, query_text, error)
        except (AlertError, StateError) as e:
            # 알림 실패는 잡 결과(이미 실패)에 영향을 주지 않음
            logger.error(f"Alert for query '{job.name}' could not be delivered: {e}")
