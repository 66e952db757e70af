"""
Query Access 서비스

RunQuery(source_ref, query_text, timeout, max_rows) 경계를 구현합니다.
"""

import asyncio
import logging
import time

from database.base import Row
from database.exception import QueryTimeoutError
from database.registry import DatabaseRegistry

logger = logging.getLogger(__name__)


class QueryService:
    """이름으로 지정된 데이터 소스에 쿼리 실행"""

    def __init__(self, registry: DatabaseRegistry):
        self._registry = registry

    async def run_query(
        self,
        source_ref: str,
        query_text: str,
        timeout_seconds: float,
        max_rows: int,
    ) -> list[Row]:
        """
        쿼리 실행

        Args:
            source_ref: 데이터 소스 이름
            query_text: 변수 치환이 끝난 쿼리
            timeout_seconds: 실행 제한 시간
            max_rows: 최대 행 수

        Returns:
            컬럼 순서가 보존된 dict 행 목록

        Raises:
            DatabaseNotFoundError, DriverNotFoundError, QueryTimeoutError, QueryExecutionError
        """
        db = await self._registry.get_or_create(source_ref)

        logger.info(
            f"Executing query on database '{source_ref}' "
            f"(timeout: {timeout_seconds}s, max rows: {max_rows})"
        )

        started = time.monotonic()
        try:
            rows = await asyncio.wait_for(db.fetch_rows(query_text, max_rows), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.error(f"Query on database '{source_ref}' timed out after {elapsed_ms}ms")
            raise QueryTimeoutError(source_ref, timeout_seconds)
        except Exception as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.error(f"Query execution failed on database '{source_ref}' after {elapsed_ms}ms: {e}")
            raise

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Query completed successfully. Returned {len(rows)} rows in {elapsed_ms}ms")
        return rows
