"""
SQLite3 데이터 소스 모듈

aiosqlite를 사용하여 쿼리를 비동기로 실행합니다.
쿼리마다 연결을 열고 닫으며, query_only PRAGMA로 읽기 전용 실행을 보장합니다.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path

import aiosqlite

from database.base import BaseDatabase, Row
from database.exception import QueryExecutionError
from settings.model import DatabaseConfig

logger = logging.getLogger(__name__)

FETCH_BATCH_SIZE = 500


@dataclass
class SqliteOptions:
    """SQLite 연결 옵션"""
    busy_timeout: int = 5000
    query_only: bool = True


class SQLiteDatabase(BaseDatabase):
    """
    SQLite 데이터 소스

    사용 예시:
        db = SQLiteDatabase('local', DatabaseConfig(name='local', provider='sqlite', path='./data/app.db'))
        rows = await db.fetch_rows("SELECT id, name FROM users", max_rows=100)
    """

    def __init__(self, name: str, config: DatabaseConfig, options: SqliteOptions | None = None):
        super().__init__(name)
        self._db_path = Path(config.path)
        self._options = options or SqliteOptions()

    async def _connect(self) -> aiosqlite.Connection:
        """새로운 SQLite 연결 생성"""
        conn = await aiosqlite.connect(
            self._db_path,
            timeout=self._options.busy_timeout / 1000.0
        )
        await conn.execute(f"PRAGMA busy_timeout={self._options.busy_timeout}")
        if self._options.query_only:
            await conn.execute("PRAGMA query_only=ON")
        return conn

    async def fetch_rows(self, sql: str, max_rows: int) -> list[Row]:
        """쿼리 실행 후 최대 max_rows개의 행 반환"""
        _log_query(sql)
        try:
            conn = await self._connect()
        except sqlite3.Error as e:
            raise QueryExecutionError(self.name, f"Cannot open database '{self.name}': {e}") from e

        try:
            cursor = await conn.execute(sql)
            columns = [d[0] for d in cursor.description or ()]
            rows: list[Row] = []
            if columns:
                while len(rows) < max_rows:
                    batch = await cursor.fetchmany(min(FETCH_BATCH_SIZE, max_rows - len(rows)))
                    if not batch:
                        break
                    rows.extend(dict(zip(columns, values)) for values in batch)
            await cursor.close()
            _log_result(len(rows))
            return rows

        except asyncio.CancelledError:
            # 타임아웃으로 취소되면 실행 중인 쿼리도 중단
            await conn.interrupt()
            raise
        except sqlite3.Error as e:
            raise QueryExecutionError(self.name, str(e)) from e
        finally:
            await conn.close()

    async def close(self) -> None:
        """쿼리마다 연결을 닫으므로 별도 자원 없음"""
        logger.debug(f"SQLiteDatabase '{self.name}' closed")


def _log_query(sql: str) -> None:
    """SQL 쿼리 로깅"""
    sql_oneline = ' '.join(sql.split())
    logger.debug(f"[SQL] {sql_oneline}")


def _log_result(row_count: int) -> None:
    """SQL 결과 로깅"""
    logger.debug(f"[SQL Result] {row_count} row(s)")
