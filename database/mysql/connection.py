"""
MySQL 데이터 소스 모듈

asyncmy 커넥션풀을 사용하여 쿼리를 비동기로 실행합니다.
"""

import logging
from dataclasses import dataclass

import asyncmy
from asyncmy.cursors import DictCursor
from asyncmy.errors import Error as MySQLError

from database.base import BaseDatabase, Row
from database.exception import QueryExecutionError
from settings.model import DatabaseConfig

logger = logging.getLogger(__name__)


@dataclass
class PoolConfig:
    """커넥션풀 설정"""
    minsize: int = 1
    maxsize: int = 5
    pool_recycle: int = 300


class MySQLDatabase(BaseDatabase):
    """
    MySQL 데이터 소스

    사용 예시:
        db = await MySQLDatabase.create('reporting', config)
        rows = await db.fetch_rows("SELECT * FROM orders", max_rows=1000)
    """

    def __init__(self, name: str, config: DatabaseConfig):
        super().__init__(name)
        self._config = config
        self._pool: asyncmy.Pool | None = None

    @classmethod
    async def create(cls, name: str, config: DatabaseConfig) -> 'MySQLDatabase':
        """MySQLDatabase 인스턴스 생성 및 초기화"""
        instance = cls(name, config)
        await instance._initialize()
        return instance

    async def _initialize(self) -> None:
        """커넥션풀 생성"""
        pool_config = PoolConfig(
            minsize=self._config.pool_minsize,
            maxsize=self._config.pool_maxsize,
        )

        self._pool = await asyncmy.create_pool(
            host=self._config.host,
            port=self._config.port,
            db=self._config.database,
            user=self._config.user,
            password=self._config.password,
            minsize=pool_config.minsize,
            maxsize=pool_config.maxsize,
            pool_recycle=pool_config.pool_recycle,
            charset='utf8mb4',
            autocommit=True,
        )

        logger.info(
            f"MySQLDatabase '{self.name}' initialized "
            f"(pool: {pool_config.minsize}-{pool_config.maxsize})"
        )

    @property
    def pool(self) -> asyncmy.Pool:
        """커넥션풀 반환"""
        if self._pool is None:
            raise RuntimeError(f"Database '{self.name}' not initialized")
        return self._pool

    async def fetch_rows(self, sql: str, max_rows: int) -> list[Row]:
        """쿼리 실행 후 최대 max_rows개의 행 반환"""
        logger.debug(f"[SQL] {' '.join(sql.split())}")
        try:
            async with self.pool.acquire() as conn:
                async with conn.cursor(DictCursor) as cursor:
                    await cursor.execute(sql)
                    if cursor.description is None:
                        return []
                    rows = await cursor.fetchmany(max_rows)
        except MySQLError as e:
            raise QueryExecutionError(self.name, str(e)) from e

        logger.debug(f"[SQL Result] {len(rows)} row(s)")
        return [dict(row) for row in rows]

    async def close(self) -> None:
        """데이터베이스 연결 종료"""
        if self._pool:
            self._pool.close()
            await self._pool.wait_closed()
        logger.info(f"MySQLDatabase '{self.name}' closed")
