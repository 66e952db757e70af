"""
데이터 소스 레지스트리

설정의 databases 목록으로부터 이름 -> BaseDatabase 인스턴스를 관리합니다.
provider 모듈은 필요할 때만 import하므로 쓰지 않는 드라이버는 설치하지 않아도 됩니다.
"""

import logging
from typing import Iterable

from database.base import BaseDatabase
from database.exception import DatabaseNotFoundError, DriverNotFoundError
from settings.model import DatabaseConfig

logger = logging.getLogger(__name__)


async def create_database(config: DatabaseConfig) -> BaseDatabase:
    """
    provider에 맞는 데이터베이스 인스턴스 생성

    Raises:
        DriverNotFoundError: 지원하지 않는 provider 또는 드라이버 미설치
    """
    provider = config.provider.lower()

    if provider == "sqlite":
        from database.sqlite3.connection import SQLiteDatabase
        return SQLiteDatabase(config.name, config)

    if provider == "mysql":
        try:
            from database.mysql.connection import MySQLDatabase
        except ImportError as e:
            raise DriverNotFoundError(provider, f"Database driver 'asyncmy' not found for provider '{provider}': {e}")
        return await MySQLDatabase.create(config.name, config)

    raise DriverNotFoundError(provider)


class DatabaseRegistry:
    """
    이름 기반 데이터베이스 레지스트리

    사용 예시:
        registry = DatabaseRegistry()
        await registry.init_from_config(settings.databases)
        db = registry.get('default')
        ...
        await registry.close_all()
    """

    def __init__(self):
        self._configs: dict[str, DatabaseConfig] = {}
        self._databases: dict[str, BaseDatabase] = {}

    async def init_from_config(self, configs: Iterable[DatabaseConfig]) -> None:
        """
        설정 목록 반영

        이미 같은 설정으로 생성된 인스턴스는 유지하고, 제거/변경된 것만 닫습니다.
        """
        new_configs = {c.name: c for c in configs}

        for name in list(self._databases):
            if new_configs.get(name) != self._configs.get(name):
                await self._close(name)

        for name, config in new_configs.items():
            if name in self._databases:
                continue
            try:
                self._databases[name] = await create_database(config)
                logger.info(f"Database '{name}' registered (provider={config.provider})")
            except Exception as e:
                # 연결 실패는 쿼리 실행 시점에 다시 시도
                logger.error(f"Failed to initialize database '{name}': {e}")

        self._configs = new_configs

    async def get_or_create(self, name: str) -> BaseDatabase:
        """
        이름으로 데이터베이스 조회 (초기화 실패했던 경우 재시도)

        Raises:
            DatabaseNotFoundError: 설정에 없는 이름
            DriverNotFoundError: 드라이버 문제
        """
        db = self._databases.get(name)
        if db is not None:
            return db

        config = self._configs.get(name)
        if config is None:
            raise DatabaseNotFoundError(name)

        db = await create_database(config)
        self._databases[name] = db
        return db

    def get(self, name: str) -> BaseDatabase:
        if name not in self._databases:
            raise DatabaseNotFoundError(name)
        return self._databases[name]

    @property
    def names(self) -> list[str]:
        return list(self._configs)

    async def _close(self, name: str) -> None:
        db = self._databases.pop(name, None)
        if db is None:
            return
        try:
            await db.close()
        except Exception as e:
            logger.error(f"Error closing database '{name}': {e}")

    async def close_all(self) -> None:
        """모든 데이터베이스 종료"""
        for name in list(self._databases):
            await self._close(name)
        self._configs = {}
