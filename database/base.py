"""
데이터 소스 기본 인터페이스
"""

from abc import ABC, abstractmethod
from typing import Any

Row = dict[str, Any]


class BaseDatabase(ABC):
    """
    쿼리 실행 대상 데이터베이스

    구현체는 쿼리 텍스트를 실행해 컬럼 순서가 보존된 dict 행 목록을 반환합니다.
    """

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def fetch_rows(self, sql: str, max_rows: int) -> list[Row]:
        """
        쿼리 실행 후 최대 max_rows개의 행 반환

        Raises:
            QueryExecutionError: 드라이버 오류 (원문 메시지 보존)
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """연결 자원 해제"""
        ...
