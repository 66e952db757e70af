"""
Query Access 패키지

사용 예시:
    from database import DatabaseRegistry, QueryService

    registry = DatabaseRegistry()
    await registry.init_from_config(settings.databases)
    rows = await QueryService(registry).run_query('default', 'SELECT 1 AS one', 30, 100)
"""

from database.base import BaseDatabase, Row
from database.exception import (
    DatabaseError,
    DatabaseNotFoundError,
    DriverNotFoundError,
    QueryExecutionError,
    QueryTimeoutError,
)
from database.registry import DatabaseRegistry, create_database
from database.service import QueryService

__all__ = [
    'BaseDatabase',
    'Row',
    'DatabaseError',
    'DatabaseNotFoundError',
    'DriverNotFoundError',
    'QueryExecutionError',
    'QueryTimeoutError',
    'DatabaseRegistry',
    'create_database',
    'QueryService',
]
