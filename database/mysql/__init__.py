"""MySQL 데이터 소스 (asyncmy)"""

from database.mysql.connection import MySQLDatabase, PoolConfig

__all__ = ['MySQLDatabase', 'PoolConfig']
