"""SQLite3 데이터 소스 (aiosqlite)"""

from database.sqlite3.connection import SQLiteDatabase, SqliteOptions

__all__ = ['SQLiteDatabase', 'SqliteOptions']
