"""
Query Access 관련 예외 클래스 정의

메시지는 Execution Engine의 invalid-query 판별에 쓰이므로
드라이버가 돌려준 원문을 보존합니다.
"""


class DatabaseError(Exception):
    """데이터베이스 기본 예외"""
    pass


class DatabaseNotFoundError(DatabaseError):
    """설정에 없는 데이터 소스"""
    def __init__(self, name: str):
        self.name = name
        self.message = f"Database '{name}' not found"
        super().__init__(self.message)


class DriverNotFoundError(DatabaseError):
    """지원하지 않는 provider 또는 드라이버 패키지 미설치"""
    def __init__(self, provider: str, message: str = None):
        self.provider = provider
        self.message = message or f"Database driver '{provider}' not found"
        super().__init__(self.message)


class QueryTimeoutError(DatabaseError):
    """쿼리 타임아웃"""
    def __init__(self, name: str, timeout_seconds: float):
        self.name = name
        self.timeout_seconds = timeout_seconds
        self.message = f"Query on database '{name}' timed out after {timeout_seconds}s"
        super().__init__(self.message)


class QueryExecutionError(DatabaseError):
    """쿼리 실행 실패 (드라이버 메시지 포함)"""
    def __init__(self, name: str, message: str):
        self.name = name
        self.message = message
        super().__init__(self.message)
