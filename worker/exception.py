"""
Execution Engine 관련 예외 클래스 정의
"""


class WorkerError(Exception):
    """Execution Engine 기본 예외"""
    pass


class QueryTextNotFoundError(WorkerError):
    """query_text와 query_file 모두 없음"""
    def __init__(self, job_name: str):
        self.job_name = job_name
        self.message = f"Query '{job_name}' has neither query_text nor query_file specified"
        super().__init__(self.message)


class JobHaltError(WorkerError):
    """halt 실패 정책: 프로세스 정상 흐름을 중단해야 하는 치명적 실패"""
    def __init__(self, job_name: str, cause: BaseException):
        self.job_name = job_name
        self.cause = cause
        self.message = f"Query '{job_name}' failed and is configured to halt: {cause}"
        super().__init__(self.message)
