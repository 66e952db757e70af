"""
Scheduler 관련 예외 클래스 정의
"""


class SchedulerError(Exception):
    """Scheduler 기본 예외"""
    pass


class JobNotFoundError(SchedulerError):
    """현재 설정 세대에 없는 잡"""
    def __init__(self, job_name: str):
        self.job_name = job_name
        self.message = f"Query '{job_name}' is not part of the active configuration"
        super().__init__(self.message)


class JobAlreadyRunningError(SchedulerError):
    """같은 잡의 이전 실행이 아직 끝나지 않음"""
    def __init__(self, job_name: str):
        self.job_name = job_name
        self.message = f"Query '{job_name}' is still running"
        super().__init__(self.message)
