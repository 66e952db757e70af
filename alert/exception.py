"""
Alert 관련 예외 클래스 정의
"""


class AlertError(Exception):
    """Alert 기본 예외"""
    pass


class AlertSendError(AlertError):
    """알림 전송 실패 (전송 계층 오류)"""
    def __init__(self, channel: str, job_name: str, message: str = None):
        self.channel = channel
        self.job_name = job_name
        self.message = message or f"Failed to send {channel} alert for '{job_name}'"
        super().__init__(self.message)
