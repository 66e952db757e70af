"""
Delivery 관련 예외 클래스 정의
"""


class DeliveryError(Exception):
    """Delivery 기본 예외"""
    pass


class HttpStatusError(DeliveryError):
    """엔드포인트가 성공이 아닌 HTTP 상태를 반환"""
    def __init__(self, status_code: int, reason: str = "", url: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.url = url
        self.message = f"HTTP {status_code} {reason}".rstrip()
        super().__init__(self.message)
