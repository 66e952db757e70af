"""Alert Dispatcher - 쿨다운 기반 실패 알림"""

from alert.exception import AlertError, AlertSendError
from alert.main import AlertDispatcher, build_channels
from alert.model import AlertMessage

__all__ = ["AlertDispatcher", "AlertMessage", "AlertError", "AlertSendError", "build_channels"]
