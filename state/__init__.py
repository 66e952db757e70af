"""State Store - 실행/알림 이력의 원자적 영속화"""

from state.main import StateStore
from state.model import RunState, alert_key

__all__ = ["StateStore", "RunState", "alert_key"]
