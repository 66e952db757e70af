"""Alert 채널 기본 인터페이스"""
from abc import ABC, abstractmethod

from alert.model import AlertMessage


class BaseAlertChannel(ABC):
    """
    알림 채널 기본 클래스

    Slack 웹훅, 이메일 등 전송 수단별 구현이 공유하는 인터페이스를 정의합니다.
    """

    name: str = ""

    @property
    @abstractmethod
    def cooldown_minutes(self) -> int:
        """같은 잡에 대한 연속 알림 최소 간격 (분)"""
        ...

    @abstractmethod
    async def send(self, message: AlertMessage) -> None:
        """
        알림 전송

        Raises:
            AlertSendError: 전송 실패
        """
        ...
