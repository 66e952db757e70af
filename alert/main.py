"""
Alert Dispatcher: 실패 알림 전송

채널별 쿨다운 안에서는 같은 잡에 대한 알림을 다시 보내지 않으며,
전송에 성공한 경우에만 (잡, 채널) 알림 시각을 State Store에 기록합니다.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Callable

import httpx

from alert.adapter.base import BaseAlertChannel
from alert.adapter.email import EmailAlertChannel
from alert.adapter.slack import SlackAlertChannel
from alert.exception import AlertSendError
from alert.model import AlertMessage
from settings.model import AlertConfig, FailurePolicy, QueryConfig
from state.main import StateStore

logger = logging.getLogger(__name__)

# 실패 정책 -> 채널 이름
POLICY_CHANNELS = {
    FailurePolicy.SLACK_ALERT: SlackAlertChannel.name,
    FailurePolicy.EMAIL_ALERT: EmailAlertChannel.name,
}


def build_channels(config: AlertConfig, client: httpx.AsyncClient) -> dict[str, BaseAlertChannel]:
    """설정된 채널만 생성"""
    channels: dict[str, BaseAlertChannel] = {}
    if config.slack is not None:
        channels[SlackAlertChannel.name] = SlackAlertChannel(config.slack, client)
    if config.email is not None:
        channels[EmailAlertChannel.name] = EmailAlertChannel(config.email)
    return channels


class AlertDispatcher:
    """쿨다운 기반 알림 디스패처"""

    def __init__(
        self,
        state_store: StateStore,
        channels: dict[str, BaseAlertChannel] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._state_store = state_store
        self._channels = dict(channels or {})
        self._clock = clock

    def apply_channels(self, channels: dict[str, BaseAlertChannel]) -> None:
        """설정 리로드 시 채널 교체"""
        self._channels = dict(channels)

    def can_send(self, job_name: str, channel: str) -> bool:
        """
        알림 전송 가능 여부

        이전 성공 기록이 없거나, 현재 시각이 (마지막 전송 + 쿨다운) 이상이면 True.
        """
        last_alert = self._state_store.get_last_alert(job_name, channel)
        if last_alert is None:
            logger.debug(f"No previous {channel} alert found for '{job_name}', allowing alert")
            return True

        channel_impl = self._channels.get(channel)
        cooldown = channel_impl.cooldown_minutes if channel_impl else 60
        available_at = last_alert + timedelta(minutes=cooldown)
        now = self._clock()

        if now < available_at:
            remaining = math.ceil((available_at - now).total_seconds() / 60)
            logger.debug(f"{channel} alert for '{job_name}' is in cooldown for {remaining} more minutes")
            return False
        return True

    async def send(
        self,
        channel: str,
        job: QueryConfig,
        query_text: str,
        error: BaseException,
    ) -> bool:
        """
        실패 알림 전송

        Returns:
            True: 전송함, False: 쿨다운 또는 채널 미설정으로 건너뜀

        Raises:
            AlertSendError: 전송 실패 (재시도하지 않음)
            StateSaveError: 전송 후 상태 저장 실패
        """
        if not self.can_send(job.name, channel):
            logger.debug(f"Skipping {channel} alert for '{job.name}' due to cooldown period")
            return False

        channel_impl = self._channels.get(channel)
        if channel_impl is None:
            logger.warning(f"{channel} alert requested for '{job.name}' but {channel} configuration is missing")
            return False

        message = AlertMessage.from_failure(job, query_text, error, self._clock())
        try:
            await channel_impl.send(message)
        except AlertSendError as e:
            logger.error(f"Failed to send {channel} alert for '{job.name}': {e}")
            raise

        logger.info(f"{channel} alert sent successfully for '{job.name}'")
        await self._state_store.set_last_alert(job.name, channel, self._clock())
        await self._state_store.save()
        return True

    async def send_for_policy(
        self,
        policy: FailurePolicy,
        job: QueryConfig,
        query_text: str,
        error: BaseException,
    ) -> bool:
        """실패 정책에 해당하는 채널로 전송"""
        channel = POLICY_CHANNELS.get(policy)
        if channel is None:
            raise ValueError(f"Failure policy '{policy.value}' has no alert channel")
        return await self.send(channel, job, query_text, error)
