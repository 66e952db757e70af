"""
설정 파일 변경 감지

파일 수정 시각을 주기적으로 확인하여, 변경되면 다시 로드/검증한 뒤
콜백으로 새 설정 세대를 넘깁니다. 검증에 실패한 설정은 적용하지 않습니다.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

from settings.exception import ConfigurationError
from settings.loader import load_settings
from settings.model import QueryPushSettings

logger = logging.getLogger(__name__)

OnChange = Callable[[QueryPushSettings], Awaitable[None]]


class ConfigWatcher:
    """설정 파일 폴링 감시자"""

    def __init__(self, path: str | Path, on_change: OnChange, interval_seconds: float = 5.0):
        self._path = Path(path)
        self._on_change = on_change
        self._interval = interval_seconds
        self._last_mtime: float | None = self._read_mtime()
        self._running = False
        self._stop_event: asyncio.Event | None = None

    def _read_mtime(self) -> float | None:
        try:
            return self._path.stat().st_mtime
        except OSError:
            return None

    async def check(self) -> bool:
        """
        변경 여부 확인 후 적용

        Returns:
            True: 새 설정이 적용됨
        """
        mtime = self._read_mtime()
        if mtime is None or mtime == self._last_mtime:
            return False

        self._last_mtime = mtime
        logger.info(f"Configuration file changed: {self._path}")

        try:
            settings = await asyncio.to_thread(load_settings, self._path)
        except ConfigurationError as e:
            logger.error(f"Ignoring invalid configuration change, keeping current settings. {e.message}")
            return False

        await self._on_change(settings)
        return True

    async def start(self) -> None:
        """감시 루프 시작"""
        self._running = True
        self._stop_event = asyncio.Event()
        logger.debug(f"ConfigWatcher started (path={self._path}, interval={self._interval}s)")

        while self._running:
            try:
                await self.check()
            except Exception as e:
                logger.error(f"Error applying configuration change: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass

        logger.debug("ConfigWatcher stopped")

    async def stop(self) -> None:
        self._running = False
        if self._stop_event:
            self._stop_event.set()
