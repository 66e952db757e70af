"""
State Store: 실행/알림 이력 저장소

잡별 마지막 성공 실행 시각과 (잡, 채널)별 마지막 알림 시각을 메모리에 유지하고,
JSON 파일로 원자적으로 영속화합니다.

원자성:
- 같은 디렉토리의 임시 파일에 쓰고 fsync 후 os.replace로 교체
- POSIX/Windows 모두 os.replace는 같은 볼륨 내에서 원자적
- 네트워크 파일시스템 등 rename 원자성을 보장하지 않는 환경에서는
  저장 도중 크래시 시 임시 파일만 남고 기존 파일은 유지되는 수준으로 보장이 좁아짐

동시성:
- 모든 변경/저장/로드는 하나의 asyncio.Lock으로 직렬화
- 락은 메모리 변경과 파일 쓰기 동안에만 보유 (쿼리/HTTP 호출 중에는 보유하지 않음)
"""

import asyncio
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from state.exception import StateSaveError
from state.model import RunState, alert_key, to_local_naive

logger = logging.getLogger(__name__)


class StateStore:
    """실행 이력 저장소"""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._state = RunState()

    @property
    def path(self) -> Path:
        return self._path

    def get_last_run(self, job_name: str) -> datetime | None:
        """마지막 성공 실행 시각"""
        return self._state.last_run_times.get(job_name)

    async def set_last_run(self, job_name: str, timestamp: datetime) -> None:
        async with self._lock:
            self._state.last_run_times[job_name] = to_local_naive(timestamp)
        logger.debug(f"Set last run for '{job_name}' to {timestamp.isoformat()}")

    def get_last_alert(self, job_name: str, channel: str) -> datetime | None:
        """마지막 성공 알림 시각"""
        return self._state.last_alert_times.get(alert_key(job_name, channel))

    async def set_last_alert(self, job_name: str, channel: str, timestamp: datetime) -> None:
        async with self._lock:
            self._state.last_alert_times[alert_key(job_name, channel)] = to_local_naive(timestamp)
        logger.debug(f"Set last {channel} alert for '{job_name}' to {timestamp.isoformat()}")

    def snapshot(self) -> RunState:
        """현재 상태 복사본 (테스트/조회용)"""
        return self._state.model_copy(deep=True)

    async def load(self) -> None:
        """
        상태 파일 로드

        파일이 없거나 파싱에 실패하면 빈 상태로 시작합니다 (예외 없음).
        """
        async with self._lock:
            try:
                raw = await asyncio.to_thread(self._path.read_bytes)
            except FileNotFoundError:
                logger.info(f"No existing state file found at {self._path}, starting with empty state")
                self._state = RunState()
                return
            except OSError as e:
                logger.error(f"Failed to read state from {self._path}: {e}")
                self._state = RunState()
                return

            try:
                self._state = RunState.model_validate_json(raw)
            except (ValidationError, UnicodeDecodeError) as e:
                # 잘못된 UTF-8도 파싱 실패로 취급
                logger.error(f"Failed to parse state file {self._path}, starting with empty state: {e}")
                self._state = RunState()
                return

            logger.info(
                f"Loaded state with {len(self._state.last_run_times)} query states "
                f"and {len(self._state.last_alert_times)} alert states"
            )

    async def save(self) -> None:
        """
        상태 파일 저장 (임시 파일 쓰기 후 교체)

        Raises:
            StateSaveError: 저장 실패 시 (이력 유실은 이후 due/cooldown 판단을 틀리게 하므로 전파)
        """
        async with self._lock:
            payload = self._state.model_dump_json(indent=2)
            try:
                await asyncio.to_thread(self._write_atomic, payload)
            except OSError as e:
                logger.error(f"Failed to save state to {self._path}: {e}")
                raise StateSaveError(str(self._path), f"Failed to save state to {self._path}: {e}") from e

        logger.debug(f"Saved state to {self._path}")

    def _write_atomic(self, payload: str) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
