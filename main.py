"""
QueryPush 진입점

설정 파일을 로드/검증한 뒤 스케줄러와 설정 감시자를 실행합니다.

사용법:
    python main.py                                  # config/querypush.yaml
    python main.py --config /etc/querypush.yaml     # 설정 파일 지정
    python main.py --validate                       # 설정 검증만 하고 종료
    python main.py --log-level DEBUG

종료 코드:
    0: 정상 종료, 1: 설정 오류, 2: halt 실패 정책에 의한 중단
"""

import sys
import os

# Windows 인코딩 설정 (cp949 -> UTF-8)
if sys.platform == "win32":
    os.environ["PYTHONUTF8"] = "1"

import argparse
import asyncio
import logging
import signal

import httpx

from alert.main import AlertDispatcher, build_channels
from common.logging import setup_logging
from database.registry import DatabaseRegistry
from database.service import QueryService
from delivery.main import DeliveryService
from scheduler.main import Scheduler
from settings.exception import ConfigurationError
from settings.loader import DEFAULT_CONFIG_PATH, load_settings
from settings.model import QueryPushSettings
from settings.watcher import ConfigWatcher
from state.main import StateStore
from template.main import TemplateEngine
from worker.executor import Executor

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIGURATION_ERROR = 1
EXIT_HALTED = 2


def configure_logging(settings: QueryPushSettings, level_override: str | None = None) -> None:
    """설정 파일의 logging 섹션으로 로깅 구성"""
    log_config = settings.logging
    setup_logging(
        level=level_override or log_config.level,
        json_format=log_config.json_format,
        log_directory=log_config.log_directory,
        rotation_strategy=log_config.rotation_strategy.value,
        retention_days=log_config.retention_days,
    )


async def run(settings: QueryPushSettings, config_path: str) -> int:
    """
    서비스 실행

    Returns:
        int: 종료 코드
    """
    registry = DatabaseRegistry()
    await registry.init_from_config(settings.databases)

    state_store = StateStore(settings.scheduler.state_file)
    await state_store.load()

    http_client = httpx.AsyncClient()
    alert_dispatcher = AlertDispatcher(state_store, build_channels(settings.alerts, http_client))
    delivery_service = DeliveryService(http_client)
    executor = Executor(
        query_service=QueryService(registry),
        template_engine=TemplateEngine(state_store),
        delivery_service=delivery_service,
        alert_dispatcher=alert_dispatcher,
        state_store=state_store,
    )

    scheduler = Scheduler(executor, state_store, settings.scheduler)
    scheduler.apply_config(settings)

    async def on_config_change(new_settings: QueryPushSettings) -> None:
        await registry.init_from_config(new_settings.databases)
        alert_dispatcher.apply_channels(build_channels(new_settings.alerts, http_client))
        scheduler.apply_config(new_settings)

    watcher = ConfigWatcher(
        config_path,
        on_config_change,
        settings.scheduler.config_check_interval_seconds,
    )

    # 시그널 핸들러
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        scheduler.request_stop()

    # Windows는 add_signal_handler를 지원하지 않음
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

    watcher_task = asyncio.create_task(watcher.start())
    logger.info(f"QueryPush started with {len(scheduler.jobs)} active queries")

    try:
        await scheduler.start()
    except asyncio.CancelledError:
        logger.info("Tasks cancelled")
    finally:
        await watcher.stop()
        await watcher_task
        await registry.close_all()
        await http_client.aclose()
        logger.info("QueryPush stopped")

    if scheduler.fatal_error is not None:
        logger.critical(f"QueryPush halted: {scheduler.fatal_error}")
        return EXIT_HALTED
    return EXIT_OK


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="querypush",
        description="QueryPush - 크론 스케줄 기반 쿼리 실행 및 HTTP 전송",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help=f"Configuration file path (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        print(e.message, file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    if args.validate:
        print(
            f"Configuration is valid: {len(settings.databases)} databases, "
            f"{len(settings.endpoints)} endpoints, {len(settings.queries)} queries"
        )
        return EXIT_OK

    configure_logging(settings, args.log_level)

    try:
        return asyncio.run(run(settings, args.config))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
