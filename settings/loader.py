"""
설정 파일 로드 및 검증

YAML 파일을 읽어 QueryPushSettings로 변환하고, 모델 수준 오류와 참조 오류를
모두 모아 하나의 ConfigurationError로 보고합니다.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from common.cron import CronParseError, validate_cron
from settings.exception import ConfigurationError
from settings.model import (
    SUPPORTED_PROVIDERS,
    FailurePolicy,
    QueryPushSettings,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "querypush.yaml"


def read_config_file(path: str | Path) -> dict[str, Any]:
    """YAML 설정 파일 읽기"""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError([f"Configuration file '{path}' not found"])
    except yaml.YAMLError as e:
        raise ConfigurationError([f"Configuration file '{path}' is not valid YAML: {e}"])

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError([f"Configuration file '{path}' must contain a mapping at the top level"])
    return data


def _format_pydantic_errors(error: ValidationError) -> list[str]:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        messages.append(f"{location}: {err['msg']}")
    return messages


def _duplicates(names: list[str]) -> list[str]:
    return [name for name, count in Counter(names).items() if count > 1]


def validate_settings(settings: QueryPushSettings, base_dir: Path | None = None) -> None:
    """
    참조 무결성 검증

    Args:
        settings: 모델 검증을 통과한 설정
        base_dir: query_file 상대 경로의 기준 디렉토리

    Raises:
        ConfigurationError: 하나 이상의 오류가 있는 경우 (모든 오류를 모아서)
    """
    errors: list[str] = []

    if not settings.databases:
        errors.append("At least one database configuration is required")
    if not settings.endpoints:
        errors.append("At least one endpoint configuration is required")

    for name in _duplicates([d.name for d in settings.databases]):
        errors.append(f"Duplicate database name '{name}'")
    for name in _duplicates([e.name for e in settings.endpoints]):
        errors.append(f"Duplicate endpoint name '{name}'")
    for name in _duplicates([q.name for q in settings.queries]):
        errors.append(f"Duplicate query name '{name}'")

    for database in settings.databases:
        if database.provider.lower() not in SUPPORTED_PROVIDERS:
            errors.append(
                f"Database '{database.name}' uses unsupported provider '{database.provider}'. "
                f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        elif database.provider.lower() == "sqlite" and not database.path:
            errors.append(f"Database '{database.name}' (sqlite) requires 'path'")

    for query in settings.queries:
        if settings.get_database(query.database) is None:
            errors.append(f"Query '{query.name}' references unknown database '{query.database}'")

        if settings.get_endpoint(query.endpoint) is None:
            errors.append(f"Query '{query.name}' references unknown endpoint '{query.endpoint}'")

        if query.on_failure == FailurePolicy.SLACK_ALERT and settings.alerts.slack is None:
            errors.append(f"Query '{query.name}' uses slack_alert but Slack configuration is missing")

        if query.on_failure == FailurePolicy.EMAIL_ALERT and settings.alerts.email is None:
            errors.append(f"Query '{query.name}' uses email_alert but Email configuration is missing")

        if not query.query_text and not query.query_file:
            errors.append(f"Query '{query.name}' must specify either query_text or query_file")

        if query.query_text and query.query_file:
            errors.append(f"Query '{query.name}' cannot specify both query_text and query_file")

        if query.query_file and not query.query_text:
            query_path = Path(query.query_file)
            if base_dir is not None and not query_path.is_absolute():
                query_path = base_dir / query_path
            if not query_path.is_file():
                errors.append(f"Query '{query.name}' query_file '{query.query_file}' not found")

        try:
            validate_cron(query.cron)
        except CronParseError as e:
            errors.append(f"Query '{query.name}': {e.message}")

    if errors:
        raise ConfigurationError(errors)


def _raw_names(data: dict[str, Any], section: str) -> set[str]:
    items = data.get(section) or []
    if not isinstance(items, list):
        return set()
    return {item["name"] for item in items if isinstance(item, dict) and isinstance(item.get("name"), str)}


def _raw_reference_errors(data: dict[str, Any]) -> list[str]:
    """
    모델 검증 실패 시에도 가능한 참조 오류 수집 (원시 dict 기준)

    쿼리의 database/endpoint 참조와 크론 표현식만 확인합니다.
    """
    queries = data.get("queries") or []
    if not isinstance(queries, list):
        return []

    databases = _raw_names(data, "databases")
    endpoints = _raw_names(data, "endpoints")
    errors: list[str] = []

    for query in queries:
        if not isinstance(query, dict):
            continue
        name = query.get("name", "<unnamed>")

        database = query.get("database")
        if isinstance(database, str) and database not in databases:
            errors.append(f"Query '{name}' references unknown database '{database}'")

        endpoint = query.get("endpoint")
        if isinstance(endpoint, str) and endpoint not in endpoints:
            errors.append(f"Query '{name}' references unknown endpoint '{endpoint}'")

        cron = query.get("cron")
        if isinstance(cron, str):
            try:
                validate_cron(cron)
            except CronParseError as e:
                errors.append(f"Query '{name}': {e.message}")
    return errors


def parse_settings(data: dict[str, Any], base_dir: Path | None = None) -> QueryPushSettings:
    """
    dict -> QueryPushSettings (검증 포함)

    모델 검증이 실패하면 모델 오류와 원시 dict 기준 참조 오류를 함께 보고합니다.
    나머지 참조 검증(알림 설정, query_file 존재 등)은 모델 검증 통과 후에만 수행됩니다.
    """
    try:
        settings = QueryPushSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(_format_pydantic_errors(e) + _raw_reference_errors(data))

    validate_settings(settings, base_dir)
    return settings


def load_settings(path: str | Path = DEFAULT_CONFIG_PATH) -> QueryPushSettings:
    """
    설정 파일 로드

    상대 경로의 query_file은 현재 작업 디렉토리 기준으로 해석합니다.

    Raises:
        ConfigurationError: 파일 읽기/모델 검증/참조 검증 실패
    """
    data = read_config_file(path)
    settings = parse_settings(data)
    logger.info(
        f"Loaded configuration from {path} "
        f"({len(settings.databases)} databases, {len(settings.endpoints)} endpoints, "
        f"{len(settings.queries)} queries)"
    )
    return settings
