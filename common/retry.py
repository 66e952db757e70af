"""
재시도 지연 계산

Execution Engine과 Delivery Service가 같은 백오프 공식을 사용합니다.
"""

from settings.model import EndpointConfig, RetryStrategy


def calculate_delay(
    strategy: RetryStrategy,
    backoff_seconds: float,
    attempt: int,
) -> float:
    """
    재시도 전 대기 시간(초) 계산

    Args:
        strategy: 재시도 전략 (고정 지연 / 지수 백오프)
        backoff_seconds: 기본 백오프 시간
        attempt: 방금 실패한 시도 번호 (1부터 시작)

    Returns:
        delay: 고정 지연이면 backoff_seconds, 지수 백오프면 backoff_seconds * 2^(attempt-1)
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    if strategy == RetryStrategy.EXPONENTIAL_BACKOFF:
        return backoff_seconds * (2 ** (attempt - 1))
    return float(backoff_seconds)


def endpoint_delay(endpoint: EndpointConfig, attempt: int) -> float:
    """엔드포인트 설정 기준 재시도 지연"""
    return calculate_delay(endpoint.retry_strategy, endpoint.backoff_seconds, attempt)
