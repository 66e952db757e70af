"""
Delivery Service: 쿼리 결과 HTTP 전송

결과 행을 청크로 나누어 엔드포인트에 순서대로 전송합니다.
각 청크는 엔드포인트의 재시도 정책에 따라 독립적으로 재시도되며,
어느 청크든 재시도가 소진되면 마지막 오류를 호출자에게 전파하고 나머지 청크는 보내지 않습니다.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Sequence

import httpx

from common.retry import endpoint_delay
from database.base import Row
from delivery.exception import HttpStatusError
from delivery.payload import chunk_rows, serialize_chunk
from settings.model import EndpointConfig, PayloadFormat

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class DeliveryService:
    """청크 단위 HTTP 전송기"""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            client: 공유 HTTP 클라이언트 (미지정 시 내부 생성, close()에서 닫음)
            sleep: 대기 함수 (테스트에서 교체)
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._sleep = sleep

    async def send(
        self,
        endpoint: EndpointConfig,
        rows: Sequence[Row],
        payload_format: PayloadFormat,
    ) -> int:
        """
        결과 전송

        빈 결과는 빈 페이로드 하나로 전송합니다 (send_request_if_no_results 판단은 호출자 몫).

        Returns:
            전송한 청크 수

        Raises:
            HttpStatusError | httpx.HTTPError: 청크 재시도 소진 시 마지막 오류
        """
        chunks = chunk_rows(rows, endpoint.payload_size) or [[]]
        chunk_count = len(chunks)

        logger.info(
            f"Sending data to endpoint '{endpoint.name}' ({endpoint.method.value} {endpoint.url}). "
            f"Data split into {chunk_count} chunks, payload format: {payload_format.value}"
        )

        for index, chunk in enumerate(chunks, start=1):
            await self._send_chunk_with_retry(endpoint, chunk, payload_format, index, chunk_count)

            if endpoint.request_delay_ms > 0 and index < chunk_count:
                logger.debug(f"Waiting {endpoint.request_delay_ms}ms before next request")
                await self._sleep(endpoint.request_delay_ms / 1000.0)

        logger.info(f"Completed sending all {chunk_count} chunks to endpoint '{endpoint.name}'")
        return chunk_count

    async def _send_chunk_with_retry(
        self,
        endpoint: EndpointConfig,
        chunk: list[Row],
        payload_format: PayloadFormat,
        chunk_index: int,
        chunk_count: int,
    ) -> None:
        """청크 하나를 최대 retry_attempts + 1회 전송 시도"""
        content = serialize_chunk(chunk, payload_format)
        logger.debug(f"Formatted payload as {payload_format.value}, size: {len(content)} chars")

        max_attempts = endpoint.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                await self._send_once(endpoint, content, len(chunk), chunk_index, chunk_count, attempt)
                return
            except (HttpStatusError, httpx.HTTPError) as e:
                if attempt < max_attempts:
                    delay = endpoint_delay(endpoint, attempt)
                    logger.warning(
                        f"HTTP request failed for chunk {chunk_index}/{chunk_count} on attempt "
                        f"{attempt}/{max_attempts}: {e}. Retrying in {delay:.1f}s"
                    )
                    await self._sleep(delay)
                else:
                    logger.error(
                        f"HTTP request failed for chunk {chunk_index}/{chunk_count} on final attempt "
                        f"{attempt}/{max_attempts}: {e}"
                    )
                    raise

    async def _send_once(
        self,
        endpoint: EndpointConfig,
        content: str,
        record_count: int,
        chunk_index: int,
        chunk_count: int,
        attempt: int,
    ) -> None:
        headers = {"Content-Type": "application/json; charset=utf-8"}
        for header in endpoint.headers:
            headers[header.name] = header.value

        logger.debug(
            f"Sending chunk {chunk_index}/{chunk_count} with {record_count} records "
            f"to {endpoint.url} (attempt {attempt})"
        )

        started = time.monotonic()
        response = await self._client.request(
            endpoint.method.value,
            endpoint.url,
            content=content.encode("utf-8"),
            headers=headers,
            timeout=endpoint.request_timeout_seconds,
        )
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if not response.is_success:
            raise HttpStatusError(response.status_code, response.reason_phrase, endpoint.url)

        logger.info(
            f"HTTP request successful: {response.status_code} in {elapsed_ms}ms "
            f"(chunk {chunk_index}/{chunk_count}, attempt {attempt})"
        )

    async def close(self) -> None:
        """내부에서 생성한 HTTP 클라이언트 종료"""
        if self._owns_client:
            await self._client.aclose()
