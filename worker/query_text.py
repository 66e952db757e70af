"""
쿼리 텍스트 해석 (인라인 또는 파일)
"""

import asyncio
import logging
from pathlib import Path

from settings.model import QueryConfig
from worker.exception import QueryTextNotFoundError

logger = logging.getLogger(__name__)


async def resolve_query_text(job: QueryConfig) -> str:
    """
    잡의 원본 쿼리 텍스트 반환

    Raises:
        QueryTextNotFoundError: 둘 다 지정되지 않은 경우
        OSError: 쿼리 파일 읽기 실패
    """
    if job.query_text:
        logger.debug(f"Using inline query_text for '{job.name}'")
        return job.query_text

    if job.query_file:
        logger.debug(f"Reading query_file '{job.query_file}' for '{job.name}'")
        text = await asyncio.to_thread(Path(job.query_file).read_text, encoding="utf-8")
        logger.debug(f"Read {len(text)} characters from '{job.query_file}'")
        return text

    raise QueryTextNotFoundError(job.name)
