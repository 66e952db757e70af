"""Delivery Service - 쿼리 결과 HTTP 전송"""

from delivery.exception import DeliveryError, HttpStatusError
from delivery.main import DeliveryService
from delivery.payload import chunk_rows, serialize_chunk

__all__ = ["DeliveryService", "DeliveryError", "HttpStatusError", "chunk_rows", "serialize_chunk"]
