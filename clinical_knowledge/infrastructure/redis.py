"""Async Redis cache remembering which transcripts were recently analysed."""

import hashlib
import logging
from typing import Optional

import redis.asyncio as redis

from ..storage.models import ConversationAggregateKey, LedgerType

logger = logging.getLogger(__name__)


def transcript_hash(transcript: str) -> str:
    """SHA-256 hex digest of a transcript."""
    return hashlib.sha256(transcript.encode("utf-8", errors="surrogatepass")).hexdigest()


class AnalysisCache:
    """Short-lived record of the last transcript analysed per aggregate and ledger.

    Cache errors never fail a request: reads degrade to a miss and writes are
    dropped with a warning.
    """

    def __init__(self) -> None:
        """Initialize the cache (connection created via connect())."""
        self.redis_client: Optional[redis.Redis] = None
        self.ttl_seconds: int = 120

    async def connect(
        self,
        redis_host: str,
        redis_password: Optional[str],
        redis_port: int = 6380,
        redis_ssl: bool = True,
        ttl_seconds: int = 120,
    ) -> None:
        """Create async Redis connection.

        Args:
            redis_host: Redis server hostname
            redis_password: Redis password/access key
            redis_port: Redis port (default: 6380 for Azure SSL)
            redis_ssl: Enable SSL/TLS connection (default: True for Azure)
            ttl_seconds: How long an analysed transcript is remembered
        """
        self.ttl_seconds = ttl_seconds

        try:
            self.redis_client = redis.Redis(
                host=redis_host,
                port=redis_port,
                password=redis_password,
                ssl=redis_ssl,
                ssl_cert_reqs="required" if redis_ssl else None,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                max_connections=10,
            )
            # Test connection
            await self.redis_client.ping()
            logger.info(f"Redis connection successful: {redis_host}:{redis_port}")
        except redis.RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            self.redis_client = None
            raise RuntimeError(f"Failed to connect to Redis: {e}")

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            logger.info("Redis connection closed")

    def is_available(self) -> bool:
        return self.redis_client is not None

    @staticmethod
    def _key(key: ConversationAggregateKey, ledger_type: LedgerType) -> str:
        return f"analysis:{key.owner_id}:{key.patient_id}:{key.conversation_id}:{ledger_type.value}"

    async def was_analyzed(self, key: ConversationAggregateKey, ledger_type: LedgerType, digest: str) -> bool:
        """Whether `digest` is the last transcript analysed within the TTL."""
        if not self.redis_client:
            return False
        try:
            cached = await self.redis_client.get(self._key(key, ledger_type))
        except redis.RedisError as e:
            logger.warning(f"Redis error in was_analyzed: {e}")
            return False
        if cached == digest:
            logger.debug(f"Analysis cache hit for conversation {key.conversation_id} ({ledger_type.value})")
            return True
        return False

    async def mark_analyzed(self, key: ConversationAggregateKey, ledger_type: LedgerType, digest: str) -> None:
        if not self.redis_client:
            return
        try:
            await self.redis_client.set(self._key(key, ledger_type), digest, ex=self.ttl_seconds)
        except redis.RedisError as e:
            logger.warning(f"Redis error in mark_analyzed: {e}")
