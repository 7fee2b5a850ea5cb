# ss14_admin/services/filter_keys.py
"""
Filter Key Service

Opaque, short-lived references to server-side filter criteria, so that
"filter connections by this IP" style links never carry the PII itself in
a URL, browser history or access log.

- A key is 128 random bits rendered as 32 hex characters.
- Keys expire after FILTER_KEY_IDLE_MINUTES without access (sliding).
- A key only resolves for the identity that created it. A foreign or
  unknown key looks the same to the caller; the mismatch is audited.
"""

import asyncio
import logging
import secrets
from typing import Optional

from ss14_admin.core import config
from ss14_admin.services.audit_log import audit_event, get_audit_logger
from ss14_admin.services.expiring_cache import ExpiringCache
from ss14_admin.services.filter_criteria import FilterCriteria

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "filter_key:"
FILTER_KEY_BYTES = 16


class FilterKeyService:
    """Creates, resolves and evicts filter keys over an injected expiring cache."""

    def __init__(
        self,
        cache: ExpiringCache,
        idle_window_seconds: Optional[float] = None,
        sweep_interval_seconds: Optional[float] = None,
        audit_logger: Optional[logging.Logger] = None,
    ):
        self.cache = cache
        if idle_window_seconds is None:
            idle_window_seconds = config.FILTER_KEY_IDLE_MINUTES * 60
        if sweep_interval_seconds is None:
            sweep_interval_seconds = config.FILTER_KEY_SWEEP_INTERVAL_SECONDS
        self.idle_window_seconds = idle_window_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.audit_logger = audit_logger or get_audit_logger("filter_audit", "filter_audit.log")
        self._running = False
        self._sweep_task: Optional[asyncio.Task] = None

    @staticmethod
    def _cache_key(filter_key: str) -> str:
        return f"{CACHE_KEY_PREFIX}{filter_key}"

    def create_filter_key(self, criteria: FilterCriteria) -> str:
        """Store criteria under a fresh random key. Equal criteria still get distinct keys."""
        filter_key = secrets.token_hex(FILTER_KEY_BYTES)
        self.cache.set(self._cache_key(filter_key), criteria, self.idle_window_seconds)

        logger.info(
            "Created filter key %s for user %s, type %s",
            filter_key, criteria.owner_id, criteria.target_view.value,
        )
        return filter_key

    def _lookup_owned(self, filter_key: str, requesting_owner_id: str, action: str) -> Optional[FilterCriteria]:
        if not filter_key or not filter_key.strip():
            logger.warning("Attempted to %s filter with empty key", action)
            return None

        criteria = self.cache.peek(self._cache_key(filter_key))
        if criteria is None:
            logger.warning(
                "Filter key %s not found or expired for user %s",
                filter_key, requesting_owner_id,
            )
            return None

        if criteria.owner_id != requesting_owner_id:
            logger.warning(
                "User %s attempted to %s filter key %s created by %s",
                requesting_owner_id, action, filter_key, criteria.owner_id,
            )
            audit_event(
                logger=self.audit_logger,
                actor=requesting_owner_id,
                action=f"filter_key_{action}",
                target=filter_key,
                result="owner_mismatch",
                level=logging.WARNING,
                extra={"owner": criteria.owner_id, "filter_type": criteria.target_view.value},
            )
            return None

        if not self.cache.touch(self._cache_key(filter_key)):
            return None
        return criteria

    def get_filter_criteria(self, filter_key: str, requesting_owner_id: str) -> Optional[FilterCriteria]:
        """
        Resolve a filter key for its owner.

        Returns:
            The criteria, or None when the key is blank, unknown, expired or
            owned by someone else. A successful read extends the key's lifetime.
        """
        criteria = self._lookup_owned(filter_key, requesting_owner_id, "read")
        if criteria is not None:
            logger.debug("Retrieved filter key %s for user %s", filter_key, requesting_owner_id)
        return criteria

    def remove_filter_key(self, filter_key: str) -> None:
        """Evict a key. Holding the key is enough; no ownership check."""
        if not filter_key or not filter_key.strip():
            return
        self.cache.remove(self._cache_key(filter_key))
        logger.debug("Removed filter key %s", filter_key)

    def extend_filter_key(self, filter_key: str, requesting_owner_id: str) -> bool:
        """Keep a key alive for another idle window without returning its criteria."""
        criteria = self._lookup_owned(filter_key, requesting_owner_id, "extend")
        if criteria is None:
            return False

        self.cache.set(self._cache_key(filter_key), criteria, self.idle_window_seconds)
        logger.debug("Extended filter key %s for user %s", filter_key, requesting_owner_id)
        return True

    # =========================================================================
    # Background sweep
    # =========================================================================

    async def start(self):
        """Start the expired-key sweeper"""
        if self._running:
            return
        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self):
        """Stop the expired-key sweeper"""
        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    async def _sweep_loop(self):
        while self._running:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                removed = self.cache.sweep_expired()
            except Exception:
                logger.exception("Filter key sweep failed")
                continue
            if removed:
                logger.debug("Swept %d expired filter keys", removed)


# =============================================================================
# Global Instance
# =============================================================================

_service: Optional[FilterKeyService] = None


def get_filter_key_service() -> FilterKeyService:
    """Get the process-wide filter key service"""
    global _service
    if _service is None:
        _service = FilterKeyService(ExpiringCache())
    return _service


async def start_sweeper():
    """Start the sweeper (call from app lifespan)"""
    await get_filter_key_service().start()


async def stop_sweeper():
    """Stop the sweeper (call from app lifespan)"""
    await get_filter_key_service().stop()
