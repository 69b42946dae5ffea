"""Redis-based crisis session state with an in-process mirror."""

import logging
import time
from collections import OrderedDict
from typing import Optional

from redis.exceptions import RedisError

from crisis_core.config import settings
from crisis_core.infra.redis import APP_PREFIX, RedisClient, get_redis
from .models import SessionState, _utcnow

logger = logging.getLogger(__name__)

# Session key prefix (extends existing APP_PREFIX)
SESSION_PREFIX = f"{APP_PREFIX}crisis:session:"

# Upper bound on sessions mirrored in process memory
MAX_MIRRORED_SESSIONS = 10_000


class SessionStore:
    """
    Redis-based store for per-session crisis state.

    Key pattern: roger:v1:crisis:session:{session_id}

    Every save is written to Redis and to an in-process mirror, and a
    load takes whichever copy was updated last. A Redis outage in the
    middle of a session therefore keeps the asked-once flag, tiers and
    phone request count, and a stale Redis copy never overrides newer
    state written while Redis was down. Malformed stored state is
    replaced by a fresh state, never raised.
    """

    def __init__(self, ttl: Optional[int] = None, max_mirrored: int = MAX_MIRRORED_SESSIONS):
        """Initialize session store."""
        self._ttl = ttl or settings.redis_session_ttl
        self._max_mirrored = max_mirrored
        # session_id -> (payload, monotonic expiry)
        self._mirror: "OrderedDict[str, tuple[str, float]]" = OrderedDict()

    def _key(self, session_id: str) -> str:
        """Generate Redis key."""
        return f"{SESSION_PREFIX}{session_id}"

    async def load(self, session_id: str) -> SessionState:
        """
        Get session state, creating a fresh one if missing or corrupt.

        Args:
            session_id: Session identifier

        Returns:
            SessionState
        """
        candidates = [
            self._parse(session_id, await self._read_redis(session_id), "redis"),
            self._parse(session_id, self._read_mirror(session_id), "memory"),
        ]
        states = [state for state in candidates if state is not None]
        if not states:
            return SessionState(session_id=session_id)

        # Redis first so it wins ties
        return max(states, key=lambda state: state.updated_at)

    async def save(self, state: SessionState) -> bool:
        """
        Save session state to Redis and the in-process mirror.

        Args:
            state: SessionState to save

        Returns:
            True once the mirror holds the state
        """
        state.updated_at = _utcnow()
        payload = state.to_json()
        self._write_mirror(state.session_id, payload)

        redis = await get_redis()
        if redis:
            try:
                await redis.setex(self._key(state.session_id), self._ttl, payload)
                logger.debug(f"Session saved: {state.session_id}")
            except RedisError as e:
                logger.error(f"Failed to save session {state.session_id}: {e}")
                RedisClient.mark_failed()
        return True

    async def exists(self, session_id: str) -> bool:
        """Check whether state has been saved for a session."""
        if self._read_mirror(session_id) is not None:
            return True
        return await self._read_redis(session_id) is not None

    @staticmethod
    def _parse(session_id: str, raw: Optional[str], source: str) -> Optional[SessionState]:
        if raw is None:
            return None
        try:
            state = SessionState.from_json(raw)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Corrupt session state for {session_id} in {source}, ignoring: {e}")
            return None

        if state.session_id != session_id:
            logger.error(f"Session state key mismatch for {session_id} in {source}, ignoring")
            return None
        return state

    async def _read_redis(self, session_id: str) -> Optional[str]:
        redis = await get_redis()
        if not redis:
            return None
        try:
            return await redis.get(self._key(session_id))
        except RedisError as e:
            logger.error(f"Failed to get session {session_id}: {e}")
            RedisClient.mark_failed()
            return None

    def _read_mirror(self, session_id: str) -> Optional[str]:
        entry = self._mirror.get(session_id)
        if entry is None:
            return None
        payload, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._mirror[session_id]
            return None
        return payload

    def _write_mirror(self, session_id: str, payload: str) -> None:
        self._mirror[session_id] = (payload, time.monotonic() + self._ttl)
        self._mirror.move_to_end(session_id)
        while len(self._mirror) > self._max_mirrored:
            evicted, _ = self._mirror.popitem(last=False)
            logger.warning(f"Session mirror full, evicted least recently saved session {evicted}")


# Singleton
_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get singleton SessionStore."""
    global _store
    if _store is None:
        _store = SessionStore()
    return _store
