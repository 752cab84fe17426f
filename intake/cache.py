"""
cache.py — Redis caching layer for the intake backend.

Namespace conventions:
  session:{user_id}          → ClientSession dict            TTL 24h
  draft:{user_id}            → questionnaire draft dict      TTL 24h
  user:{sha256(token)}       → AuthUser dict                 TTL 24h, capped by token expiry

Design:
  - Uses redis.asyncio (async client, part of redis-py 5.x)
  - Pool created once in lifespan, stored on app.state.redis
  - Helper functions take the client as a param — no module-level global state
  - User key uses SHA-256 of the bearer token so raw tokens never reach Redis
  - Logs only user_id (not data values)
"""
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as aioredis

from intake.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# TTL constants (seconds)
# ---------------------------------------------------------------------------
SESSION_TTL: int = settings.session_ttl_seconds
DRAFT_TTL: int = settings.session_ttl_seconds
USER_TTL: int = settings.session_ttl_seconds

# ---------------------------------------------------------------------------
# Key prefix constants
# ---------------------------------------------------------------------------
SESSION_PREFIX = "session"
DRAFT_PREFIX = "draft"
USER_PREFIX = "user"


# ---------------------------------------------------------------------------
# Key builders
# ---------------------------------------------------------------------------

def make_session_key(user_id: str) -> str:
    return f"{SESSION_PREFIX}:{user_id}"


def make_draft_key(user_id: str) -> str:
    return f"{DRAFT_PREFIX}:{user_id}"


def make_user_key(token: str) -> str:
    """Key format: user:{sha256hex(token)}"""
    digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
    return f"{USER_PREFIX}:{digest}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Pool factory — called once in lifespan
# ---------------------------------------------------------------------------

async def create_redis_pool() -> aioredis.Redis:
    """
    Create and return an async Redis connection pool.
    Verifies connectivity with PING before returning.
    """
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    await client.ping()
    logger.info("Redis connection pool established")
    return client


async def _get_json(client: aioredis.Redis, key: str) -> Optional[dict]:
    raw = await client.get(key)
    if raw is None:
        return None
    return json.loads(raw)


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------

async def get_session_data(client: aioredis.Redis, user_id: str) -> Optional[dict]:
    """Returns None if the session expired or never existed."""
    return await _get_json(client, make_session_key(user_id))


async def set_session_data(client: aioredis.Redis, user_id: str, data: dict) -> dict:
    """
    Replace the session. userId and lastUpdated are always stamped server-side.
    Overwrites the existing value and resets the TTL.
    """
    data = {**data, "userId": user_id, "lastUpdated": _now_iso()}
    await client.setex(make_session_key(user_id), SESSION_TTL, json.dumps(data))
    logger.info("Session data updated user_id=%s ttl=%ds", user_id, SESSION_TTL)
    return data


async def update_session_data(client: aioredis.Redis, user_id: str, changes: dict) -> dict:
    """Merge changes into the current session, creating it if absent."""
    current = await get_session_data(client, user_id) or {}
    current.update(changes)
    return await set_session_data(client, user_id, current)


async def clear_session_data(client: aioredis.Redis, user_id: str) -> None:
    await client.delete(make_session_key(user_id))
    logger.info("Session cleared user_id=%s", user_id)


# ---------------------------------------------------------------------------
# Questionnaire draft helpers
# ---------------------------------------------------------------------------

async def get_draft(client: aioredis.Redis, user_id: str) -> Optional[dict]:
    return await _get_json(client, make_draft_key(user_id))


async def set_draft(client: aioredis.Redis, user_id: str, draft: dict) -> dict:
    """Store a questionnaire draft stamped with lastSaved."""
    draft = {**draft, "lastSaved": _now_iso()}
    await client.setex(make_draft_key(user_id), DRAFT_TTL, json.dumps(draft))
    logger.info("Draft saved user_id=%s", user_id)
    return draft


async def clear_draft(client: aioredis.Redis, user_id: str) -> None:
    await client.delete(make_draft_key(user_id))
    logger.info("Draft cleared user_id=%s", user_id)


# ---------------------------------------------------------------------------
# Identity cache helpers
# ---------------------------------------------------------------------------

async def get_cached_user(client: aioredis.Redis, token: str) -> Optional[dict]:
    return await _get_json(client, make_user_key(token))


async def set_cached_user(
    client: aioredis.Redis,
    token: str,
    user: dict,
    expires_at: Optional[int] = None,
) -> None:
    """Cache the resolved identity; never outlives the token itself."""
    ttl = USER_TTL
    if expires_at:
        remaining = int(expires_at - datetime.now(timezone.utc).timestamp())
        ttl = max(1, min(ttl, remaining))
    await client.setex(make_user_key(token), ttl, json.dumps(user))
    logger.info("User cached user_id=%s ttl=%ds", user.get("id"), ttl)


async def clear_cached_user(client: aioredis.Redis, token: str) -> None:
    await client.delete(make_user_key(token))


async def record_session_step(
    client: Optional[aioredis.Redis], user_id: str, changes: dict
) -> None:
    """
    Best-effort session update after a pipeline step. The durable outcome is
    already in PostgreSQL, so a Redis outage is logged and the request succeeds.
    """
    if client is None:
        return
    try:
        await update_session_data(client, user_id, changes)
    except aioredis.RedisError as exc:
        logger.warning("Session update skipped user_id=%s: %s", user_id, type(exc).__name__)
