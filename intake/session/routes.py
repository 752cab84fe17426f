"""
Session HTTP routes — client session, questionnaire draft and identity cache.

  GET/PUT/DELETE /api/session
  GET/PUT/DELETE /api/questionnaire/draft
  GET            /api/me?refresh=true
  POST           /api/logout

Everything here lives in Redis and may vanish at any time; the analysis
history in PostgreSQL stays the source of truth.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from intake.auth import AuthUser, decode_token, require_token, require_user, user_from_claims
from intake.cache import (
    clear_cached_user,
    clear_draft,
    clear_session_data,
    get_cached_user,
    get_draft,
    get_session_data,
    set_cached_user,
    set_draft,
    update_session_data,
)
from intake.session.schemas import ClientSession, QuestionnaireDraft, SessionUpdate

router = APIRouter(prefix="/api", tags=["session"])
logger = logging.getLogger(__name__)


def _redis(request: Request):
    return request.app.state.redis


# ---------------------------------------------------------------------------
# Client session
# ---------------------------------------------------------------------------

@router.get("/session", response_model=Optional[ClientSession])
async def read_session(
    request: Request,
    user: AuthUser = Depends(require_user),
) -> Optional[ClientSession]:
    """Current session, or null when none exists (expired or never created)."""
    data = await get_session_data(_redis(request), user.id)
    return ClientSession.model_validate(data) if data else None


@router.put("/session", response_model=ClientSession)
async def write_session(
    body: SessionUpdate,
    request: Request,
    user: AuthUser = Depends(require_user),
) -> ClientSession:
    """Merge the provided fields into the session, creating it if needed."""
    changes = body.model_dump(by_alias=True, exclude_unset=True, mode="json")
    data = await update_session_data(_redis(request), user.id, changes)
    return ClientSession.model_validate(data)


@router.delete("/session", status_code=204)
async def delete_session(
    request: Request,
    user: AuthUser = Depends(require_user),
) -> Response:
    await clear_session_data(_redis(request), user.id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Questionnaire draft
# ---------------------------------------------------------------------------

@router.get("/questionnaire/draft", response_model=Optional[QuestionnaireDraft])
async def read_draft(
    request: Request,
    user: AuthUser = Depends(require_user),
) -> Optional[QuestionnaireDraft]:
    data = await get_draft(_redis(request), user.id)
    return QuestionnaireDraft.model_validate(data) if data else None


@router.put("/questionnaire/draft", response_model=QuestionnaireDraft)
async def write_draft(
    body: QuestionnaireDraft,
    request: Request,
    user: AuthUser = Depends(require_user),
) -> QuestionnaireDraft:
    """Save the in-progress questionnaire; lastSaved is stamped server-side."""
    draft = body.model_dump(by_alias=True, exclude={"last_saved"}, mode="json")
    saved = await set_draft(_redis(request), user.id, draft)
    return QuestionnaireDraft.model_validate(saved)


@router.delete("/questionnaire/draft", status_code=204)
async def delete_draft(
    request: Request,
    user: AuthUser = Depends(require_user),
) -> Response:
    await clear_draft(_redis(request), user.id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

@router.get("/me", response_model=AuthUser)
async def read_me(
    request: Request,
    refresh: bool = False,
    token: str = Depends(require_token),
) -> AuthUser:
    """
    Resolved identity for the bearer token, served from cache unless
    refresh=true. The token is re-verified on every call either way.
    """
    claims = decode_token(token)
    redis = _redis(request)

    if not refresh:
        cached = await get_cached_user(redis, token)
        if cached is not None:
            return AuthUser.model_validate(cached)

    user = user_from_claims(claims)
    await set_cached_user(
        redis,
        token,
        user.model_dump(by_alias=True),
        expires_at=claims.get("exp"),
    )
    return user


@router.post("/logout", status_code=204)
async def logout(
    request: Request,
    token: str = Depends(require_token),
) -> Response:
    """Clear cached identity, session and questionnaire draft."""
    user = user_from_claims(decode_token(token))
    redis = _redis(request)
    await clear_cached_user(redis, token)
    await clear_session_data(redis, user.id)
    await clear_draft(redis, user.id)
    logger.info("User logged out user_id=%s", user.id)
    return Response(status_code=204)
