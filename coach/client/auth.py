"""
Client identity resolution.

Signing in is delegated to an external provider; the client only needs the
user's id and a way to fetch a fresh bearer token. If the provider does not
answer in time the client carries on as a guest.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from coach.client.local_storage import LocalStorage, clear_guest_session, take_session_to_import
from coach.client.storage import ApiSessionStorage, ClientIdentity
from coach.core import config
from coach.core.errors import CoachError
from coach.schemas.session import InterviewSession

logger = logging.getLogger(__name__)

SignIn = Callable[[], Awaitable[Optional[ClientIdentity]]]


async def resolve_identity(sign_in: SignIn, timeout: Optional[float] = None) -> Optional[ClientIdentity]:
    """
    Ask the identity provider who is signed in.

    Returns None (guest) when nobody is signed in or the provider takes
    longer than the timeout.
    """
    timeout = config.AUTH_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(sign_in(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Auth state resolution timed out after {timeout}s, continuing as guest")
        return None


async def adopt_guest_session(local: LocalStorage, api: ApiSessionStorage) -> Optional[InterviewSession]:
    """
    Import a completed guest session stashed before sign-in.

    The stash is consumed before the request, so a failed import is logged
    and not retried.
    """
    session = take_session_to_import(local)
    if session is None:
        return None

    try:
        imported = await api.import_session(session)
    except CoachError as e:
        logger.error(f"Failed to import guest session {session.id}: {e.message}")
        return None

    clear_guest_session(local)
    logger.info(f"Guest session imported: session_id={imported.id}")
    return imported
