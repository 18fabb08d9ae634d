"""
FastAPI dependencies for authentication.

Provides dependency injection for caller identity.
"""

import logging
from typing import Annotated

from fastapi import Cookie, Depends, Header, HTTPException, status

from lifehub.auth.services import AuthenticationError, IdentityVerifier


logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def get_identity_verifier() -> IdentityVerifier:
    """Provide IdentityVerifier dependency."""
    return IdentityVerifier()


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    session: Annotated[str | None, Cookie()] = None,
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> dict:
    """
    Dependency to get the current authenticated user.

    Accepts a Firebase ID token (``Authorization: Bearer <token>``) or, for
    browser navigation, a Firebase session cookie.

    Returns:
        Decoded user claims; ``claims["uid"]`` is the local user id

    Raises:
        HTTPException: 401 if not authenticated
    """
    try:
        if authorization:
            if not authorization.lower().startswith(BEARER_PREFIX):
                logger.debug("Malformed Authorization header")
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Malformed Authorization header",
                )
            token = authorization[len(BEARER_PREFIX) :].strip()
            return await verifier.verify_id_token(token)

        if session:
            return await verifier.verify_session_cookie(session)
    except AuthenticationError as e:
        logger.warning(f"Authentication failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )

    logger.debug("No credentials provided")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )


CurrentUser = Annotated[dict, Depends(get_current_user)]
