"""
Identity verification services.

Verifies Firebase ID tokens (Authorization: Bearer) and Firebase session
cookies, returning the decoded claims of the caller.
"""

import logging
from typing import Any

from firebase_admin import auth as firebase_auth
from starlette.concurrency import run_in_threadpool

from lifehub.auth.config import get_auth_config, get_firebase_auth


logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when authentication fails."""

    pass


class IdentityVerifier:
    """Verifies caller credentials with the Firebase Admin SDK."""

    def __init__(self):
        self.config = get_auth_config()

    async def verify_id_token(self, id_token: str) -> dict[str, Any]:
        """
        Verify a Firebase ID token and return decoded claims.

        Args:
            id_token: Bearer token sent by the frontend

        Returns:
            Decoded token claims (includes uid, email, etc.)

        Raises:
            AuthenticationError: If verification fails
        """
        logger.debug(
            "Verifying bearer token",
            extra={"token_length": len(id_token)},
        )
        try:
            claims = await run_in_threadpool(
                get_firebase_auth().verify_id_token,
                id_token,
                check_revoked=self.config.check_revoked,
            )
        except firebase_auth.ExpiredIdTokenError:
            logger.warning("Expired ID token")
            raise AuthenticationError("Expired ID token")
        except firebase_auth.RevokedIdTokenError:
            logger.warning("Revoked ID token")
            raise AuthenticationError("Revoked ID token")
        except firebase_auth.InvalidIdTokenError:
            logger.warning("Invalid ID token")
            raise AuthenticationError("Invalid ID token")
        except Exception as e:
            logger.error(f"Failed to verify ID token: {type(e).__name__}")
            raise AuthenticationError("Token verification failed")

        logger.debug(f"ID token verified for user: {claims.get('uid')}")
        return dict(claims)

    async def verify_session_cookie(self, session_cookie: str) -> dict[str, Any]:
        """
        Verify a session cookie and return decoded claims.

        Args:
            session_cookie: The session cookie string

        Returns:
            Decoded token claims (includes uid, email, etc.)

        Raises:
            AuthenticationError: If verification fails
        """
        try:
            claims = await run_in_threadpool(
                get_firebase_auth().verify_session_cookie,
                session_cookie,
                check_revoked=self.config.check_revoked,
            )
        except firebase_auth.ExpiredSessionCookieError:
            logger.warning("Expired session cookie")
            raise AuthenticationError("Expired session cookie")
        except firebase_auth.RevokedSessionCookieError:
            logger.warning("Revoked session cookie")
            raise AuthenticationError("Revoked session cookie")
        except firebase_auth.InvalidSessionCookieError:
            logger.warning("Invalid session cookie")
            raise AuthenticationError("Invalid session cookie")
        except Exception as e:
            logger.error(f"Failed to verify session cookie: {type(e).__name__}")
            raise AuthenticationError("Session verification failed")

        logger.debug(f"Session cookie verified for user: {claims.get('uid')}")
        return dict(claims)
