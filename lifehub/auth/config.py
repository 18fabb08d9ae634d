"""
Firebase configuration and initialization.

Handles Firebase Admin SDK initialization for verifying the identity of
API callers. Users sign in on the frontend; the backend only verifies.
"""

import logging
import os
from functools import lru_cache

import firebase_admin
from firebase_admin import auth as firebase_auth


logger = logging.getLogger(__name__)


class AuthConfig:
    """Configuration for authentication module.

    Optional environment variables:
    - FIREBASE_AUTH_EMULATOR_HOST: Set for local development with emulator
    - AUTH_CHECK_REVOKED: "false" to skip the revocation lookup (default true)
    """

    def __init__(self):
        self.firebase_auth_emulator_host = os.getenv("FIREBASE_AUTH_EMULATOR_HOST")
        self.check_revoked = os.getenv("AUTH_CHECK_REVOKED", "true").lower() == "true"


@lru_cache()
def get_auth_config() -> AuthConfig:
    """Get authentication configuration (singleton)."""
    return AuthConfig()


def initialize_firebase() -> None:
    """
    Initialize Firebase Admin SDK.

    Auto-detects Firebase Auth Emulator via FIREBASE_AUTH_EMULATOR_HOST.
    Uses Application Default Credentials (ADC) for production.
    """
    if firebase_admin._apps:
        logger.debug("Firebase Admin SDK already initialized")
        return

    emulator_host = get_auth_config().firebase_auth_emulator_host
    if emulator_host:
        logger.info(f"Using Firebase Auth Emulator at {emulator_host}")

    try:
        firebase_admin.initialize_app()
        logger.info("Firebase Admin SDK initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize Firebase Admin SDK: {e}")
        raise


def get_firebase_auth():
    """Get Firebase Auth module (ensures initialization)."""
    initialize_firebase()
    return firebase_auth
