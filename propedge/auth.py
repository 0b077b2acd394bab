"""
Simple API Key authentication.

Keys come from ``API_KEY_USER1`` .. ``API_KEY_USER5``; each key maps to a
subject id (``user1`` ..) and a usage tier read from ``API_KEY_TIER_USER<n>``
(``basic`` unless set).  ``user1`` is always the admin.
"""

import os
from dataclasses import dataclass
from typing import Dict

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from propedge.config import Settings

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

TIERS = ("basic", "pro", "admin")
ADMIN_SUBJECT = "user1"


@dataclass(frozen=True)
class Subject:
    """Authenticated caller: an opaque id plus a usage tier."""

    id: str
    tier: str

    @property
    def is_admin(self) -> bool:
        return self.tier == "admin"


def get_valid_api_keys() -> Dict[str, Subject]:
    """Load valid API keys from environment variables.

    Read on every call so tests and key rotation do not need a restart.
    """
    keys: Dict[str, Subject] = {}

    # Support up to 5 users
    for i in range(1, 6):
        key = os.getenv(f"API_KEY_USER{i}")
        if not key:
            continue
        subject_id = f"user{i}"
        tier = os.getenv(f"API_KEY_TIER_USER{i}", "basic").strip().lower()
        if subject_id == ADMIN_SUBJECT:
            tier = "admin"
        if tier not in TIERS:
            tier = "basic"
        keys[key] = Subject(id=subject_id, tier=tier)

    if not keys and Settings.from_env().is_development:
        # Development fallback (never use in production)
        keys["dev-key-insecure"] = Subject(id="dev_user", tier="admin")

    return keys


async def verify_api_key(api_key: str = Security(API_KEY_HEADER)) -> Subject:
    """
    Verify API key and return the authenticated subject

    Usage in FastAPI routes:
        @app.get("/protected")
        async def protected_route(subject: Subject = Depends(verify_api_key)):
            return {"user": subject.id}
    """
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Include 'X-API-Key' header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    subject = get_valid_api_keys().get(api_key)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return subject


async def verify_admin_api_key(subject: Subject = Security(verify_api_key)) -> Subject:
    """Admin-only routes."""
    if not subject.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return subject
