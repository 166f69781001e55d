"""
Control-panel API keys.

Each key configured in ``serving.yaml`` (or ``FIRECNC_API_KEYS``) maps to a
list of scopes. ``read`` covers status, logs and traps; ``write`` covers
anything that changes the device (reboot, shutdown, config, link).

An unknown key is rejected with 403; a known key lacking the scope with 401.
"""
from typing import Callable

from fastapi import HTTPException, Security, status
from fastapi.security.api_key import APIKeyHeader

from services.api.config import get_api_keys

API_KEY_NAME = "X-FireCNC-Key"
SCOPES = ("read", "write")
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


async def get_api_key(api_key_header: str = Security(api_key_header)) -> str:
    if api_key_header and api_key_header in get_api_keys():
        return api_key_header
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Could not validate credentials",
    )


def verify_scope(required_scope: str, api_key: str) -> None:
    if required_scope not in get_api_keys().get(api_key, []):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing required scope: {required_scope}",
        )


def require_scope(scope: str) -> Callable[..., object]:
    """Dependency that resolves the caller's key and checks it carries ``scope``."""
    if scope not in SCOPES:
        raise ValueError(f"Unknown API scope: {scope}")

    async def _checker(api_key: str = Security(get_api_key)) -> str:
        verify_scope(scope, api_key)
        return api_key

    return _checker
