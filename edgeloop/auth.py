"""
Simple API Key authentication.

Keys come from ``Settings.api_keys`` (``API_KEY_USER1``..``API_KEY_USER5``)
and are looked up on ``app.state.settings`` per request, so every app
instance carries its own key table.
"""

from typing import Dict

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

# API Key header
API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

ADMIN_USER = "user1"


def _valid_api_keys(request: Request) -> Dict[str, str]:
    return request.app.state.settings.api_keys


async def verify_api_key(request: Request, api_key: str = Security(API_KEY_HEADER)) -> str:
    """
    Verify API key and return user identifier

    Usage in FastAPI routes:
        @app.get("/protected")
        async def protected_route(user: str = Depends(verify_api_key)):
            return {"user": user}
    """
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Include 'X-API-Key' header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    valid_keys = _valid_api_keys(request)
    if api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return valid_keys[api_key]


async def verify_admin_api_key(user: str = Security(verify_api_key)) -> str:
    """
    Admin-only routes (only user1 is admin)

    Usage:
        @app.post("/admin/models/{version}/activate")
        async def admin_route(user: str = Depends(verify_admin_api_key)):
            ...
    """
    if user != ADMIN_USER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
