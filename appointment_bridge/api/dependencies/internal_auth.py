import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from appointment_bridge.core.config import get_settings

OPEN_ENVIRONMENTS = ("local", "test")


async def verify_internal_api_key(
    internal_api_key: Optional[str] = Header(
        default=None,
        alias="X-Internal-Api-Key",
        description="Key guarding the reconciliation triggers outside local/test.",
    ),
) -> None:
    """
    Guard for the scheduler-facing /internal routes.

    A configured INTERNAL_API_KEY is always enforced. Without one, local and
    test environments are open and every other environment answers 500.
    """
    settings = get_settings()
    expected = settings.INTERNAL_API_KEY

    if not expected:
        if (settings.APP_ENV or "local").lower() in OPEN_ENVIRONMENTS:
            return
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="INTERNAL_API_KEY not configured for this environment.",
        )

    if not internal_api_key or not hmac.compare_digest(internal_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing internal API key.",
        )
