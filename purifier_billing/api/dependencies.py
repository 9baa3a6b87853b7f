"""
FastAPI Dependencies - Static bearer token authentication.

Admin staff and field devices each hold their own token.
"""

import secrets
from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from structlog import get_logger

from purifier_billing.config import get_settings

logger = get_logger(__name__)

# Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)


def require_token(
    token_name: str, get_expected: Callable[[], str]
) -> Callable[..., Awaitable[str]]:
    """
    FastAPI dependency factory checking a static bearer token.

    Usage:
        @router.post("/v1/devices/usage")
        async def record_usage(
            request: DeviceUsageRequest,
            _: str = Depends(require_device_token),
        ):
            pass

    Args:
        token_name: Name used in logs ("admin" or "device")
        get_expected: Returns the configured token at request time

    Returns:
        Dependency function returning the token name on success
    """

    async def token_checker(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> str:
        """Reject requests without the expected bearer token."""
        if credentials is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing Authorization header",
                headers={"WWW-Authenticate": "Bearer"},
            )

        expected = get_expected()
        if not expected or not secrets.compare_digest(
            credentials.credentials.encode(), expected.encode()
        ):
            logger.warning("bearer_token_rejected", token_name=token_name)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return token_name

    return token_checker


require_admin_token = require_token("admin", lambda: get_settings().admin_api_token)
require_device_token = require_token("device", lambda: get_settings().device_api_token)
