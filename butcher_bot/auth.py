"""
Authentication Module for Butcher Bot
=====================================

HTTP Basic Authentication for the staff fulfillment endpoints (/staff/*).
Customer authentication is handled in front of this service.

Security Features:
------------------
- **Timing Attack Prevention**: Uses `secrets.compare_digest()` for credential
  comparison, which takes constant time regardless of how many characters match.

- **Graceful Degradation**: If STAFF_PASSWORD is not configured, staff
  endpoints return 503 Service Unavailable rather than allowing
  unauthenticated access.

Configuration:
--------------
Environment variables (see config.py):
- STAFF_USERNAME: Username for staff access (default: "staff")
- STAFF_PASSWORD: Password for staff access (required, no default)

Usage:
------
    from butcher_bot.auth import verify_staff_credentials

    @router.get("/staff/orders")
    def list_orders(
        staff_user: str = Depends(verify_staff_credentials),
        db: Session = Depends(get_db),
    ):
        ...
"""

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from . import config


# Shared realm so browsers cache credentials across staff pages
security = HTTPBasic(realm="Butcher Bot Staff")


def verify_staff_credentials(
    credentials: HTTPBasicCredentials = Depends(security),
) -> str:
    """
    Verify HTTP Basic Auth credentials for staff endpoints.

    Returns:
        str: The authenticated username if credentials are valid.

    Raises:
        HTTPException (503): If STAFF_PASSWORD is not set.
        HTTPException (401): If credentials are invalid. Includes
                            WWW-Authenticate header to trigger the browser's
                            native auth prompt.
    """
    # Fail closed: if password not configured, deny all access
    if not config.STAFF_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Staff authentication not configured. Set STAFF_PASSWORD environment variable.",
        )

    username_correct = secrets.compare_digest(
        credentials.username.encode("utf-8"),
        config.STAFF_USERNAME.encode("utf-8"),
    )
    password_correct = secrets.compare_digest(
        credentials.password.encode("utf-8"),
        config.STAFF_PASSWORD.encode("utf-8"),
    )

    if not (username_correct and password_correct):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid staff credentials",
            headers={"WWW-Authenticate": 'Basic realm="Butcher Bot Staff"'},
        )

    return credentials.username
