"""FastAPI dependencies for request headers."""

from fastapi import HTTPException

from order_intake_service.auth.api_key_validator import APIKeyValidator


def require_admin_key(x_api_key: str | None, validator: APIKeyValidator) -> str:
    """Validate the X-API-Key header of an admin request.

    Args:
        x_api_key: Header value, None when absent
        validator: Configured validator

    Returns:
        str: The accepted key

    Raises:
        HTTPException: 401 if the key is missing or not accepted
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    if not validator.validate(x_api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")

    return x_api_key


def session_id_from_header(x_checkout_session: str | None) -> str | None:
    """Normalize the X-Checkout-Session header; blank means no session."""
    if x_checkout_session is None:
        return None
    session_id = x_checkout_session.strip()
    return session_id[:128] or None
