"""API key validation for the admin routes.

The key gates staff-only routes. It says nothing about which staff member is
acting; the acting name travels in the request body.
"""

import hmac


class APIKeyValidator:
    """Checks a presented key against the configured admin keys."""

    def __init__(self, api_keys: list[str]) -> None:
        """Initialize validator with the accepted keys.

        Args:
            api_keys: Accepted key strings

        Raises:
            ValueError: If api_keys is empty
        """
        keys = [key for key in api_keys if key]
        if not keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = tuple(keys)

    def validate(self, api_key: str) -> bool:
        """Compare in constant time against every configured key."""
        presented = api_key.encode("utf-8")
        return any(hmac.compare_digest(presented, key.encode("utf-8")) for key in self.api_keys)
