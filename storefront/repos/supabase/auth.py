"""
Supabase Auth implementation of IdentityService.

Resolves a bearer token by asking the auth server who it belongs to
(``GET {supabase_url}/auth/v1/user``). Any answer other than a user object
means the token is not usable.
"""

import logging

import httpx

from storefront.domain import Identity
from storefront.errors import AuthenticationError
from storefront.repositories import IdentityService

logger = logging.getLogger(__name__)


class SupabaseIdentityService(IdentityService):
    def __init__(
        self, client: httpx.AsyncClient, supabase_url: str, api_key: str
    ) -> None:
        self.client = client
        self.supabase_url = supabase_url.rstrip("/")
        self.api_key = api_key
        logger.debug(
            "Initialized SupabaseIdentityService",
            extra={"supabase_url": self.supabase_url},
        )

    async def resolve_token(self, token: str) -> Identity:
        if not token:
            raise AuthenticationError("Missing bearer token")

        try:
            response = await self.client.get(
                f"{self.supabase_url}/auth/v1/user",
                headers={
                    "Authorization": f"Bearer {token}",
                    "apikey": self.api_key,
                },
            )
        except httpx.HTTPError as e:
            logger.error(
                "Auth service request failed",
                extra={
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            raise AuthenticationError(
                f"Authentication error: {e}"
            ) from e

        if not response.is_success:
            logger.info(
                "Auth service rejected token",
                extra={"http_status": response.status_code},
            )
            raise AuthenticationError(
                "Authentication error: invalid or expired token"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(
                "Authentication error: malformed auth response"
            ) from e

        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise AuthenticationError("User not authenticated")

        return Identity(user_id=str(user_id), email=data.get("email"))
