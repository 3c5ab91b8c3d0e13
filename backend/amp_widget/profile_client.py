"""
Profile API client.

Looks up customer profiles on the tenant's profile API and reduces them to
the fields a widget configuration is allowed to expose.
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from .errors import ProfileLookupError
from .logger import logger
from .schemas import ApiConfig, ProfileLookupResponse, ConnectionTestResponse
from .settings import settings


def build_base_url(tenant_id: str) -> str:
    return f"https://{tenant_id}.{settings.profile_api_base_domain}"


def build_lookup_url(config: ApiConfig) -> str:
    return f"{build_base_url(config.tenant_id)}/prof/profiles/{config.api_endpoint}/lookup"


def lookup_id_field(config: ApiConfig) -> str:
    if config.id_type == "custom":
        return config.custom_id_field or "custom"
    return config.id_type


def create_headers(config: ApiConfig) -> Dict[str, str]:
    return {
        "Amperity-Tenant": config.tenant_id,
        "Authorization": f"Bearer {config.bearer_token}",
        "Content-Type": "application/json",
    }


class ProfileClient:
    """Async client for the tenant profile API."""

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._timeout = timeout if timeout is not None else settings.profile_api_timeout
        self._transport = transport

    async def _get(self, config: ApiConfig, id_value: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            return await client.get(
                build_lookup_url(config),
                params={lookup_id_field(config): id_value},
                headers=create_headers(config),
            )

    async def lookup_profile(self, config: ApiConfig, id_value: str) -> Optional[Dict[str, Any]]:
        """Return the profile, or None when the API reports it does not exist."""
        try:
            resp = await self._get(config, id_value)
        except httpx.HTTPError as e:
            logger.error(f"Profile lookup transport error: {e}")
            raise ProfileLookupError(f"Profile lookup failed: {e}") from e

        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            logger.error(f"Profile lookup returned status {resp.status_code}")
            raise ProfileLookupError(
                f"API returned status {resp.status_code}", status_code=resp.status_code)

        try:
            profile = resp.json()
        except ValueError as e:
            raise ProfileLookupError("Profile API returned malformed JSON") from e
        if not isinstance(profile, dict):
            raise ProfileLookupError("Profile API returned a non-object body")
        return profile

    async def lookup_profiles(self, config: ApiConfig, id_values: List[str]) -> List[Dict[str, Any]]:
        """Look up several ids concurrently; failed lookups yield a None profile."""
        results = await asyncio.gather(
            *(self.lookup_profile(config, id_value) for id_value in id_values),
            return_exceptions=True,
        )
        return [
            {"id": id_value, "profile": None if isinstance(result, BaseException) else result}
            for id_value, result in zip(id_values, results)
        ]

    async def test_connection(self, config: ApiConfig, test_value: str) -> ConnectionTestResponse:
        try:
            resp = await self._get(config, test_value)
        except httpx.HTTPError as e:
            return ConnectionTestResponse(success=False, error=f"Connection failed: {e}")

        if resp.status_code == 401:
            return ConnectionTestResponse(
                success=False,
                error="Authentication failed. Please check your bearer token.")
        if resp.status_code == 404:
            return ConnectionTestResponse(
                success=False,
                error="API endpoint not found. Please check your tenant ID and endpoint.")
        if resp.status_code != 200:
            return ConnectionTestResponse(
                success=False,
                error=f"API returned status {resp.status_code}: {resp.reason_phrase}")

        try:
            data = resp.json()
        except ValueError:
            return ConnectionTestResponse(success=False, error="Connection failed: malformed JSON")
        fields = list(data.keys()) if isinstance(data, dict) else []
        return ConnectionTestResponse(
            success=True, field_count=len(fields), sample_fields=fields[:10])


def extract_personalization_data(profile: Optional[Dict[str, Any]], fields_used: List[str]) -> ProfileLookupResponse:
    """Keep only the configured fields of a profile."""
    if profile is None:
        return ProfileLookupResponse(personalization_data={}, has_identity=False)

    data = {field: profile[field] for field in fields_used if field in profile}
    return ProfileLookupResponse(personalization_data=data, has_identity=True)
