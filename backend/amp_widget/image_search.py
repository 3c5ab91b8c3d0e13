"""
Stock image search.

Proxies keyword searches to the Unsplash API so authors can pick hero
images without exposing the access key to the browser. Every returned link
carries the referral parameters Unsplash requires for attribution.
"""

from typing import Any, Dict, Optional

import httpx

from .errors import ImageSearchError
from .logger import logger
from .schemas import SearchImagesRequest, SearchImagesResponse, StockImage
from .settings import settings

UNSPLASH_API_BASE = "https://api.unsplash.com"
UTM_SOURCE = "amperity_personalization"
UTM_MEDIUM = "referral"


def add_utm(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}utm_source={UTM_SOURCE}&utm_medium={UTM_MEDIUM}"


def to_stock_image(photo: Dict[str, Any], query: str) -> StockImage:
    urls = photo.get("urls") or {}
    user = photo.get("user") or {}
    links = user.get("links") or {}
    return StockImage(
        id=str(photo.get("id", "")),
        url=add_utm(urls.get("regular", "")),
        thumb_url=add_utm(urls.get("thumb", "")),
        alt_description=photo.get("alt_description") or photo.get("description") or query,
        photographer=user.get("name") or "",
        photographer_url=add_utm(links.get("html", "")),
        download_url=add_utm(urls.get("full", "")),
    )


class ImageSearchClient:
    def __init__(
        self,
        access_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._access_key = access_key if access_key is not None else settings.unsplash_access_key
        self._timeout = timeout if timeout is not None else settings.image_search_timeout
        self._transport = transport

    async def search(self, request: SearchImagesRequest) -> SearchImagesResponse:
        if not self._access_key:
            logger.warning("UNSPLASH_ACCESS_KEY is not set; image search is unavailable.")
            raise ImageSearchError("Image search is not configured")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(
                    f"{UNSPLASH_API_BASE}/search/photos",
                    params={
                        "query": request.query,
                        "orientation": request.orientation,
                        "per_page": str(request.count),
                    },
                    headers={"Authorization": f"Client-ID {self._access_key}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Image search transport error: {e}")
            raise ImageSearchError(f"Image search failed: {e}") from e

        if resp.status_code == 401:
            raise ImageSearchError(
                "Unsplash API authentication failed. Check your access key.", status_code=401)
        if resp.status_code != 200:
            raise ImageSearchError(f"Unsplash API error: {resp.status_code}",
                                   status_code=resp.status_code)

        try:
            photos = resp.json().get("results") or []
        except (ValueError, AttributeError) as e:
            raise ImageSearchError("Unsplash API returned a malformed body") from e

        return SearchImagesResponse(
            images=[to_stock_image(photo, request.query) for photo in photos if isinstance(photo, dict)])
