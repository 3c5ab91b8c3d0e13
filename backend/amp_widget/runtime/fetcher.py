"""
Personalization data fetcher.

The lookup request and a timer race into a single-assignment slot. The
first result wins; anything arriving later is discarded. Every failure
(timeout, transport error, non-200, malformed body) collapses into the
same "no data, no identity" outcome so the caller always renders.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from ..logger import logger
from ..settings import settings
from .identity import Identity


class FetchOutcome(str, Enum):
    NO_IDENTITY = "no_identity"
    RESOLVED = "fetch_resolved"
    FAILED = "fetch_failed"
    TIMEOUT = "fetch_timeout"


@dataclass(frozen=True)
class FetchResult:
    outcome: FetchOutcome
    data: Optional[Dict[str, Any]] = None
    has_identity: bool = False

    @classmethod
    def failure(cls, outcome: FetchOutcome = FetchOutcome.FAILED) -> "FetchResult":
        return cls(outcome=outcome)


@dataclass
class CompletionSlot:
    """Holds the first result written to it; later writes are ignored."""
    on_complete: Optional[Callable[[FetchResult], None]] = None
    _result: Optional[FetchResult] = field(default=None, init=False)
    _event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    @property
    def done(self) -> bool:
        return self._result is not None

    def resolve(self, result: FetchResult) -> bool:
        if self._result is not None:
            logger.debug(f"Discarding late completion: {result.outcome.value}")
            return False
        self._result = result
        self._event.set()
        if self.on_complete is not None:
            self.on_complete(result)
        return True

    async def wait(self) -> FetchResult:
        await self._event.wait()
        return self._result


class PersonalizationFetcher:
    def __init__(
        self,
        base_url: str,
        config_id: str,
        timeout_ms: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.config_id = config_id
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.lookup_timeout_ms
        self._transport = transport

    def lookup_url(self, identity: Identity) -> str:
        return (f"{self.base_url}/api/profiles/{quote(self.config_id, safe='')}/lookup"
                f"?id_value={quote(identity.value, safe='')}")

    async def fetch(
        self,
        identity: Optional[Identity],
        on_complete: Optional[Callable[[FetchResult], None]] = None,
    ) -> FetchResult:
        slot = CompletionSlot(on_complete=on_complete)
        if identity is None:
            slot.resolve(FetchResult(outcome=FetchOutcome.NO_IDENTITY))
            return await slot.wait()

        loop = asyncio.get_running_loop()
        timer = loop.call_later(
            self.timeout_ms / 1000, slot.resolve, FetchResult.failure(FetchOutcome.TIMEOUT))
        request = asyncio.create_task(self._request(identity, slot))
        try:
            result = await slot.wait()
        finally:
            timer.cancel()

        if not request.done():
            # Timed out: the in-flight request is abandoned.
            request.cancel()
            logger.warning(f"Lookup for {self.config_id} timed out after {self.timeout_ms} ms")
        return result

    async def _request(self, identity: Identity, slot: CompletionSlot) -> None:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.get(self.lookup_url(identity))
        except httpx.HTTPError as e:
            logger.warning(f"Lookup transport error for {self.config_id}: {e}")
            slot.resolve(FetchResult.failure())
            return
        except Exception as e:
            logger.error(f"Lookup for {self.config_id} failed: {e!r}")
            slot.resolve(FetchResult.failure())
            return

        slot.resolve(self._parse(resp))

    def _parse(self, resp: httpx.Response) -> FetchResult:
        if resp.status_code != 200:
            logger.warning(f"Lookup for {self.config_id} returned status {resp.status_code}")
            return FetchResult.failure()
        try:
            body = resp.json()
        except ValueError:
            logger.warning(f"Lookup for {self.config_id} returned a malformed body")
            return FetchResult.failure()
        if not isinstance(body, dict):
            return FetchResult.failure()

        data = body.get("personalization_data")
        return FetchResult(
            outcome=FetchOutcome.RESOLVED,
            data=data if isinstance(data, dict) else None,
            has_identity=bool(body.get("has_identity")),
        )
