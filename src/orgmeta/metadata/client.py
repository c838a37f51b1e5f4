"""Async HTTP client for the Salesforce REST API (metadata discovery subset).

Provides SalesforceClient with retry logic (tenacity, exponential backoff
1-10s) for transient failures only: transport errors, timeouts, HTTP 429 and
5xx. Client errors (401, 403, 404, ...) are raised immediately as
SalesforceAPIError so a missing object does not cost three round trips.

Covers the four endpoints the crawl needs: API version discovery, global
describe, per-object describe, and SOQL query. Responses are parsed into the
payload schemas in src.orgmeta.metadata.schemas; a malformed body raises
pydantic.ValidationError and is classified by the caller.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import TypeAdapter
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.orgmeta.metadata.schemas import (
    ApiVersion,
    GlobalDescribe,
    QueryResult,
    SObjectDescribe,
)

logger = structlog.get_logger(__name__)

_api_versions = TypeAdapter(list[ApiVersion])


class SalesforceAPIError(Exception):
    """Raised when the Salesforce REST API answers with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by Salesforce.
        path: Request path (without host).
        detail: Response body text, truncated.
    """

    def __init__(self, status_code: int, path: str, detail: str = "") -> None:
        self.status_code = status_code
        self.path = path
        self.detail = detail
        super().__init__(f"Salesforce API error {status_code} for {path}: {detail}")


def _is_transient(exc: BaseException) -> bool:
    """Retry transport failures, rate limiting and server errors."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, SalesforceAPIError):
        return exc.status_code == 429 or exc.status_code >= 500
    return False


class SalesforceClient:
    """Bearer-authenticated client for one org's REST API.

    Args:
        instance_url: Org base URL as stored with the credential.
        access_token: OAuth access token.
        timeout: Per-request timeout in seconds.
        max_attempts: Total attempts per request for transient failures.
        transport: Optional httpx transport (tests inject httpx.MockTransport).
    """

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        timeout: float = 30.0,
        max_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = instance_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client for one request."""
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET path and return the decoded JSON body, retrying transient failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                async with self._client() as client:
                    response = await client.get(path, params=params)
                if response.is_error:
                    logger.warning(
                        "salesforce.request_failed",
                        path=path,
                        status_code=response.status_code,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise SalesforceAPIError(
                        response.status_code, path, response.text[:500]
                    )
                return response.json()

    async def get_api_versions(self) -> list[ApiVersion]:
        """GET /services/data/ -- every API version the org supports."""
        data = await self._get_json("/services/data/")
        return _api_versions.validate_python(data)

    async def describe_global(self, version: str) -> GlobalDescribe:
        """GET /services/data/v{N}/sobjects/ -- every object in the org."""
        data = await self._get_json(f"/services/data/v{version}/sobjects/")
        return GlobalDescribe.model_validate(data)

    async def describe_sobject(self, version: str, name: str) -> SObjectDescribe:
        """GET /services/data/v{N}/sobjects/{name}/describe/ -- field-level schema."""
        data = await self._get_json(f"/services/data/v{version}/sobjects/{name}/describe/")
        return SObjectDescribe.model_validate(data)

    async def query(self, version: str, soql: str) -> QueryResult:
        """GET /services/data/v{N}/query/?q=... -- run a SOQL query."""
        data = await self._get_json(f"/services/data/v{version}/query/", params={"q": soql})
        return QueryResult.model_validate(data)
