"""HTTP client for the remote quoting and status service."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import ApiConfig
from .contracts import Chain, StatusResponse, Step
from .errors import ErrorCode, ProviderError
from .utils.retry import compute_backoff

logger = logging.getLogger(__name__)


class RouteApiClient:
    """Fetches refreshed step transactions and transfer status."""

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or ApiConfig()
        headers = {}
        if self.config.api_key:
            headers["x-lifi-api-key"] = self.config.api_key
        if self.config.integrator:
            headers["x-lifi-integrator"] = self.config.integrator
        self._client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            headers=headers,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RouteApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def fetch_updated_step(self, step: Step) -> Step:
        """Ask the service for a step with a freshly prepared transaction."""
        body = step.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"execution"}
        )
        data = await self._request("POST", "/advanced/stepTransaction", json=body)
        return Step.model_validate(data)

    async def fetch_receiving_leg_status(
        self,
        tx_hash: str,
        bridge: Optional[str] = None,
        from_chain: Optional[int] = None,
        to_chain: Optional[int] = None,
    ) -> StatusResponse:
        params: Dict[str, Any] = {"txHash": tx_hash}
        if bridge:
            params["bridge"] = bridge
        if from_chain is not None:
            params["fromChain"] = from_chain
        if to_chain is not None:
            params["toChain"] = to_chain
        data = await self._request("GET", "/status", params=params)
        return StatusResponse.model_validate(data)

    async def fetch_chains(self) -> List[Chain]:
        data = await self._request("GET", "/chains")
        chains = []
        for item in data.get("chains", []):
            explorers = item.get("metamask", {}).get("blockExplorerUrls") or []
            if not explorers:
                continue
            chains.append(
                Chain(
                    id=item["id"],
                    key=item["key"],
                    name=item["name"],
                    explorer_url=explorers[0],
                )
            )
        return chains

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, path, **kwargs)
                if response.status_code < 500:
                    response.raise_for_status()
                    return response.json()
                error: Exception = httpx.HTTPStatusError(
                    f"Server error {response.status_code} for {path}",
                    request=response.request,
                    response=response,
                )
            except httpx.HTTPStatusError as exc:
                raise ProviderError(
                    ErrorCode.PROVIDER_UNAVAILABLE,
                    f"Request to {path} failed with status {exc.response.status_code}: {exc.response.text}",
                    cause=exc,
                ) from exc
            except ValueError as exc:
                raise ProviderError(
                    ErrorCode.PROVIDER_UNAVAILABLE,
                    f"Response from {path} is not valid JSON: {exc}",
                    cause=exc,
                ) from exc
            except httpx.TimeoutException as exc:
                error = exc
            except httpx.TransportError as exc:
                error = exc

            if attempt >= self.config.max_retries:
                code = (
                    ErrorCode.TIMEOUT
                    if isinstance(error, httpx.TimeoutException)
                    else ErrorCode.PROVIDER_UNAVAILABLE
                )
                raise ProviderError(
                    code, f"Request to {path} failed: {error}", cause=error
                ) from error
            attempt += 1
            delay = compute_backoff(attempt, base=self.config.backoff_base)
            logger.warning(
                f"Request to {path} failed ({error}), retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)
