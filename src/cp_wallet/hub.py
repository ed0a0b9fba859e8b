"""Hub API client for collateral held in escrow by running tasks."""

from __future__ import annotations

import logging

import httpx

from cp_wallet.errors import HubError
from cp_wallet.units import balance_to_str

logger = logging.getLogger("cp_wallet.hub")


class HubClient:
    """Thin synchronous client for the hub's wallet endpoints.

    Parameters
    ----------
    server_url:
        Base URL of the hub API.
    access_token:
        Bearer token issued to this computing provider.
    transport:
        Optional ``httpx`` transport, used by tests.
    """

    def __init__(
        self,
        server_url: str,
        access_token: str,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    def frozen_collateral(self, address: str) -> str:
        """Return the escrowed collateral of *address* as a decimal string."""
        if not self.server_url:
            raise HubError("hub server_url is not configured")
        url = f"{self.server_url}/check_holding_collateral/{address}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.access_token}",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.get(url, headers=headers)
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPError as exc:
            raise HubError(f"request failed: {exc}") from exc
        except ValueError as exc:
            raise HubError(f"failed to decode hub response: {exc}") from exc

        try:
            frozen = int(body["data"]["Frozen_Collateral"])
        except (KeyError, TypeError, ValueError) as exc:
            raise HubError(f"unexpected hub response for {address}: {body!r}") from exc
        logger.debug(f"Frozen collateral of {address}: {frozen}")
        return balance_to_str(frozen)
