"""
LRS client for cmi5 assignable units.

HTTP transport between the AU and the LMS: fetches the launch auth token,
reads the LMS.LaunchData state and learner preferences, and stores
statements. Requests are not retried; failures surface as TransportError.

Usage:
    async with LrsClient(launch_parameters.endpoint) as lrs:
        token = await lrs.fetch_auth_token(launch_parameters.fetch)
        lrs.authorize(token)
        ids = await lrs.send_statement(statement)
"""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from cmi5_runtime.config import Settings, get_settings
from cmi5_runtime.core.errors import TransportError
from cmi5_runtime.statements.builder import Statement


class LrsClient:
    """
    httpx-based Transport for a cmi5 session.

    Supports:
    - Fetch URL token retrieval (cmi5 section 8.2)
    - State and agent profile documents (xAPI Document APIs)
    - Statement storage
    """

    def __init__(
        self,
        endpoint: str,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the LRS client.

        Args:
            endpoint: LRS endpoint from the launch parameters
            settings: Runtime settings; defaults to get_settings()
            client: Pre-built AsyncClient, mainly for tests
        """
        self.settings = settings or get_settings()
        self.endpoint = endpoint.rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.request_timeout_seconds),
            follow_redirects=True,
        )
        self._auth_token: str | None = None

    async def __aenter__(self) -> LrsClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    # =========================================================================
    # Authentication
    # =========================================================================

    def authorize(self, auth_token: str) -> None:
        self._auth_token = auth_token

    @property
    def is_authorized(self) -> bool:
        return self._auth_token is not None

    def _headers(self) -> dict[str, str]:
        headers = {"X-Experience-API-Version": self.settings.xapi_version}
        if self._auth_token:
            headers["Authorization"] = f"Basic {self._auth_token}"
        return headers

    async def fetch_auth_token(self, fetch_url: str) -> str:
        """
        Retrieve the session auth token from the launch fetch URL.

        Raises:
            TransportError: On connection failure, an error status, or a
                cmi5 fetch error document in place of a token
        """
        data = await self._request("POST", fetch_url, with_auth=False)
        token = data.get("auth-token") if isinstance(data, dict) else None
        if not token:
            error_code = data.get("error-code") if isinstance(data, dict) else None
            error_text = data.get("error-text") if isinstance(data, dict) else None
            raise TransportError(f"Fetch URL returned no auth-token (error-code={error_code}): {error_text}")
        logger.debug("Obtained auth token from fetch URL")
        return token

    # =========================================================================
    # Documents
    # =========================================================================

    async def get_state(
        self,
        agent: dict[str, Any],
        activity_id: str,
        state_id: str,
        registration: str,
    ) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"{self.endpoint}/activities/state",
            params={
                "agent": json.dumps(agent),
                "activityId": activity_id,
                "stateId": state_id,
                "registration": registration,
            },
        )

    async def get_agent_profile(self, agent: dict[str, Any], profile_id: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"{self.endpoint}/agents/profile",
            params={"agent": json.dumps(agent), "profileId": profile_id},
        )

    # =========================================================================
    # Statements
    # =========================================================================

    async def send_statement(self, statement: Statement) -> list[str]:
        """
        Store a statement.

        Returns:
            Statement ids assigned by the LRS
        """
        ids = await self._request("POST", f"{self.endpoint}/statements", json=statement.to_dict())
        if not isinstance(ids, list):
            raise TransportError(f"Unexpected statements response: {ids!r}")
        logger.debug(f"LRS stored statement {statement.id}")
        return ids

    async def _request(self, method: str, url: str, with_auth: bool = True, **kwargs: Any) -> Any:
        headers = self._headers() if with_auth else {}
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"LRS request {method} {url} failed: {e.response.status_code}")
            raise TransportError(
                f"{method} {url} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e

        except httpx.RequestError as e:
            logger.error(f"Connection error on {method} {url}: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e

        except ValueError as e:
            logger.error(f"LRS returned a non-JSON body for {method} {url}")
            raise TransportError(f"{method} {url} returned a non-JSON body") from e
