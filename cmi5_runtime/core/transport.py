"""
Transport interface consumed by the session.

A transport moves statements and documents between the AU and the LMS/LRS.
Implementations raise TransportError on failure and never retry on the
session's behalf. LrsClient (cmi5_runtime.integrations) is the httpx-based
implementation; tests use an in-memory one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from cmi5_runtime.statements.builder import Statement


class Transport(Protocol):
    async def fetch_auth_token(self, fetch_url: str) -> str:
        """POST to the launch fetch URL and return its "auth-token"."""
        ...

    def authorize(self, auth_token: str) -> None:
        """Use the token as Basic credentials for subsequent LRS calls."""
        ...

    async def get_state(
        self,
        agent: dict[str, Any],
        activity_id: str,
        state_id: str,
        registration: str,
    ) -> dict[str, Any]:
        ...

    async def get_agent_profile(self, agent: dict[str, Any], profile_id: str) -> dict[str, Any]:
        ...

    async def send_statement(self, statement: Statement) -> list[str]:
        """Store one statement and return the ids the LRS assigned."""
        ...
