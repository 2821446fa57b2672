"""Nylas v3 mailbox adapter over httpx.

Every upstream failure is converted to :class:`MailboxError` with an
:class:`ErrorKind`, so callers never inspect status codes or message text.
This adapter performs no retries of its own; bulk callers go through the
batch executor.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from inbox_a2a.core.errors import ErrorKind, MailboxError
from inbox_a2a.mailbox.base import EmailDraft, Folder, Message, Participant

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.us.nylas.com"
DEFAULT_TIMEOUT = 30.0

# Error bodies can be large HTML pages from proxies
MAX_ERROR_DETAIL = 500


def _participants(raw: list[dict[str, Any]] | None) -> list[Participant]:
    return [Participant.from_dict(p) for p in raw or [] if p.get("email")]


def parse_message(data: dict[str, Any]) -> Message:
    """Build a Message from a Nylas message object."""
    senders = _participants(data.get("from"))
    return Message(
        id=data["id"],
        subject=data.get("subject") or "",
        sender=senders[0] if senders else None,
        to=_participants(data.get("to")),
        cc=_participants(data.get("cc")),
        date=int(data.get("date") or 0),
        unread=bool(data.get("unread", False)),
        starred=bool(data.get("starred", False)),
        folders=list(data.get("folders") or []),
        snippet=data.get("snippet") or "",
        body=data.get("body") or "",
        thread_id=data.get("thread_id"),
    )


def parse_folder(data: dict[str, Any]) -> Folder:
    """Build a Folder from a Nylas folder object."""
    return Folder(
        id=data["id"],
        name=data.get("name") or "",
        attributes=list(data.get("attributes") or []),
        total_count=data.get("total_count"),
    )


class NylasMailbox:
    """Mailbox client bound to one grant.

    Instances are created per RPC call from the caller's credentials and closed
    when the call finishes.

    Args:
        api_key: Server-side Nylas API key.
        grant_id: The caller's grant identifier.
        base_url: API base URL.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        api_key: str,
        grant_id: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._grant_id = grant_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client. Safe to call more than once."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> NylasMailbox:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    def _path(self, suffix: str) -> str:
        return f"/v3/grants/{self._grant_id}/{suffix}"

    async def _request(
        self,
        method: str,
        suffix: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Perform one API call and return its ``data`` member.

        Raises:
            MailboxError: For transport failures and any non-2xx status.
        """
        client = await self._ensure_client()
        try:
            response = await client.request(method, self._path(suffix), params=params, json=json)
        except httpx.TimeoutException as e:
            raise MailboxError(f"Mailbox request timed out: {e}", ErrorKind.NETWORK) from e
        except httpx.HTTPError as e:
            raise MailboxError(f"Mailbox request failed: {e}", ErrorKind.NETWORK) from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.debug("%s %s -> %d: %s", method, suffix, response.status_code, detail)
            raise MailboxError.from_status(response.status_code, detail)

        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise MailboxError("Mailbox returned invalid JSON", ErrorKind.INVALID) from e
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def list_messages(
        self,
        *,
        folder_id: str | None = None,
        limit: int = 50,
        unread: bool | None = None,
        search: str | None = None,
        starred: bool | None = None,
        received_after: int | None = None,
    ) -> list[Message]:
        params: dict[str, Any] = {"limit": limit}
        if folder_id:
            params["in"] = folder_id
        if unread is not None:
            params["unread"] = "true" if unread else "false"
        if search:
            params["search_query_native"] = search
        if starred is not None:
            params["starred"] = "true" if starred else "false"
        if received_after is not None:
            params["received_after"] = received_after
        data = await self._request("GET", "messages", params=params)
        return [parse_message(m) for m in data or []]

    async def find_message(self, message_id: str) -> Message:
        data = await self._request("GET", f"messages/{message_id}")
        return parse_message(data)

    async def update_message(
        self,
        message_id: str,
        *,
        unread: bool | None = None,
        starred: bool | None = None,
        folders: list[str] | None = None,
    ) -> None:
        body: dict[str, Any] = {}
        if unread is not None:
            body["unread"] = unread
        if starred is not None:
            body["starred"] = starred
        if folders is not None:
            body["folders"] = folders
        await self._request("PUT", f"messages/{message_id}", json=body)

    async def destroy_message(self, message_id: str) -> None:
        await self._request("DELETE", f"messages/{message_id}")

    async def send_message(self, draft: EmailDraft) -> str:
        data = await self._request("POST", "messages/send", json=draft.to_dict())
        return data["id"]

    async def create_draft(self, draft: EmailDraft) -> str:
        data = await self._request("POST", "drafts", json=draft.to_dict())
        return data["id"]

    async def list_folders(self) -> list[Folder]:
        data = await self._request("GET", "folders")
        return [parse_folder(f) for f in data or []]

    async def create_folder(self, name: str) -> Folder:
        data = await self._request("POST", "folders", json={"name": name})
        return parse_folder(data)


def _error_detail(response: httpx.Response) -> str:
    """Extract a readable message from a Nylas error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:MAX_ERROR_DETAIL] or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:MAX_ERROR_DETAIL]
        if isinstance(error, str):
            return error[:MAX_ERROR_DETAIL]
    return f"HTTP {response.status_code}"
