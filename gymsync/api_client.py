from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests

from .config import Settings
from .errors import DomainError, TransportError


logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30


def _error_message(response: requests.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return None


class GymApiClient:
    def __init__(self, settings: Settings, *, token: str | None = None, session: requests.Session | None = None):
        self.base_url = settings.api_base_url.rstrip("/")
        self.token = token if token is not None else settings.api_token
        self.timeout = settings.api_timeout_seconds or TIMEOUT_SECONDS
        self.verify_tls = settings.verify_tls
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> requests.Response:
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                params=params,
                json=json,
                files=files,
                timeout=self.timeout,
                verify=self.verify_tls,
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise TransportError(str(exc)) from exc

        if response.status_code >= 400:
            message = _error_message(response)
            if message is not None:
                logger.info("%s %s rejected (%s): %s", method, path, response.status_code, message)
                raise DomainError(message, status_code=response.status_code)
            logger.error("%s %s returned HTTP %s.", method, path, response.status_code)
            raise TransportError(f"HTTP {response.status_code}", status_code=response.status_code)
        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("Response body is not valid JSON.") from exc

    def list_groups(self) -> list[str]:
        payload = self._json(self._request("GET", "/groups"))
        if not isinstance(payload, list):
            raise TransportError("Expected a list of groups.")
        return [str(item) for item in payload]

    def list_exercises_by_group(self, group: str) -> list[dict[str, Any]]:
        payload = self._json(self._request("GET", f"/exercises/bygroup/{quote(group, safe='')}"))
        if not isinstance(payload, list):
            raise TransportError("Expected a list of exercises.")
        return [item for item in payload if isinstance(item, dict)]

    def list_history(self) -> list[dict[str, Any]]:
        payload = self._json(self._request("GET", "/history"))
        if not isinstance(payload, list):
            raise TransportError("Expected a list of history sections.")
        return [item for item in payload if isinstance(item, dict)]

    def upload_avatar(self, *, path: Path, filename: str, content_type: str, field: str = "avatar") -> str:
        with open(path, "rb") as handle:
            response = self._request(
                "PATCH",
                "/users/avatar",
                files={field: (filename, handle, content_type)},
            )
        payload = self._json(response)
        avatar = payload.get("avatar") if isinstance(payload, dict) else None
        if not isinstance(avatar, str) or not avatar.strip():
            raise TransportError("Avatar upload succeeded without an avatar reference.")
        return avatar

    def update_profile(self, payload: dict[str, Any]) -> None:
        self._request("PUT", "/users", json=payload)


class AsyncGymApi:
    """Awaitable facade over ``GymApiClient``.

    The blocking requests run on the default executor; callers stay on the
    event loop and only ever touch their own state after the await returns.
    """

    def __init__(self, client: GymApiClient):
        self.client = client

    async def list_groups(self) -> list[str]:
        return await asyncio.to_thread(self.client.list_groups)

    async def list_exercises_by_group(self, group: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self.client.list_exercises_by_group, group)

    async def list_history(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self.client.list_history)

    async def upload_avatar(self, *, path: Path, filename: str, content_type: str, field: str = "avatar") -> str:
        return await asyncio.to_thread(
            self.client.upload_avatar,
            path=path,
            filename=filename,
            content_type=content_type,
            field=field,
        )

    async def update_profile(self, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(self.client.update_profile, payload)
