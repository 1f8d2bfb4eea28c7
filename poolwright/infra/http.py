"""Minimal async HTTP client for the Kubernetes REST API.

One lazily created aiohttp session per client. Every failure, whether an
error status or a transport problem, surfaces as ``HttpError``; transport
problems carry status 0. Credentials come from an ``Auth`` object which is
told about a 401 so it can reload, after which the request is sent once more.
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import aiohttp
from loguru import logger

type JsonBody = dict[str, Any] | list[Any]
type Params = dict[str, Any]


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    status: int
    body: str

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.body}"


@runtime_checkable
class Auth(Protocol):
    async def headers(self) -> dict[str, str]: ...
    async def on_401(self) -> None: ...


class BearerAuth:
    """Static bearer token. Nothing to refresh on a 401."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}", "Accept": "application/json"}

    async def on_401(self) -> None:
        return None


class HttpClient:
    def __init__(
        self,
        base_url: str,
        auth: Auth | None = None,
        *,
        timeout: float = 30,
        default_headers: dict[str, str] | None = None,
        ssl_context: ssl.SSLContext | bool = True,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._default_headers = dict(default_headers or {})
        self._ssl = ssl_context
        self._session: aiohttp.ClientSession | None = None
        self._log = logger.bind(component="http")

    @property
    def base_url(self) -> str:
        return self._base_url

    def _session_for_request(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _headers(self) -> dict[str, str]:
        if self._auth is None:
            return dict(self._default_headers)
        return {**self._default_headers, **await self._auth.headers()}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: JsonBody | None = None,
        params: Params | None = None,
        text: bool = False,
    ) -> Any:
        """Send a request and return the decoded body.

        JSON bodies are parsed (an empty body gives None) unless ``text`` is
        set, in which case the body is returned as a string.
        """
        session = self._session_for_request()
        url = f"{self._base_url}{path}"
        self._log.debug("{method} {path}", method=method, path=path)

        try:
            for attempt in range(2):
                async with session.request(
                    method, url,
                    headers=await self._headers(), json=json, params=params, ssl=self._ssl,
                ) as resp:
                    if resp.status == 401 and self._auth is not None and attempt == 0:
                        self._log.debug("401 from {path}, reloading credentials", path=path)
                        await self._auth.on_401()
                        continue
                    return await self._body(resp, text)
        except aiohttp.ClientResponseError as e:
            raise HttpError(status=e.status, body=e.message) from e
        except aiohttp.ClientError as e:
            raise HttpError(status=0, body=str(e)) from e
        except TimeoutError as e:
            raise HttpError(status=0, body=f"timed out: {method} {path}") from e

    async def _body(self, resp: aiohttp.ClientResponse, text: bool) -> Any:
        if resp.status >= 400:
            body = await resp.text()
            self._log.debug("HTTP {status} from {url}: {body}", status=resp.status, url=str(resp.url), body=body[:500])
            raise HttpError(status=resp.status, body=body)
        if text:
            return await resp.text()
        raw = await resp.read()
        if not raw:
            return None
        try:
            return await resp.json(content_type=None)
        except ValueError as e:
            raise HttpError(status=resp.status, body=f"invalid JSON body: {e}") from e

    async def get(self, path: str, *, params: Params | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def get_text(self, path: str) -> str:
        return await self.request("GET", path, text=True)

    async def post(self, path: str, body: JsonBody) -> Any:
        return await self.request("POST", path, json=body)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> HttpClient:
        self._session_for_request()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()
