from __future__ import annotations

from typing import Any, Dict, Optional

import httpx


class PlatformClientError(RuntimeError):
    """
    Raised when a platform API call fails in a non-recoverable way.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlatformClient:
    """
    Thin authenticated JSON client shared by the Source and Target clients.

    Responsibilities
    ----------------
    - Build absolute URLs from the configured base URL.
    - Attach the bearer token and any platform-specific headers.
    - Apply a fixed timeout to every call so a stuck upstream cannot hang a
      reconciliation pass.
    - Convert non-2xx responses into `error_class` exceptions.

    Subclasses implement `get_access_token()` and may extend `extra_headers()`.
    """

    error_class: type[PlatformClientError] = PlatformClientError
    platform_name: str = "Platform"

    def __init__(self, base_url: str, timeout_seconds: float = 30.0) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    async def get_access_token(self) -> str:  # pragma: no cover - abstract
        raise NotImplementedError

    def extra_headers(self) -> Dict[str, str]:
        return {}

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        token = await self.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            **self.extra_headers(),
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                return await client.request(
                    method=method.upper(),
                    url=self._url(path),
                    headers=headers,
                    params=params,
                    json=json,
                )
        except httpx.HTTPError as exc:
            raise self.error_class(
                f"{self.platform_name} {method.upper()} {path} failed: {exc}"
            ) from exc

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        resp = await self._request(method, path, params=params, json=json)
        if resp.status_code // 100 != 2:
            raise self.error_class(
                f"{self.platform_name} {method.upper()} {path} failed "
                f"(status={resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        return resp.json()

    async def get_json(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request_json("GET", path, params=params)

    async def post_json(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        return await self._request_json("POST", path, params=params, json=json)

    async def put_json(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        return await self._request_json("PUT", path, params=params, json=json)
