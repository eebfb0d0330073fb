"""Async client for the Parse Server REST API, authenticated with the master key."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

# Parse caps a single find at this many results.
MAX_QUERY_LIMIT = 1000


class ParseAPIError(Exception):
    """Raised when Parse Server rejects a request."""

    def __init__(self, status_code: int, message: str, code: Optional[int] = None) -> None:
        self.status_code = status_code
        self.code = code
        super().__init__(f"Parse request failed ({status_code}): {message}")


def pointer(class_name: str, object_id: str) -> dict[str, str]:
    return {"__type": "Pointer", "className": class_name, "objectId": object_id}


class ParseClient:
    """Async HTTP client for one Parse application.

    Usage::

        async with ParseClient(server_url, app_id, master_key) as parse:
            invoices = await parse.query("Invoice", order="createdAt")
    """

    def __init__(
        self,
        server_url: str,
        app_id: str,
        master_key: str,
        timeout: float = 30.0,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.app_id = app_id
        self._http = httpx.AsyncClient(
            base_url=self.server_url,
            timeout=timeout,
            headers={
                "X-Parse-Application-Id": app_id,
                "X-Parse-Master-Key": master_key,
                "Content-Type": "application/json",
            },
        )

    # -- context manager -------------------------------------------------------

    async def __aenter__(self) -> ParseClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    # -- HTTP helpers ----------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        logger.debug("%s %s%s", method, self.server_url, path)
        resp = await self._http.request(method, path, **kwargs)
        if resp.status_code >= 400:
            try:
                payload = resp.json()
                message = payload.get("error", resp.text)
                code = payload.get("code")
            except ValueError:
                message, code = resp.text, None
            logger.error("Parse %s %s failed (%s): %s", method, path, resp.status_code, message)
            raise ParseAPIError(resp.status_code, message, code)
        return resp.json()

    # -- objects ---------------------------------------------------------------

    async def query(
        self,
        class_name: str,
        where: Optional[dict[str, Any]] = None,
        include: Sequence[str] = (),
        order: Optional[str] = None,
        limit: int = MAX_QUERY_LIMIT,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit}
        if where:
            params["where"] = json.dumps(where)
        if include:
            params["include"] = ",".join(include)
        if order:
            params["order"] = order
        payload = await self._request("GET", f"/classes/{class_name}", params=params)
        return payload.get("results", [])

    async def first(
        self,
        class_name: str,
        where: Optional[dict[str, Any]] = None,
        include: Sequence[str] = (),
        order: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        results = await self.query(class_name, where, include, order, limit=1)
        return results[0] if results else None

    async def update(
        self, class_name: str, object_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "PUT", f"/classes/{class_name}/{object_id}", json=fields
        )

    async def delete(self, class_name: str, object_id: str) -> None:
        await self._request("DELETE", f"/classes/{class_name}/{object_id}")
