"""
HTTP adapter for a browser-side tab bridge.
"""

from typing import Any, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tab_grouper.config import get_logger
from tab_grouper.grouping.errors import HostOperationError
from tab_grouper.grouping.models import GroupColor, Tab, TabGroup
from tab_grouper.host.base import HostTabAPI

logger = get_logger(__name__)


def _tab_from_payload(data: dict[str, Any]) -> Tab:
    return Tab(
        id=data.get("id"),
        window_id=data.get("windowId"),
        title=data.get("title", ""),
        url=data.get("url", ""),
        group_id=data.get("groupId"),
        active=bool(data.get("active", False)),
    )


def _group_from_payload(data: dict[str, Any]) -> TabGroup:
    return TabGroup(
        id=data["id"],
        window_id=data["windowId"],
        title=data.get("title", ""),
        color=data.get("color"),
    )


def _params(**kwargs) -> dict[str, Any]:
    params = {}
    for key, value in kwargs.items():
        if value is None:
            continue
        params[key] = str(value).lower() if isinstance(value, bool) else value
    return params


class HttpHostClient(HostTabAPI):
    """
    Host tab API backed by a browser bridge that speaks JSON over HTTP.

    Read-only calls are retried on transport errors (the bridge may be
    restarting); mutating calls and HTTP error statuses are never retried.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the client.

        Args:
            base_url: Bridge base URL (e.g. http://127.0.0.1:8765)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def query_tabs(
        self,
        window_id: Optional[int] = None,
        group_id: Optional[int] = None,
        active: Optional[bool] = None,
    ) -> list[Tab]:
        data = await self._get("/tabs", _params(windowId=window_id, groupId=group_id, active=active))
        return [_tab_from_payload(item) for item in data or []]

    async def query_groups(
        self,
        window_id: Optional[int] = None,
        title: Optional[str] = None,
    ) -> list[TabGroup]:
        data = await self._get("/groups", _params(windowId=window_id, title=title))
        return [_group_from_payload(item) for item in data or []]

    async def get_group(self, group_id: int) -> TabGroup:
        data = await self._get(f"/groups/{group_id}")
        return _group_from_payload(data)

    async def group_tabs(self, tab_ids: list[int], group_id: Optional[int] = None) -> int:
        body: dict[str, Any] = {"tabIds": list(tab_ids)}
        if group_id is not None:
            body["groupId"] = group_id
        data = await self._send("POST", "/tabs/group", json=body)
        try:
            return int(data["groupId"])
        except (KeyError, TypeError, ValueError) as e:
            raise HostOperationError(
                "Host did not return a group ID", cause=e, details={"tab_ids": list(tab_ids)}
            ) from e

    async def update_group(
        self,
        group_id: int,
        title: Optional[str] = None,
        color: Optional[GroupColor] = None,
    ) -> TabGroup:
        body: dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if color is not None:
            body["color"] = GroupColor(color).value
        data = await self._send("PATCH", f"/groups/{group_id}", json=body)
        return _group_from_payload(data)

    async def remove_group(self, group_id: int) -> None:
        await self._send("DELETE", f"/groups/{group_id}")

    async def close(self) -> None:
        await self.client.aclose()

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        try:
            return await self._get_with_retry(path, params)
        except httpx.TransportError as e:
            raise HostOperationError(
                f"Host unreachable for GET {path}: {e}", cause=e
            ) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get_with_retry(self, path: str, params: Optional[dict[str, Any]]) -> Any:
        response = await self.client.get(path, params=params)
        return self._decode(response, "GET", path)

    async def _send(self, method: str, path: str, json: Optional[dict[str, Any]] = None) -> Any:
        try:
            response = await self.client.request(method, path, json=json)
        except httpx.TransportError as e:
            raise HostOperationError(
                f"Host unreachable for {method} {path}: {e}", cause=e
            ) from e
        return self._decode(response, method, path)

    @staticmethod
    def _decode(response: httpx.Response, method: str, path: str) -> Any:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Host rejected {method} {path}: HTTP {response.status_code}")
            raise HostOperationError(
                f"Host rejected {method} {path}: {_rejection_message(response)}",
                status=response.status_code,
                cause=e,
            ) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise HostOperationError(
                f"Host returned invalid JSON for {method} {path}", cause=e
            ) from e


def _rejection_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return f"HTTP {response.status_code}"
