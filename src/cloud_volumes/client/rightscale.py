"""
RightScale API 1.5 volume client

Implements CloudVolumeClient over HTTP using the instance-facing API
(authentication with the instance API token).

Example usage:
    import asyncio
    from cloud_volumes.client import RightScaleClient

    async def main():
        async with RightScaleClient(
            api_endpoint="https://my.rightscale.com",
            account_id="12345",
            instance_token="secret",
        ) as client:
            instance = await client.get_instance()
            print(instance.href)

    asyncio.run(main())
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..errors import RemoteAPIError
from ..types import (
    Instance,
    RemoteAttachment,
    RemoteSnapshot,
    RemoteVolume,
    VolumeType,
)
from .base import CloudVolumeClient

logger = logging.getLogger(__name__)

__all__ = ["RightScaleClient"]

API_VERSION = "1.5"
TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S %z"


def _link(data: Dict[str, Any], rel: str) -> Optional[str]:
    """Return the href of the link with relation ``rel``"""
    for link in data.get("links") or []:
        if link.get("rel") == rel:
            return link.get("href")
    return None


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_volume(data: Dict[str, Any]) -> RemoteVolume:
    size = data.get("size")
    return RemoteVolume(
        href=_link(data, "self") or data.get("href", ""),
        resource_uid=str(data.get("resource_uid", "")),
        name=data.get("name") or "",
        size=int(size) if size not in (None, "") else None,
        description=data.get("description"),
        status=data.get("status") or "",
    )


def _parse_attachment(data: Dict[str, Any]) -> RemoteAttachment:
    return RemoteAttachment(
        href=_link(data, "self") or data.get("href", ""),
        device=data.get("device") or "",
        state=data.get("state") or "",
        volume_href=_link(data, "volume"),
        instance_href=_link(data, "instance"),
    )


def _parse_snapshot(data: Dict[str, Any]) -> RemoteSnapshot:
    return RemoteSnapshot(
        href=_link(data, "self") or data.get("href", ""),
        resource_uid=str(data.get("resource_uid", "")),
        name=data.get("name") or "",
        description=data.get("description"),
        state=data.get("state") or "",
        parent_volume_href=_link(data, "parent_volume"),
        updated_at=_parse_timestamp(data.get("updated_at") or data.get("created_at")),
    )


def _parse_volume_type(data: Dict[str, Any]) -> VolumeType:
    size = data.get("size")
    return VolumeType(
        href=_link(data, "self") or data.get("href", ""),
        resource_uid=str(data.get("resource_uid", "")),
        name=data.get("name") or "",
        size=int(size) if size not in (None, "") else 0,
    )


class RightScaleClient(CloudVolumeClient):
    """
    Cloud volume client for the RightScale API 1.5.

    Attributes:
        endpoint: The API endpoint URL
        account_id: Account the instance belongs to
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        api_endpoint: str,
        account_id: Optional[str],
        instance_token: Optional[str],
        timeout: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the client.

        Args:
            api_endpoint: The API endpoint URL
            account_id: Account ID from the instance's API token
            instance_token: Instance API token
            timeout: Request timeout in seconds (default: 60)
            session: Optional aiohttp session to reuse
        """
        self.endpoint = api_endpoint.rstrip("/")
        self.account_id = account_id
        self.instance_token = instance_token
        self.timeout = timeout
        self._session = session
        self._own_session = session is None
        self._authenticated = False
        self._instance: Optional[Instance] = None

        logger.info(f"RightScaleClient initialized with endpoint: {self.endpoint}")

    @classmethod
    def from_config(cls, config) -> "RightScaleClient":
        """Build a client from a VolumeConfig"""
        return cls(
            api_endpoint=config.api_endpoint,
            account_id=config.account_id,
            instance_token=config.instance_token,
            timeout=config.request_timeout_sec,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"X-API-Version": API_VERSION},
            )
            self._authenticated = False
        return self._session

    async def close(self) -> None:
        """Close the underlying aiohttp session"""
        if self._own_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None
            logger.debug("RightScaleClient session closed")

    async def __aenter__(self) -> "RightScaleClient":
        await self._get_session()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _build_url(self, path: str) -> str:
        """Build full URL from an href or path"""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.endpoint}{path}"

    async def _login(self) -> None:
        """Open an instance session (cookie based)"""
        if not self.account_id or not self.instance_token:
            raise RemoteAPIError(None, "account ID and instance token are required")

        session = await self._get_session()
        url = self._build_url("/api/session/instance")
        data = {
            "account_href": f"/api/accounts/{self.account_id}",
            "instance_token": self.instance_token,
        }
        try:
            async with session.post(url, data=data) as response:
                await self._check_response(response, "POST", url)
        except aiohttp.ClientError as e:
            raise RemoteAPIError(None, str(e), "POST", url) from e
        self._authenticated = True
        logger.debug(f"Logged in to {self.endpoint} for account {self.account_id}")

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Any, Dict[str, str]]:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method (GET, POST, DELETE)
            path: API path or href
            params: Query parameters
            json: JSON body

        Returns:
            Tuple of (decoded JSON body or None, response headers)

        Raises:
            RemoteAPIError: On transport or API errors
        """
        session = await self._get_session()
        if not self._authenticated:
            await self._login()

        url = self._build_url(path)
        logger.debug(f"{method} {url} params={params}")
        try:
            async with session.request(method, url, params=params, json=json) as response:
                await self._check_response(response, method, url)
                body = None
                if response.content_type == "application/json" or response.content_type.endswith("+json"):
                    body = await response.json(content_type=None)
                return body, dict(response.headers)
        except aiohttp.ClientError as e:
            raise RemoteAPIError(None, str(e), method, url) from e

    async def _check_response(self, response: aiohttp.ClientResponse, method: str, url: str) -> None:
        """
        Check response for errors.

        Raises:
            RemoteAPIError: On HTTP error statuses
        """
        if response.status < 400:
            return
        text = (await response.text()).strip()
        raise RemoteAPIError(response.status, text or (response.reason or ""), method, url)

    async def _index(self, path: str, filters: Optional[List[str]]) -> List[Dict[str, Any]]:
        params = [("filter[]", expression) for expression in (filters or [])]
        body, _ = await self._request("GET", path, params=params)
        return body or []

    async def _show(self, href: str) -> Dict[str, Any]:
        body, _ = await self._request("GET", href)
        return body or {}

    async def _create(self, path: str, payload: Dict[str, Any]) -> str:
        """POST a new resource and return its href from the Location header"""
        _, headers = await self._request("POST", path, json=payload)
        location = headers.get("Location")
        if not location:
            raise RemoteAPIError(None, f"no Location header returned for POST {path}", "POST", path)
        return location

    async def _cloud_path(self, collection: str) -> str:
        instance = await self.get_instance()
        if not instance.cloud_href:
            raise RemoteAPIError(None, f"instance {instance.href} has no cloud link")
        return f"{instance.cloud_href}/{collection}"

    # =========================================================================
    # Instance
    # =========================================================================

    async def get_instance(self) -> Instance:
        if self._instance is None:
            data = await self._show("/api/sessions/instance")
            self._instance = Instance(
                href=_link(data, "self") or data.get("href", ""),
                cloud_href=_link(data, "cloud"),
                datacenter_href=_link(data, "datacenter"),
            )
        return self._instance

    # =========================================================================
    # Volumes
    # =========================================================================

    async def create_volume(self, params: Dict[str, Any]) -> RemoteVolume:
        href = await self._create(await self._cloud_path("volumes"), {"volume": dict(params)})
        return await self.show_volume(href)

    async def find_volumes(self, filters: Optional[List[str]] = None) -> List[RemoteVolume]:
        items = await self._index(await self._cloud_path("volumes"), filters)
        return [_parse_volume(item) for item in items]

    async def show_volume(self, href: str) -> RemoteVolume:
        return _parse_volume(await self._show(href))

    async def destroy_volume(self, href: str) -> None:
        await self._request("DELETE", href)

    async def list_volume_types(self) -> List[VolumeType]:
        items = await self._index(await self._cloud_path("volume_types"), None)
        return [_parse_volume_type(item) for item in items]

    # =========================================================================
    # Attachments
    # =========================================================================

    async def create_attachment(
        self,
        volume_href: str,
        instance_href: str,
        device: str,
    ) -> RemoteAttachment:
        payload = {
            "volume_attachment": {
                "volume_href": volume_href,
                "instance_href": instance_href,
                "device": device,
            }
        }
        href = await self._create(await self._cloud_path("volume_attachments"), payload)
        return await self.show_attachment(href)

    async def list_attachments(self, filters: Optional[List[str]] = None) -> List[RemoteAttachment]:
        items = await self._index(await self._cloud_path("volume_attachments"), filters)
        return [_parse_attachment(item) for item in items]

    async def show_attachment(self, href: str) -> RemoteAttachment:
        return _parse_attachment(await self._show(href))

    async def destroy_attachment(self, href: str) -> None:
        await self._request("DELETE", href)

    # =========================================================================
    # Snapshots
    # =========================================================================

    async def create_snapshot(
        self,
        name: str,
        parent_volume_href: str,
        description: Optional[str] = None,
    ) -> RemoteSnapshot:
        snapshot: Dict[str, Any] = {"name": name, "parent_volume_href": parent_volume_href}
        if description:
            snapshot["description"] = description
        href = await self._create(await self._cloud_path("volume_snapshots"), {"volume_snapshot": snapshot})
        return await self.show_snapshot(href)

    async def list_snapshots(self, filters: Optional[List[str]] = None) -> List[RemoteSnapshot]:
        items = await self._index(await self._cloud_path("volume_snapshots"), filters)
        return [_parse_snapshot(item) for item in items]

    async def show_snapshot(self, href: str) -> RemoteSnapshot:
        return _parse_snapshot(await self._show(href))

    async def destroy_snapshot(self, href: str) -> None:
        await self._request("DELETE", href)
