"""
Cluster Client - HTTP client for the cluster API.

Talks JSON over HTTPS to a Kubernetes-style API server. Each resource kind is
addressed through a ResourceClient bound to its group/version/plural, which
implements the narrow RemoteStore contract the adapter depends on.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from config import ClusterConfig
from errors import NotFound, RemoteError

logger = logging.getLogger(__name__)

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


@dataclass(frozen=True)
class APIResource:
    """A versioned, namespaced resource type served by the cluster API."""

    group: str
    version: str
    plural: str
    kind: str

    @property
    def api_version(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    def path(self, namespace: str, name: Optional[str] = None) -> str:
        """Build the REST path for the collection, or for one object."""
        prefix = "/api" if not self.group else "/apis"
        path = f"{prefix}/{self.api_version}/namespaces/{namespace}/{self.plural}"
        if name is not None:
            path = f"{path}/{name}"
        return path


class RemoteStore(ABC):
    """
    Typed CRUD contract against one resource kind of the remote store.

    Every method raises NotFound when the addressed object does not exist
    and RemoteError for any other failure.
    """

    @abstractmethod
    async def create(self, namespace: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Create an object and return the stored representation."""
        pass

    @abstractmethod
    async def get(self, namespace: str, name: str) -> Dict[str, Any]:
        """Fetch an object."""
        pass

    @abstractmethod
    async def patch(
        self, namespace: str, name: str, merge_patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Apply a JSON merge patch and return the stored representation."""
        pass

    @abstractmethod
    async def delete(self, namespace: str, name: str) -> None:
        """Request deletion of an object."""
        pass


class ClusterClient:
    """
    HTTP client for the cluster API.

    Holds connection settings only; a session is opened per request so the
    client has no lifetime to manage beyond the owning Provider.
    """

    def __init__(self, config: ClusterConfig):
        self.config = config
        self.api_url = config.api_url.rstrip("/")

    def resource(self, api: APIResource) -> "ResourceClient":
        """Return a RemoteStore bound to one resource type."""
        return ResourceClient(self, api)

    def _get_headers(self, content_type: str = "application/json") -> Dict[str, str]:
        """Get HTTP headers for cluster API requests."""
        headers = {
            "Accept": "application/json",
            "Content-Type": content_type,
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        content_type: str = "application/json",
    ) -> Optional[Dict[str, Any]]:
        """
        Send one request and decode the JSON response.

        Args:
            method: HTTP method
            path: API path, appended to the configured API URL
            body: Optional JSON body
            content_type: Content type of the body

        Returns:
            Decoded JSON response body (empty dict when there is none),
            or None when the server answered 404.

        Raises:
            RemoteError: On any other error status or transport failure.
        """
        url = f"{self.api_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        ssl = None if self.config.verify_ssl else False

        logger.debug(f"{method} {url}")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method,
                    url,
                    headers=self._get_headers(content_type),
                    json=body,
                    ssl=ssl,
                ) as response:
                    if response.status == 404:
                        return None
                    if response.status >= 400:
                        error_text = await response.text()
                        raise RemoteError(error_text, status=response.status)
                    if response.status == 204:
                        return {}
                    return await response.json()
        except aiohttp.ClientError as e:
            raise RemoteError(f"{method} {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise RemoteError(
                f"{method} {url} timed out after {self.config.request_timeout}s"
            ) from e


class ResourceClient(RemoteStore):
    """RemoteStore implementation for one APIResource."""

    def __init__(self, client: ClusterClient, api: APIResource):
        self.client = client
        self.api = api

    async def _call(
        self,
        method: str,
        namespace: str,
        name: str,
        body: Optional[Dict[str, Any]] = None,
        content_type: str = "application/json",
        collection: bool = False,
    ) -> Dict[str, Any]:
        result = await self.client.request(
            method,
            self.api.path(namespace, None if collection else name),
            body=body,
            content_type=content_type,
        )
        if result is None:
            raise NotFound(self.api.kind, namespace, name)
        return result

    async def create(self, namespace: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        name = obj.get("metadata", {}).get("name", "")
        return await self._call("POST", namespace, name, body=obj, collection=True)

    async def get(self, namespace: str, name: str) -> Dict[str, Any]:
        return await self._call("GET", namespace, name)

    async def patch(
        self, namespace: str, name: str, merge_patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._call(
            "PATCH",
            namespace,
            name,
            body=merge_patch,
            content_type=MERGE_PATCH_CONTENT_TYPE,
        )

    async def delete(self, namespace: str, name: str) -> None:
        await self._call("DELETE", namespace, name)
        logger.info(f"Delete requested for {self.api.kind} {namespace}/{name}")
