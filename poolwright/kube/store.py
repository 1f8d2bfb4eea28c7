"""Resource store backed by the Kubernetes API server."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from typing import Any

from loguru import logger

from poolwright.api.model import Pool, Workload, WorkloadRef
from poolwright.config import ClusterConfig
from poolwright.core.exceptions import AlreadyExistsError, NotFoundError, StoreError
from poolwright.infra.http import Auth, HttpClient, HttpError

from .auth import resolve_api_server, resolve_auth, resolve_ssl
from .codec import decode_pool, decode_workload, encode_pool
from .types import NodePoolList, PodList, PodManifest, Status

NODEPOOLS_PATH = "/apis/karpenter.sh/v1/nodepools"
PAGE_SIZE = 500


def _status_reason(e: HttpError) -> tuple[str, str]:
    try:
        body = json.loads(e.body)
    except ValueError:
        return "", e.body
    if not isinstance(body, dict) or body.get("kind") != "Status":
        return "", e.body
    status: Status = body  # type: ignore[assignment]
    return str(status.get("reason", "")), str(status.get("message", e.body))


def _store_error(action: str, e: HttpError) -> StoreError:
    reason, message = _status_reason(e)
    if e.status == 0:
        return StoreError(f"{action}: {message}", status=0, reason="Unavailable")
    return StoreError(f"{action}: HTTP {e.status} {message}", status=e.status, reason=reason)


class KubeStore:
    """Reads pods and reads/creates Karpenter NodePools over REST.

    Example:
        async with KubeStore.from_config(ClusterConfig()) as store:
            pools = await store.list_pools()
    """

    def __init__(
        self,
        base_url: str,
        auth: Auth | None = None,
        *,
        timeout: float = 30.0,
        ssl_context: Any = True,
    ) -> None:
        self._http = HttpClient(
            base_url,
            auth,
            timeout=timeout,
            default_headers={"Content-Type": "application/json"},
            ssl_context=ssl_context,
        )
        self._log = logger.bind(component="kube")

    @classmethod
    def from_config(cls, config: ClusterConfig) -> KubeStore:
        return cls(
            resolve_api_server(config),
            resolve_auth(config),
            timeout=config.request_timeout,
            ssl_context=resolve_ssl(config),
        )

    async def __aenter__(self) -> KubeStore:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.close()

    async def _paginate(self, action: str, path: str, params: dict[str, Any]) -> AsyncIterator[Any]:
        query = {**params, "limit": PAGE_SIZE}
        while True:
            try:
                page: PodList | NodePoolList = await self._http.get(path, params=query)
            except HttpError as e:
                raise _store_error(action, e) from e
            if not isinstance(page, dict) or not isinstance(page.get("items", []), list):
                raise StoreError(f"{action}: response is not a list object", reason="InvalidResponse")
            for item in page.get("items", []):
                yield item
            meta = page.get("metadata")
            token = meta.get("continue") if isinstance(meta, dict) else None
            if not token:
                return
            query = {**query, "continue": token}

    # =========================================================================
    # Workloads
    # =========================================================================

    async def get_workload(self, ref: WorkloadRef) -> Workload:
        path = f"/api/v1/namespaces/{ref.namespace}/pods/{ref.name}"
        try:
            manifest: PodManifest = await self._http.get(path)
        except HttpError as e:
            if e.status == 404:
                raise NotFoundError("Pod", str(ref)) from e
            raise _store_error(f"get pod {ref}", e) from e
        return decode_workload(manifest)

    async def list_pending_workloads(self, namespace: str | None = None) -> Sequence[Workload]:
        path = f"/api/v1/namespaces/{namespace}/pods" if namespace else "/api/v1/pods"
        params = {"fieldSelector": "status.phase=Pending"}
        return [
            decode_workload(item)
            async for item in self._paginate("list pending pods", path, params)
        ]

    # =========================================================================
    # Pools
    # =========================================================================

    async def list_pools(self) -> Sequence[Pool]:
        return [
            decode_pool(item)
            async for item in self._paginate("list NodePools", NODEPOOLS_PATH, {})
        ]

    async def create_pool(self, pool: Pool) -> None:
        try:
            await self._http.post(NODEPOOLS_PATH, dict(encode_pool(pool)))
        except HttpError as e:
            reason, _ = _status_reason(e)
            if e.status == 409 and reason in ("AlreadyExists", ""):
                raise AlreadyExistsError("NodePool", pool.name) from e
            raise _store_error(f"create NodePool {pool.name}", e) from e
        self._log.debug("NodePool {name} submitted", name=pool.name)

    # =========================================================================
    # Health
    # =========================================================================

    async def ready(self) -> bool:
        try:
            body = await self._http.get_text("/readyz")
        except HttpError as e:
            self._log.debug("API server not ready: {err}", err=e)
            return False
        return body.strip() == "ok"
