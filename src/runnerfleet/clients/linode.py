from __future__ import annotations

from typing import Any, AsyncIterator

import httpx
import structlog

from runnerfleet.clients.base import (
    BaseHTTPClient,
    PermanentHTTPError,
    RateLimitedHTTPError,
    RetryableHTTPError,
)
from runnerfleet.core.errors import ProviderError, ThrottledError
from runnerfleet.lifecycle.models import FirewallRecord, FirewallRule, InstanceRecord, InstanceSpec

logger = structlog.get_logger()

PAGE_SIZE = 100
NOT_FOUND = 404


class LinodeClient(BaseHTTPClient):
    """Linode API v4 client for instances and cloud firewalls."""

    def __init__(
        self,
        token: str | None,
        *,
        base_url: str = "https://api.linode.com/v4",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
        )
        self._token = token

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Run a request, translating transport errors into provider errors."""
        try:
            return await self._request(method, path, **kwargs)
        except RateLimitedHTTPError as exc:
            raise ThrottledError(
                "Provider is throttling requests",
                details={"status": exc.status_code, "retry_after": exc.retry_after},
            ) from exc
        except PermanentHTTPError as exc:
            raise ProviderError(
                _api_message(exc.body) or str(exc),
                details={"status": exc.status_code, "path": path},
            ) from exc
        except RetryableHTTPError as exc:
            raise ProviderError(
                f"Provider request failed after retries: {exc}",
                details={"status": exc.status_code, "path": path},
            ) from exc

    # Instances

    async def create_instance(self, spec: InstanceSpec) -> InstanceRecord:
        data = await self._call("POST", "/linode/instances", json=spec.to_payload())
        return InstanceRecord.from_api(data)

    async def list_instances(self, page: int = 1, page_size: int = PAGE_SIZE) -> dict[str, Any]:
        return await self._call(
            "GET",
            "/linode/instances",
            params={"page": page, "page_size": page_size},
        )

    async def iter_instances(self) -> AsyncIterator[InstanceRecord]:
        async for item in self._paginate(self.list_instances):
            yield InstanceRecord.from_api(item)

    async def delete_instance(self, instance_id: str) -> None:
        """Delete an instance; one that is already gone counts as deleted."""
        try:
            await self._call("DELETE", f"/linode/instances/{instance_id}")
        except ProviderError as exc:
            if exc.status_code != NOT_FOUND:
                raise
            logger.info("instance_already_deleted")

    async def submit_delete_instance(self, instance_id: str) -> None:
        await self._submit_delete(f"/linode/instances/{instance_id}", "instance")

    # Firewalls

    async def list_firewalls(self, page: int = 1, page_size: int = PAGE_SIZE) -> dict[str, Any]:
        return await self._call(
            "GET",
            "/networking/firewalls",
            params={"page": page, "page_size": page_size},
        )

    async def iter_firewalls(self) -> AsyncIterator[FirewallRecord]:
        async for item in self._paginate(self.list_firewalls):
            yield FirewallRecord.from_api(item)

    async def get_firewall(self, firewall_id: str) -> FirewallRecord:
        data = await self._call("GET", f"/networking/firewalls/{firewall_id}")
        return FirewallRecord.from_api(data)

    async def create_firewall(
        self,
        label: str,
        inbound: list[FirewallRule],
        *,
        instance_ids: list[str],
    ) -> FirewallRecord:
        payload = {
            "label": label,
            "rules": _rules_payload(inbound),
            "devices": {"linodes": [int(instance_id) for instance_id in instance_ids]},
        }
        data = await self._call("POST", "/networking/firewalls", json=payload)
        return FirewallRecord.from_api(data)

    async def update_firewall_rules(self, firewall_id: str, inbound: list[FirewallRule]) -> FirewallRecord:
        await self._call("PUT", f"/networking/firewalls/{firewall_id}/rules", json=_rules_payload(inbound))
        return await self.get_firewall(firewall_id)

    async def delete_firewall(self, firewall_id: str) -> None:
        try:
            await self._call("DELETE", f"/networking/firewalls/{firewall_id}")
        except ProviderError as exc:
            if exc.status_code != NOT_FOUND:
                raise
            logger.info("firewall_already_deleted", firewall_id=firewall_id)

    async def submit_delete_firewall(self, firewall_id: str) -> None:
        await self._submit_delete(f"/networking/firewalls/{firewall_id}", "firewall")

    async def _submit_delete(self, path: str, kind: str) -> None:
        """Fire-and-forget delete: one attempt, status not checked, never raises."""
        try:
            status = await self.send_once("DELETE", path)
        except httpx.HTTPError as exc:
            logger.warning("delete_submit_failed", kind=kind, error=str(exc))
            return
        logger.info("delete_submitted", kind=kind, status=status)

    @staticmethod
    async def _paginate(fetch: Any) -> AsyncIterator[dict[str, Any]]:
        page = 1
        while True:
            body = await fetch(page=page, page_size=PAGE_SIZE)
            items = body.get("data") or []
            for item in items:
                yield item
            pages = int(body.get("pages") or 1)
            if not items or page >= pages:
                return
            page += 1


def _rules_payload(inbound: list[FirewallRule]) -> dict[str, Any]:
    return {
        "inbound_policy": "ACCEPT",
        "outbound_policy": "ACCEPT",
        "inbound": [rule.to_payload() for rule in inbound],
        "outbound": [],
    }


def _api_message(body: Any) -> str | None:
    """First ``reason`` from a Linode ``{"errors": [...]}`` body."""
    if isinstance(body, dict):
        errors = body.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("reason")
    return None
