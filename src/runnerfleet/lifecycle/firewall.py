"""Per-instance firewall that drops traffic to a list of ports."""

from __future__ import annotations

from typing import Iterable

from runnerfleet.core.errors import ValidationError
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.models import FirewallRecord, FirewallRule, firewall_label
from runnerfleet.lifecycle.protocols import ComputeProvider

MIN_PORT = 1
MAX_PORT = 65535


def validate_ports(ports: Iterable[str | int]) -> list[int]:
    """
    Parse every requested port, failing with all invalid entries at once.

    Args:
        ports: Raw port values, usually strings split from user input

    Returns:
        The ports as integers, deduplicated, in request order

    Raises:
        ValidationError: If any entry is not an integer in [1, 65535]
    """
    valid: list[int] = []
    invalid: list[str] = []
    for raw in ports:
        text = str(raw).strip()
        # Plain ASCII digits only; int() would also take "+22", "2_2" and other scripts.
        if not (text.isascii() and text.isdigit()):
            invalid.append(str(raw))
            continue
        port = int(text)
        if not MIN_PORT <= port <= MAX_PORT:
            invalid.append(str(raw))
        elif port not in valid:
            valid.append(port)

    if invalid:
        raise ValidationError(f"Invalid ports specified: {', '.join(invalid)}", invalid=invalid)
    if not valid:
        raise ValidationError("At least one port is required to build a firewall")
    return valid


def build_inbound_rules(ports: Iterable[int]) -> list[FirewallRule]:
    """One DROP rule per port from every IPv4 and IPv6 source."""
    return [FirewallRule(port=port) for port in ports]


class FirewallManager:
    """Creates, finds and deletes the firewall labelled ``firewall-<instanceId>``."""

    def __init__(self, provider: ComputeProvider, context: RunContext) -> None:
        self._provider = provider
        self._context = context

    async def _matching(self, instance_id: str) -> list[FirewallRecord]:
        label = firewall_label(instance_id)
        # Complete listing first; label comparison on one page could miss a duplicate.
        firewalls = [firewall async for firewall in self._provider.iter_firewalls()]
        return [firewall for firewall in firewalls if firewall.label == label]

    async def find(self, instance_id: str) -> FirewallRecord | None:
        matches = await self._matching(instance_id)
        if len(matches) > 1:
            self._context.log.warning(
                "duplicate_firewalls_found",
                label=firewall_label(instance_id),
                firewall_ids=[firewall.id for firewall in matches],
            )
        return matches[0] if matches else None

    async def ensure_blocking(self, instance_id: str, ports: Iterable[str | int]) -> FirewallRecord:
        valid_ports = validate_ports(ports)
        inbound = build_inbound_rules(valid_ports)
        label = firewall_label(instance_id)
        log = self._context.log.bind(label=label, ports=valid_ports)

        existing = await self.find(instance_id)
        if existing is not None:
            log.info("firewall_rules_updating", firewall_id=existing.id)
            return await self._provider.update_firewall_rules(existing.id, inbound)

        log.info("firewall_creating")
        firewall = await self._provider.create_firewall(label, inbound, instance_ids=[instance_id])
        log.info("firewall_created", firewall_id=firewall.id)
        return firewall

    async def delete(self, instance_id: str, *, wait: bool = True) -> None:
        """Delete every firewall carrying the instance's label; none at all is not an error."""
        matches = await self._matching(instance_id)
        if not matches:
            self._context.log.info("firewall_not_found", label=firewall_label(instance_id))
            return
        for firewall in matches:
            if wait:
                await self._provider.delete_firewall(firewall.id)
                self._context.log.info("firewall_deleted", firewall_id=firewall.id)
            else:
                await self._provider.submit_delete_firewall(firewall.id)
                self._context.log.info("firewall_delete_submitted", firewall_id=firewall.id)
