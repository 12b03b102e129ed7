"""Map a runner selector onto exactly one instance."""

from __future__ import annotations

from typing import AsyncIterable, Iterable, Sequence

import structlog

from runnerfleet.core.errors import AmbiguousSelectorError, SelectorNotFoundError
from runnerfleet.lifecycle.models import ExplicitId, InstanceRecord, RunnerSelector, SearchPhrase
from runnerfleet.logging import mask_tail

logger = structlog.get_logger()


async def fetch_inventory(pages: AsyncIterable[InstanceRecord]) -> list[InstanceRecord]:
    """Drain a paginated listing into one complete snapshot."""
    inventory = [record async for record in pages]
    logger.debug(
        "inventory_fetched",
        count=len(inventory),
        labels=[mask_tail(record.label) for record in inventory],
    )
    return inventory


class ResourceSearchResolver:
    """Resolves selectors against a complete inventory snapshot.

    Only ever evaluate a snapshot produced by ``fetch_inventory``: a single
    match on a partial page is not a single match.
    """

    def matches(self, selector: RunnerSelector, inventory: Iterable[InstanceRecord]) -> list[InstanceRecord]:
        if isinstance(selector, ExplicitId):
            return [record for record in inventory if record.id == str(selector.id)]
        if isinstance(selector, SearchPhrase):
            return [record for record in inventory if record.matches(selector.text)]
        raise TypeError(f"Unsupported selector: {selector!r}")

    def resolve(self, selector: RunnerSelector, inventory: Sequence[InstanceRecord]) -> InstanceRecord:
        found = self.matches(selector, inventory)
        if len(found) == 1:
            return found[0]
        if not found:
            raise SelectorNotFoundError(
                f"No instances found matching {_describe(selector)}",
                details={"inventory_size": len(inventory)},
            )
        raise AmbiguousSelectorError(
            f"Multiple instances found matching {_describe(selector)}",
            matches=[record.id for record in found],
        )


def _describe(selector: RunnerSelector) -> str:
    if isinstance(selector, ExplicitId):
        return f"id {selector.id}"
    return f"search phrase {selector.text!r}"
