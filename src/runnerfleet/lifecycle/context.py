from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from runnerfleet.core.errors import WorkflowCancelledError
from runnerfleet.logging import SecretMasker


@dataclass
class RunContext:
    """Per-invocation context handed to every lifecycle component.

    Holds the secret masker and the optional cancellation token; nothing
    here is shared between invocations.
    """

    masker: SecretMasker = field(default_factory=SecretMasker)
    cancel: asyncio.Event | None = None
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def log(self) -> Any:
        return structlog.get_logger().bind(run_id=self.run_id)

    def mask(self, *values: Any) -> None:
        for value in values:
            self.masker.add(value)

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def check_cancelled(self) -> None:
        if self.cancelled:
            raise WorkflowCancelledError("Workflow cancelled", details={"run_id": self.run_id})

    async def sleep(self, seconds: float) -> None:
        """Block for ``seconds``, returning early with an error if cancelled."""
        self.check_cancelled()
        if self.cancel is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(self.cancel.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.check_cancelled()
