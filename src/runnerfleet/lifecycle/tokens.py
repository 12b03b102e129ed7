from __future__ import annotations

from runnerfleet.core.errors import CoordinatorError
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.models import CoordinatorScope, RegistrationToken
from runnerfleet.lifecycle.protocols import Coordinator


class RegistrationTokenIssuer:
    """Obtains the one-time secret a new runner binds with."""

    def __init__(self, coordinator: Coordinator, context: RunContext) -> None:
        self._coordinator = coordinator
        self._context = context

    async def issue(self, scope: CoordinatorScope) -> RegistrationToken:
        log = self._context.log.bind(owner=scope.owner, repo=scope.repo)
        log.info("registration_token_requested")
        token = await self._coordinator.create_registration_token(scope)
        if not token.value:
            raise CoordinatorError("Coordinator returned an empty registration token")
        self._context.mask(token.value)
        log.info("registration_token_received", expires_at=token.expires_at)
        return token
