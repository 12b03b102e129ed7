from __future__ import annotations

from typing import Any, AsyncIterator

from runnerfleet.clients.base import (
    BaseHTTPClient,
    PermanentHTTPError,
    RateLimitedHTTPError,
    RetryableHTTPError,
)
from runnerfleet.core.errors import CoordinatorError
from runnerfleet.lifecycle.models import CoordinatorScope, RegistrationToken, WorkerRecord

PER_PAGE = 100
API_VERSION = "2022-11-28"


class GitHubClient(BaseHTTPClient):
    """GitHub REST client for repository self-hosted runners."""

    def __init__(
        self,
        token: str | None,
        *,
        base_url: str = "https://api.github.com",
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
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            return await self._request(method, path, **kwargs)
        except PermanentHTTPError as exc:
            message = exc.body.get("message") if isinstance(exc.body, dict) else None
            raise CoordinatorError(
                message or str(exc),
                details={"status": exc.status_code, "path": path},
            ) from exc
        except (RateLimitedHTTPError, RetryableHTTPError) as exc:
            raise CoordinatorError(
                f"Coordinator request failed: {exc}",
                details={"status": exc.status_code, "path": path},
            ) from exc

    async def create_registration_token(self, scope: CoordinatorScope) -> RegistrationToken:
        data = await self._call("POST", f"{scope.path}/actions/runners/registration-token")
        return RegistrationToken(value=data.get("token", ""), expires_at=data.get("expires_at"))

    async def list_runners(self, scope: CoordinatorScope, page: int = 1) -> dict[str, Any]:
        return await self._call(
            "GET",
            f"{scope.path}/actions/runners",
            params={"per_page": PER_PAGE, "page": page},
        )

    async def iter_runners(self, scope: CoordinatorScope) -> AsyncIterator[WorkerRecord]:
        page = 1
        seen = 0
        while True:
            body = await self.list_runners(scope, page=page)
            runners = body.get("runners") or []
            for runner in runners:
                yield WorkerRecord.from_api(runner)
            seen += len(runners)
            if not runners or seen >= int(body.get("total_count") or 0):
                return
            page += 1

    async def delete_runner(self, scope: CoordinatorScope, runner_id: str) -> None:
        await self._call("DELETE", f"{scope.path}/actions/runners/{runner_id}")
