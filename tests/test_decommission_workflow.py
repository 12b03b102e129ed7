"""Decommission saga scenarios: independent sub-sagas with aggregated failures."""

import pytest
from stubs import SCOPE, StubCoordinator, StubExecutor, StubProvider, runner

from runnerfleet.core.errors import (
    AmbiguousSelectorError,
    CoordinatorError,
    ExitCode,
    ProviderError,
    SelectorNotFoundError,
    WorkflowError,
)
from runnerfleet.lifecycle.models import (
    DecommissionStage,
    ExplicitId,
    FirewallRecord,
    InstanceRecord,
    SearchPhrase,
)
from runnerfleet.lifecycle.orchestrator import LifecycleOrchestrator


def make_provider():
    return StubProvider(
        instances=[
            InstanceRecord(id="1001", label="ci-runner-01", address="203.0.113.10", tags=frozenset({"ci"})),
            InstanceRecord(id="1002", label="ci-runner-02", address="203.0.113.11", tags=frozenset({"ci"})),
            InstanceRecord(id="2001", label="database", address="203.0.113.20"),
        ],
        firewalls=[FirewallRecord(id="fw-1", label="firewall-1001")],
    )


def make_coordinator():
    return StubCoordinator(runners=[runner("77", "ci-runner-01"), runner("78", "ci-runner-02")])


@pytest.fixture
def provider():
    return make_provider()


@pytest.fixture
def coordinator():
    return make_coordinator()


@pytest.fixture
def orchestrator(context, provider, coordinator):
    return LifecycleOrchestrator(provider, coordinator, StubExecutor(), context=context)


class TestDestroy:
    @pytest.mark.asyncio
    async def test_full_teardown_by_id(self, orchestrator, provider, coordinator):
        outcome = await orchestrator.destroy(SCOPE, ExplicitId("1001"))

        assert outcome.success
        assert outcome.stage == DecommissionStage.DONE.value
        assert ("delete_runner", "77") in coordinator.calls
        assert ("delete_firewall", "fw-1") in provider.calls
        assert ("delete_instance", "1001") in provider.calls
        assert "1001" not in provider.instances

    @pytest.mark.asyncio
    async def test_teardown_order(self, orchestrator, provider, coordinator):
        await orchestrator.destroy(SCOPE, SearchPhrase("ci-runner-01"))

        mutating = [name for name in provider.call_names if name.startswith("delete")]
        assert mutating == ["delete_firewall", "delete_instance"]
        assert coordinator.call_names == ["list_runners", "delete_runner"]

    @pytest.mark.asyncio
    async def test_instance_delete_failure_reported_alone(self, orchestrator, provider, coordinator):
        provider.delete_instance_error = ProviderError("instance locked", details={"status": 409})

        outcome = await orchestrator.destroy(SCOPE, ExplicitId("1001"))

        assert not outcome.success
        assert [failure.step for failure in outcome.failures] == ["delete_instance"]
        assert outcome.stage == DecommissionStage.DELETING_INSTANCE.value
        assert ("delete_runner", "77") in coordinator.calls
        assert "1001" in provider.instances

    @pytest.mark.asyncio
    async def test_deregister_failure_does_not_block_delete(self, orchestrator, provider, coordinator):
        coordinator.delete_error = CoordinatorError("Bad credentials", details={"status": 401})

        outcome = await orchestrator.destroy(SCOPE, ExplicitId("1001"))

        assert [failure.step for failure in outcome.failures] == ["deregister_runner"]
        assert ("delete_instance", "1001") in provider.calls
        assert "1001" not in provider.instances

    @pytest.mark.asyncio
    async def test_double_failure_keeps_both_causes(self, orchestrator, provider, coordinator):
        coordinator.delete_error = CoordinatorError("Bad credentials", details={"status": 401})
        provider.delete_instance_error = ProviderError("instance locked", details={"status": 409})

        outcome = await orchestrator.destroy(SCOPE, ExplicitId("1001"))

        assert [failure.step for failure in outcome.failures] == ["deregister_runner", "delete_instance"]
        with pytest.raises(WorkflowError) as exc_info:
            outcome.raise_for_failure()
        assert "Bad credentials" in exc_info.value.message
        assert "instance locked" in exc_info.value.message
        assert exc_info.value.exit_code == ExitCode.WORKFLOW_FAILED

    @pytest.mark.asyncio
    async def test_firewall_failure_still_attempts_instance_delete(self, orchestrator, provider):
        provider.delete_firewall_error = ProviderError("firewall busy", details={"status": 500})

        outcome = await orchestrator.destroy(SCOPE, ExplicitId("1001"))

        assert [failure.step for failure in outcome.failures] == ["delete_firewall"]
        assert ("delete_instance", "1001") in provider.calls

    @pytest.mark.asyncio
    async def test_ambiguous_phrase_has_no_side_effects(self, orchestrator, provider, coordinator):
        outcome = await orchestrator.destroy(SCOPE, SearchPhrase("ci-runner"))

        assert not outcome.success
        assert outcome.stage == DecommissionStage.RESOLVING_TARGET.value
        assert isinstance(outcome.failures[0].error, AmbiguousSelectorError)
        assert provider.call_names == ["list_instances"]
        assert coordinator.calls == []

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_found(self, orchestrator, provider, coordinator):
        outcome = await orchestrator.destroy(SCOPE, ExplicitId("9999"))

        assert isinstance(outcome.failures[0].error, SelectorNotFoundError)
        assert outcome.failures[0].error.exit_code == ExitCode.SELECTOR_ERROR
        assert coordinator.calls == []

    @pytest.mark.asyncio
    async def test_deregisters_by_instance_label_by_default(self, orchestrator, coordinator):
        await orchestrator.destroy(SCOPE, ExplicitId("1002"))

        assert ("delete_runner", "78") in coordinator.calls

    @pytest.mark.asyncio
    async def test_explicit_runner_label_overrides_instance_label(self, orchestrator, coordinator):
        await orchestrator.destroy(SCOPE, ExplicitId("1002"), runner_label="ci-runner-01")

        assert ("delete_runner", "77") in coordinator.calls

    @pytest.mark.asyncio
    async def test_resolved_target_is_masked(self, orchestrator, context):
        await orchestrator.destroy(SCOPE, ExplicitId("1001"))

        assert "203.0.113.10" in context.masker
        assert "ci-runner-01" in context.masker

    @pytest.mark.asyncio
    async def test_async_variant_submits_deletes(self, orchestrator, provider):
        outcome = await orchestrator.destroy(SCOPE, ExplicitId("1001"), wait=False)

        assert outcome.success
        assert ("submit_delete_firewall", "fw-1") in provider.calls
        assert ("submit_delete_instance", "1001") in provider.calls
        assert "delete_instance" not in provider.call_names


class TestVariants:
    @pytest.mark.asyncio
    async def test_destroy_machine_leaves_runner_registered(self, orchestrator, provider, coordinator):
        outcome = await orchestrator.destroy_machine(SCOPE, ExplicitId("1001"))

        assert outcome.success
        assert outcome.workflow == "destroy-machine"
        assert coordinator.calls == []
        assert ("delete_instance", "1001") in provider.calls

    @pytest.mark.asyncio
    async def test_destroy_machine_async_name(self, orchestrator):
        outcome = await orchestrator.destroy_machine(SCOPE, ExplicitId("1001"), wait=False)

        assert outcome.workflow == "destroy-machine-async"

    @pytest.mark.asyncio
    async def test_destroy_runner_leaves_instance(self, orchestrator, provider, coordinator):
        outcome = await orchestrator.destroy_runner(SCOPE, SearchPhrase("ci-runner-02"))

        assert outcome.success
        assert ("delete_runner", "78") in coordinator.calls
        assert provider.call_names == ["list_instances"]
        assert "1002" in provider.instances
