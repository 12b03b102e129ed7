"""Tests for selector resolution against an inventory snapshot."""

import pytest

from runnerfleet.core.errors import AmbiguousSelectorError, ExitCode, SelectorNotFoundError
from runnerfleet.lifecycle.models import ExplicitId, InstanceRecord, SearchPhrase
from runnerfleet.lifecycle.resolver import ResourceSearchResolver, fetch_inventory

INVENTORY = [
    InstanceRecord(id="101", label="ci-runner-alpha", tags=frozenset({"ci"})),
    InstanceRecord(id="102", label="ci-runner-beta", tags=frozenset({"gpu"})),
    InstanceRecord(id="103", label="database", tags=frozenset({"prod"})),
]


class TestResourceSearchResolver:
    def setup_method(self):
        self.resolver = ResourceSearchResolver()

    def test_single_label_substring_match(self):
        record = self.resolver.resolve(SearchPhrase("alpha"), INVENTORY)
        assert record.id == "101"

    def test_exact_label_match(self):
        record = self.resolver.resolve(SearchPhrase("database"), INVENTORY)
        assert record.id == "103"

    def test_tag_membership_match(self):
        record = self.resolver.resolve(SearchPhrase("gpu"), INVENTORY)
        assert record.id == "102"

    def test_tag_must_match_whole_tag(self):
        with pytest.raises(SelectorNotFoundError):
            self.resolver.resolve(SearchPhrase("gp"), INVENTORY)

    def test_zero_matches_is_not_found(self):
        with pytest.raises(SelectorNotFoundError) as exc_info:
            self.resolver.resolve(SearchPhrase("nothing-here"), INVENTORY)
        assert exc_info.value.exit_code == ExitCode.SELECTOR_ERROR

    def test_multiple_matches_is_ambiguous(self):
        with pytest.raises(AmbiguousSelectorError) as exc_info:
            self.resolver.resolve(SearchPhrase("ci-runner"), INVENTORY)
        assert sorted(exc_info.value.matches) == ["101", "102"]

    def test_matching_is_case_sensitive(self):
        with pytest.raises(SelectorNotFoundError):
            self.resolver.resolve(SearchPhrase("ALPHA"), INVENTORY)

    def test_explicit_id_match(self):
        record = self.resolver.resolve(ExplicitId("102"), INVENTORY)
        assert record.label == "ci-runner-beta"

    def test_explicit_id_missing_from_inventory(self):
        with pytest.raises(SelectorNotFoundError):
            self.resolver.resolve(ExplicitId("999"), INVENTORY)

    def test_explicit_id_does_not_match_labels(self):
        inventory = [InstanceRecord(id="7", label="101")]
        with pytest.raises(SelectorNotFoundError):
            self.resolver.resolve(ExplicitId("101"), inventory)

    def test_resolution_is_deterministic(self):
        first = self.resolver.resolve(SearchPhrase("beta"), INVENTORY)
        second = self.resolver.resolve(SearchPhrase("beta"), list(reversed(INVENTORY)))
        assert first == second


@pytest.mark.asyncio
async def test_fetch_inventory_drains_every_page():
    async def pages():
        for record in INVENTORY:
            yield record

    inventory = await fetch_inventory(pages())

    assert [record.id for record in inventory] == ["101", "102", "103"]
