"""Tests for environment and action-input settings."""

import pytest

from runnerfleet.config import ActionInputs, Settings, get_settings, split_csv
from runnerfleet.lifecycle.models import ExplicitId, SearchPhrase


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("GITHUB_ACTIONS", "GITHUB_OUTPUT"):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_defaults_match_original_tooling(self):
        settings = Settings()

        assert settings.runner_label == "self-hosted"
        assert settings.region == "us-east"
        assert settings.ssh_retries == 10
        assert settings.ssh_retry_interval == 30.0
        assert settings.ssh_connect_timeout == 30.0
        assert settings.runner_version == "2.317.0"
        assert settings.wait_for_deletion is True
        assert settings.linode_base_url == "https://api.linode.com/v4"

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("RUNNERFLEET_SSH_RETRIES", "4")
        monkeypatch.setenv("RUNNERFLEET_ORGANIZATION", "acme")

        settings = Settings()

        assert settings.ssh_retries == 4
        assert settings.organization == "acme"

    def test_reads_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("RUNNERFLEET_REPO_NAME=widgets\n")

        assert Settings().repo_name == "widgets"

    def test_csv_fields(self):
        settings = Settings(tags="ci, linux,,", blocked_ports=" 22,8080 ,")

        assert settings.tag_list == ["ci", "linux"]
        assert settings.blocked_port_list == ["22", "8080"]

    def test_explicit_id_wins_over_phrase(self):
        settings = Settings(machine_id=" 1001 ", search_phrase="ci-runner")

        assert settings.selector() == ExplicitId("1001")

    def test_phrase_selector(self):
        assert Settings(search_phrase="ci-runner").selector() == SearchPhrase("ci-runner")

    def test_no_selector(self):
        assert Settings().selector() is None

    def test_custom_runner_label(self):
        assert not Settings().has_custom_runner_label
        assert Settings(runner_label="gpu-runner").has_custom_runner_label

    def test_sensitive_values(self):
        settings = Settings(linode_token="lin", github_token="gh", root_password="pw")

        assert settings.sensitive_values() == ["lin", "gh", "pw"]


class TestActionInputs:
    def test_reads_input_variables(self, monkeypatch):
        monkeypatch.setenv("INPUT_ORGANIZATION", "acme")
        monkeypatch.setenv("INPUT_REPO_NAME", "widgets")
        monkeypatch.setenv("INPUT_BLOCKED_PORTS", "22")

        inputs = ActionInputs()

        assert inputs.organization == "acme"
        assert inputs.repo_name == "widgets"
        assert inputs.blocked_port_list == ["22"]

    def test_empty_inputs_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("INPUT_SSH_RETRIES", "")
        monkeypatch.setenv("INPUT_RUNNER_LABEL", "")

        inputs = ActionInputs()

        assert inputs.ssh_retries == 10
        assert inputs.runner_label == "self-hosted"

    def test_ignores_prefixed_settings(self, monkeypatch):
        monkeypatch.setenv("RUNNERFLEET_ORGANIZATION", "acme")

        assert ActionInputs().organization is None


def test_get_settings_applies_overrides_and_skips_none(monkeypatch):
    monkeypatch.setenv("RUNNERFLEET_SEARCH_PHRASE", "from-env")

    settings = get_settings(machine_id="42", search_phrase=None)

    assert settings.machine_id == "42"
    assert settings.search_phrase == "from-env"


def test_get_settings_from_action_inputs(monkeypatch):
    monkeypatch.setenv("INPUT_IMAGE", "linode/debian12")

    settings = get_settings(from_action_inputs=True)

    assert isinstance(settings, ActionInputs)
    assert settings.image == "linode/debian12"


def test_split_csv_handles_none():
    assert split_csv(None) == []
