"""Unit tests for the MindPal setup wizard.

Tests cover the credential, reachability and service-key checks, config
writing, and the CLI entry point. The backend probe is replaced with a fake
coroutine and console output goes to a string buffer.
"""

import io
import json
from unittest.mock import patch

import pytest
import requests
from rich.console import Console

from mindpal.config import load_config
from mindpal.setup import CheckStatus, SetupResult, SetupWizard, main

FULL_ENV = {
    "SUPABASE_URL": "https://abc.supabase.co",
    "SUPABASE_ANON_KEY": "anon-key",
    "GEMINI_API_KEY": "g-key",
    "ELEVENLABS_API_KEY": "e-key",
    "LINGO_API_KEY": "l-key",
}


def statuses(result: SetupResult) -> dict[str, CheckStatus]:
    return {check.name: check.status for check in result.checks}


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / ".mindpal" / "config.json"


@pytest.fixture
def output():
    return io.StringIO()


def make_wizard(config_path, output, env, ping=None):
    pings = []

    async def fake_ping(config):
        pings.append(config.backend.url)
        return 200

    wizard = SetupWizard(
        console=Console(file=output, force_terminal=False, width=120),
        config=load_config(config_path, env=env),
        config_path=config_path,
        ping=ping or fake_ping,
    )
    wizard.pings = pings
    return wizard


class TestHealthyEnvironment:
    def test_all_checks_pass(self, config_path, output):
        wizard = make_wizard(config_path, output, FULL_ENV)

        result = wizard.run()

        assert result.success
        assert set(statuses(result).values()) == {CheckStatus.PASS}
        assert wizard.pings == ["https://abc.supabase.co"]
        assert "Setup complete!" in output.getvalue()

    def test_writes_config_without_secrets(self, config_path, output):
        result = make_wizard(config_path, output, FULL_ENV).run()

        assert result.config_saved
        assert result.config_path == config_path
        saved = json.loads(config_path.read_text())
        assert saved["backend"]["url"] == "https://abc.supabase.co"
        assert "anon_key" not in saved["backend"]
        assert "text_api_key" not in saved.get("services", {})

    def test_second_run_updates_config(self, config_path, output):
        make_wizard(config_path, output, FULL_ENV).run()

        result = make_wizard(config_path, output, FULL_ENV).run()

        config_check = next(c for c in result.checks if c.name == "Configuration")
        assert config_check.message == "Config updated"

    def test_check_only_writes_nothing(self, config_path, output):
        result = make_wizard(config_path, output, FULL_ENV).run(check_only=True)

        assert result.success
        assert not result.config_saved
        assert not config_path.exists()


class TestFailures:
    def test_missing_credentials_skip_probe(self, config_path, output):
        wizard = make_wizard(config_path, output, {})

        result = wizard.run(check_only=True)

        assert not result.success
        checks = statuses(result)
        assert checks["Backend credentials"] == CheckStatus.FAIL
        assert checks["Backend reachable"] == CheckStatus.SKIP
        assert wizard.pings == []
        assert "MINDPAL_SUPABASE_URL" in result.checks[0].message
        assert "Setup incomplete" in output.getvalue()

    def test_placeholder_url(self, config_path, output):
        env = {**FULL_ENV, "SUPABASE_URL": "not a url"}

        result = make_wizard(config_path, output, env).run(check_only=True)

        assert statuses(result)["Backend credentials"] == CheckStatus.FAIL

    def test_unreachable_backend(self, config_path, output):
        async def refused(config):
            raise requests.exceptions.ConnectionError("connection refused")

        result = make_wizard(config_path, output, FULL_ENV, ping=refused).run(check_only=True)

        assert not result.success
        assert statuses(result)["Backend reachable"] == CheckStatus.FAIL

    def test_any_status_counts_as_reachable(self, config_path, output):
        async def unavailable(config):
            return 503

        result = make_wizard(config_path, output, FULL_ENV, ping=unavailable).run(check_only=True)

        reachable = next(c for c in result.checks if c.name == "Backend reachable")
        assert reachable.status == CheckStatus.PASS
        assert reachable.message == "HTTP 503"

    def test_missing_service_keys_only_warn(self, config_path, output):
        env = {"SUPABASE_URL": "https://abc.supabase.co", "SUPABASE_ANON_KEY": "anon-key"}

        result = make_wizard(config_path, output, env).run(check_only=True)

        assert result.success
        checks = statuses(result)
        assert checks["AI chat key"] == CheckStatus.WARN
        assert checks["Speech key"] == CheckStatus.WARN
        assert checks["Translation key"] == CheckStatus.WARN
        assert "GEMINI_API_KEY" in output.getvalue()


class TestMain:
    def test_exit_codes(self):
        with patch("mindpal.setup.run_setup", return_value=SetupResult(success=True)) as run:
            assert main(["--check"]) == 0
        run.assert_called_once_with(check_only=True)

        with patch("mindpal.setup.run_setup", return_value=SetupResult(success=False)):
            assert main([]) == 1
