"""Tests for the ecr-webhook CLI."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from ecr_pullthrough_webhook import __version__, cli


@pytest.fixture()
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    # Wide console so rich does not wrap image names in tables.
    monkeypatch.setattr(cli, "console", Console(width=250))
    return CliRunner()


class TestVersion:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli.main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestRewriteCommand:
    def test_prints_decisions(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli.main,
            [
                "rewrite",
                "nginx",
                "quay.io/org/repo:tag",
                "--account-id",
                "12345",
                "--region",
                "us-west-2",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "12345.dkr.ecr.us-west-2.amazonaws.com/docker.io/library/nginx" in result.output
        assert "quay.io/org/repo:tag" in result.output

    def test_registries_from_env(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ECR_AWS_ACCOUNT_ID", "12345")
        monkeypatch.setenv("ECR_AWS_REGION", "us-west-2")
        monkeypatch.setenv("ECR_REGISTRIES", "ghcr.io")
        result = runner.invoke(cli.main, ["rewrite", "ghcr.io/o/i:1"])
        assert result.exit_code == 0, result.output
        assert "12345.dkr.ecr.us-west-2.amazonaws.com/ghcr.io/o/i:1" in result.output

    def test_missing_identity_exits_1(self, runner: CliRunner) -> None:
        result = runner.invoke(cli.main, ["rewrite", "nginx"])
        assert result.exit_code == 1
        assert "ECR_AWS_ACCOUNT_ID" in result.output


class TestServeCommand:
    @patch("ecr_pullthrough_webhook.cli.run_server")
    def test_flags_reach_settings(self, mock_serve, runner: CliRunner) -> None:
        result = runner.invoke(
            cli.main,
            [
                "serve",
                "--account-id",
                "12345",
                "--region",
                "eu-west-1",
                "--registries",
                "ghcr.io, docker.io",
                "--port",
                "9443",
            ],
        )
        assert result.exit_code == 0, result.output
        settings = mock_serve.call_args[0][0]
        assert settings.cache_hostname == "12345.dkr.ecr.eu-west-1.amazonaws.com/"
        assert settings.registries == ["ghcr.io/", "docker.io/"]
        assert settings.port == 9443

    @patch("ecr_pullthrough_webhook.cli.run_server")
    def test_missing_region_does_not_serve(self, mock_serve, runner: CliRunner) -> None:
        result = runner.invoke(cli.main, ["serve", "--account-id", "12345"])
        assert result.exit_code == 1
        mock_serve.assert_not_called()

    @patch("ecr_pullthrough_webhook.cli.run_server")
    def test_bad_port_env_exits_1(
        self, mock_serve, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("WEBHOOK_PORT", "https")
        result = runner.invoke(cli.main, ["serve", "--account-id", "12345", "--region", "us-west-2"])
        assert result.exit_code == 1
        assert "WEBHOOK_PORT" in result.output
        mock_serve.assert_not_called()
