"""Tests for monopub.cli."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from monopub.cli import cli


def _all_changed(packages):
    return {name: pkg.version for name, pkg in packages.items()}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestArguments:
    @pytest.mark.parametrize("flag", ["scope", "since", "ignore"])
    def test_filter_flags_rejected(self, runner: CliRunner, workspace: Path, flag: str) -> None:
        result = runner.invoke(
            cli, ["publish", f"--{flag}", "package-1", "--cwd", str(workspace)]
        )
        assert result.exit_code == 1
        assert f"Unknown argument: {flag}" in result.output

    def test_git_head_requires_from_package(self, runner: CliRunner, workspace: Path) -> None:
        result = runner.invoke(
            cli, ["publish", "--git-head", "abc123", "--cwd", str(workspace)]
        )
        assert result.exit_code == 1
        assert "--git-head is only allowed with 'from-package' positional" in result.output

    def test_bad_graph_type(self, runner: CliRunner, workspace: Path) -> None:
        result = runner.invoke(
            cli, ["publish", "--graph-type", "peer", "--cwd", str(workspace)]
        )
        assert result.exit_code == 1
        assert "Invalid --graph-type 'peer'" in result.output

    def test_missing_config(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["publish", "--cwd", str(tmp_path)])
        assert result.exit_code == 1
        assert "No monopub.toml" in result.output


@patch("monopub.pipeline.updates_collector")
@patch("monopub.pipeline.NpmClient")
class TestPublish:
    def test_publishes_everything_changed(
        self,
        mock_npm_client: MagicMock,
        mock_collector: MagicMock,
        runner: CliRunner,
        workspace: Path,
        client,
    ) -> None:
        mock_npm_client.return_value = client
        mock_collector.return_value = _all_changed

        result = runner.invoke(cli, ["publish", "--yes", "--cwd", str(workspace)])

        assert result.exit_code == 0, result.output
        assert "published 4 packages" in result.output
        assert set(client.names("publish")) == {
            "package-1",
            "package-2",
            "package-3",
            "package-4",
        }

    def test_file_settings_apply(
        self,
        mock_npm_client: MagicMock,
        mock_collector: MagicMock,
        runner: CliRunner,
        workspace: Path,
        client,
    ) -> None:
        with (workspace / "monopub.toml").open("a") as f:
            f.write('\n[publish]\ngraph-type = "all"\nconcurrency = 1\n')
        mock_npm_client.return_value = client
        mock_collector.return_value = _all_changed

        result = runner.invoke(cli, ["publish", "-y", "--cwd", str(workspace)])

        assert result.exit_code == 0, result.output
        assert client.names("publish") == ["package-1", "package-4", "package-2", "package-3"]

    def test_flags_override_file(
        self,
        mock_npm_client: MagicMock,
        mock_collector: MagicMock,
        runner: CliRunner,
        workspace: Path,
        client,
    ) -> None:
        with (workspace / "monopub.toml").open("a") as f:
            f.write('\n[publish]\ngraph-type = "all"\nconcurrency = 1\n')
        mock_npm_client.return_value = client
        mock_collector.return_value = _all_changed

        result = runner.invoke(
            cli,
            ["publish", "-y", "--graph-type", "dependencies", "--cwd", str(workspace)],
        )

        assert result.exit_code == 0, result.output
        assert client.names("publish") == ["package-1", "package-3", "package-4", "package-2"]

    def test_failed_package_exits_nonzero(
        self,
        mock_npm_client: MagicMock,
        mock_collector: MagicMock,
        runner: CliRunner,
        workspace: Path,
        client,
    ) -> None:
        client.fail_publish = {"package-4"}
        mock_npm_client.return_value = client
        mock_collector.return_value = _all_changed

        result = runner.invoke(cli, ["publish", "-y", "--cwd", str(workspace)])

        assert result.exit_code == 1
        assert "failed: package-4" in result.output

    def test_nothing_to_publish_exits_zero(
        self,
        mock_npm_client: MagicMock,
        mock_collector: MagicMock,
        runner: CliRunner,
        workspace: Path,
        client,
    ) -> None:
        mock_npm_client.return_value = client
        mock_collector.return_value = lambda packages: {}

        result = runner.invoke(cli, ["publish", "--cwd", str(workspace)])

        assert result.exit_code == 0
        assert "No changed packages to publish" in result.output

    def test_declined_confirmation_exits_zero(
        self,
        mock_npm_client: MagicMock,
        mock_collector: MagicMock,
        runner: CliRunner,
        workspace: Path,
        client,
    ) -> None:
        mock_npm_client.return_value = client
        mock_collector.return_value = _all_changed

        result = runner.invoke(cli, ["publish", "--cwd", str(workspace)], input="n\n")

        assert result.exit_code == 0, result.output
        assert "Are you sure you want to publish these packages?" in result.output
        assert "Publish cancelled" in result.output
        assert client.names("pack") == []

    def test_bump_selects_collector(
        self,
        mock_npm_client: MagicMock,
        mock_collector: MagicMock,
        runner: CliRunner,
        workspace: Path,
        client,
    ) -> None:
        mock_npm_client.return_value = client
        mock_collector.return_value = lambda packages: {}

        runner.invoke(cli, ["publish", "from-git", "--cwd", str(workspace)])

        assert mock_collector.call_args.args[0] == "from-git"
