"""Tests for the pipeseed command line."""
from unittest.mock import patch

import pytest
import requests
from typer.testing import CliRunner

from pipeseed.cli import app
from pipeseed.cli_support import build_orchestrator

runner = CliRunner()


class TestMainHelp:
    """Test main CLI help output."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        output = result.stdout
        assert "Bootstrap CI/CD repositories on GitLab" in output
        for command in ("bootstrap", "setup", "edit", "projects", "report"):
            assert command in output

    def test_bootstrap_help(self):
        result = runner.invoke(app, ["bootstrap", "--help"])
        assert result.exit_code == 0
        assert "--delete-existing" in result.stdout


@pytest.fixture
def cli_env(tmp_path, monkeypatch, config, gitlab, make_git, template_dir):
    """Run the CLI against the in-memory GitLab and local templates."""
    for path in ("devops", "devops/pipeline-template",
                 "devops/pipeline-template/ci", "devops/pipeline-template/cd"):
        gitlab.add_group(path)
    git = make_git({config.ci_template: template_dir, config.cd_template: template_dir})

    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PIPESEED_CONFIG", raising=False)
    monkeypatch.setenv("PIPESEED_GITLAB_URL", config.gitlab_url)
    monkeypatch.setenv("PIPESEED_GITLAB_TOKEN", "test-token")
    monkeypatch.setenv("PIPESEED_CI_TEMPLATE", config.ci_template)
    monkeypatch.setenv("PIPESEED_CD_TEMPLATE", config.cd_template)
    monkeypatch.setenv("PIPESEED_WORKSPACE_DIR", config.workspace_dir)

    def fake_build(settings):
        orchestrator = build_orchestrator(settings, client=gitlab)
        orchestrator.templates.git = git
        orchestrator.publisher.git = git
        return orchestrator

    with patch("pipeseed.cli_bootstrap_commands.build_orchestrator", side_effect=fake_build):
        yield {"gitlab": gitlab, "git": git, "tmp_path": tmp_path}


def _log_args(tmp_path):
    return ["--log-file", str(tmp_path / "pipeseed.log")]


class TestBootstrap:
    """Batch provisioning from a records file."""

    def test_success(self, cli_env):
        tmp_path = cli_env["tmp_path"]
        records = tmp_path / "apps.csv"
        records.write_text("applicationName,teamName\notpapi,spi\n")

        result = runner.invoke(app, ["bootstrap", str(records)] + _log_args(tmp_path))

        assert result.exit_code == 0, result.stdout
        assert "2 done, 0 skipped, 0 failed" in result.stdout
        assert len(cli_env["git"].pushed) == 2

    def test_failed_lane_exits_1(self, cli_env):
        tmp_path = cli_env["tmp_path"]
        cli_env["git"].fail_on.add("push")
        records = tmp_path / "apps.csv"
        records.write_text("application,team\notpapi,spi\n")

        result = runner.invoke(app, ["bootstrap", str(records)] + _log_args(tmp_path))

        assert result.exit_code == 1
        assert "0 done, 0 skipped, 2 failed" in result.stdout

    def test_rerun_skips(self, cli_env):
        tmp_path = cli_env["tmp_path"]
        records = tmp_path / "apps.csv"
        records.write_text("application,team\notpapi,spi\n")

        runner.invoke(app, ["bootstrap", str(records)] + _log_args(tmp_path))
        result = runner.invoke(app, ["bootstrap", str(records)] + _log_args(tmp_path))

        assert result.exit_code == 0
        assert "0 done, 2 skipped, 0 failed" in result.stdout

    def test_malformed_records_exit_2(self, cli_env):
        tmp_path = cli_env["tmp_path"]
        records = tmp_path / "apps.csv"
        records.write_text("application,team,replacements\notpapi,spi,broken\n")

        result = runner.invoke(app, ["bootstrap", str(records)] + _log_args(tmp_path))

        assert result.exit_code == 2
        assert "Error:" in result.stdout
        assert cli_env["git"].commands == []

    def test_missing_token_exit_2(self, cli_env, monkeypatch):
        tmp_path = cli_env["tmp_path"]
        monkeypatch.delenv("PIPESEED_GITLAB_TOKEN")
        monkeypatch.setenv("PIPESEED_GITLAB_TOKEN_FILE", str(tmp_path / "missing-token.txt"))
        records = tmp_path / "apps.csv"
        records.write_text("application,team\notpapi,spi\n")

        result = runner.invoke(app, ["bootstrap", str(records)] + _log_args(tmp_path))

        assert result.exit_code == 2
        assert "No GitLab token configured" in result.stdout

    def test_empty_records(self, cli_env):
        tmp_path = cli_env["tmp_path"]
        records = tmp_path / "apps.yml"
        records.write_text("")

        result = runner.invoke(app, ["bootstrap", str(records)] + _log_args(tmp_path))

        assert result.exit_code == 0
        assert "No records found" in result.stdout


    def test_malformed_namespace_exit_2(self, cli_env):
        tmp_path = cli_env["tmp_path"]
        records = tmp_path / "apps.csv"
        records.write_text("application,team,ci_namespace\notpapi,spi,\nbilling,spi,devops//spi\n")

        result = runner.invoke(app, ["bootstrap", str(records)] + _log_args(tmp_path))

        assert result.exit_code == 2
        assert "Row 3" in result.stdout
        assert cli_env["git"].commands == []
        assert not [c for c in cli_env["gitlab"].calls if c[0] == "create_project"]


class TestSetup:
    """Single application provisioning."""

    def test_extra_replacements(self, cli_env):
        tmp_path = cli_env["tmp_path"]

        result = runner.invoke(
            app,
            ["setup", "otpapi", "spi", "--set", "Static=Dynamic"] + _log_args(tmp_path),
        )

        assert result.exit_code == 0, result.stdout
        pushed = next(iter(cli_env["git"].pushed.values()))
        assert pushed["README.md"] == "Dynamic readme\n"

    def test_invalid_application_name(self, cli_env):
        result = runner.invoke(app, ["setup", "otp api", "spi"] + _log_args(cli_env["tmp_path"]))
        assert result.exit_code == 2

    def test_bad_assignment(self, cli_env):
        result = runner.invoke(app, ["setup", "otpapi", "spi", "--set", "broken"] + _log_args(cli_env["tmp_path"]))
        assert result.exit_code == 2


class TestProjects:
    """Group export command."""

    def test_export(self, tmp_path, monkeypatch, gitlab):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("PIPESEED_CONFIG", raising=False)
        monkeypatch.setenv("PIPESEED_GITLAB_TOKEN", "test-token")
        group = gitlab.add_group("devops")
        gitlab.add_project("ci-otpapi", group.id)
        out = tmp_path / "projects.csv"

        with patch("pipeseed.cli_project_commands.GitLabClient.from_config", return_value=gitlab):
            result = runner.invoke(app, ["projects", "devops", "-o", str(out)])

        assert result.exit_code == 0, result.stdout
        assert "Exported 1 project(s)" in result.stdout
        assert "ci-otpapi" in out.read_text()

    def test_unknown_group(self, tmp_path, monkeypatch, gitlab):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("PIPESEED_CONFIG", raising=False)
        monkeypatch.setenv("PIPESEED_GITLAB_TOKEN", "test-token")

        with patch("pipeseed.cli_project_commands.GitLabClient.from_config", return_value=gitlab):
            result = runner.invoke(app, ["projects", "nope"])

        assert result.exit_code == 1
        assert "Error:" in result.stdout


class TestReport:
    """Jenkins report argument handling."""

    def _args(self, start="2024-01-01", end="2024-03-31"):
        return ["report", "--jenkins-url", "https://jenkins", "-u", "bot", "--start", start, "--end", end]

    def test_missing_token_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, self._args())

        assert result.exit_code == 2
        assert "Token file not found" in result.stdout

    def test_bad_date(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, self._args(start="01/02/2024"))

        assert result.exit_code == 2

    def test_end_before_start(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, self._args(start="2024-03-01", end="2024-02-01"))

        assert result.exit_code == 2


@pytest.fixture
def api_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PIPESEED_CONFIG", raising=False)
    monkeypatch.setenv("PIPESEED_GITLAB_TOKEN", "test-token")
    return tmp_path


class TestEdit:
    """In-place placeholder replacement."""

    def test_replaces_in_remote_project(self, api_env, gitlab):
        group = gitlab.add_group("payments")
        project = gitlab.add_project("ci-billing", group.id, files={
            "Jenkinsfile": b"region = '{{REGION}}'\n",
            "README.md": b"nothing here\n",
        })

        with patch("pipeseed.cli_edit_commands.GitLabClient.from_config", return_value=gitlab):
            result = runner.invoke(app, ["edit", "payments/ci-billing", "--set", "{{REGION}}=eu"])

        assert result.exit_code == 0, result.stdout
        assert "Updated 1 file(s)" in result.stdout
        assert gitlab.files[project.id]["Jenkinsfile"] == b"region = 'eu'\n"

    def test_connection_error_is_reported(self, api_env):
        with patch("pipeseed.cli_edit_commands.RemoteTreeEditor") as editor:
            editor.return_value.substitute_in_place.side_effect = requests.ConnectionError("connection refused")
            result = runner.invoke(app, ["edit", "payments/ci-billing", "--set", "A=B"])

        assert result.exit_code == 1
        assert "Error:" in result.stdout
        assert "connection refused" in result.stdout


class TestProjectsTransport:
    """Network failures during export."""

    def test_connection_error_is_reported(self, api_env):
        with patch("pipeseed.cli_project_commands.collect_projects",
                   side_effect=requests.ConnectionError("connection refused")):
            result = runner.invoke(app, ["projects", "devops"])

        assert result.exit_code == 1
        assert "Error:" in result.stdout
