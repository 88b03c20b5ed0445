import json
from unittest.mock import patch

from typer.testing import CliRunner

from tinyclaw.cli import app
from tinyclaw.lib import paths

runner = CliRunner()


def test_no_args_shows_help(tinyclaw_home):
    result = runner.invoke(app)
    assert "send" in result.stdout


def test_send_queues_message(tinyclaw_home):
    result = runner.invoke(app, ["send", "@coder fix bug", "--channel", "discord", "-s", "bob"])

    assert result.exit_code == 0
    assert "✓ Queued discord_" in result.stdout
    (path,) = paths.queue_incoming().glob("*.json")
    data = json.loads(path.read_text())
    assert data["channel"] == "discord"
    assert data["sender"] == "bob"
    assert data["message"] == "@coder fix bug"
    assert "agent" not in data


def test_send_with_agent(tinyclaw_home):
    runner.invoke(app, ["send", "hello", "--agent", "researcher"])
    (path,) = paths.queue_incoming().glob("*.json")
    assert json.loads(path.read_text())["agent"] == "researcher"


def test_reset_sets_flag(tinyclaw_home):
    result = runner.invoke(app, ["reset"])

    assert result.exit_code == 0
    assert "✓ Reset flag set" in result.stdout
    assert paths.reset_flag().exists()


def test_status_json(tinyclaw_home):
    runner.invoke(app, ["send", "one"])
    runner.invoke(app, ["reset"])

    result = runner.invoke(app, ["status", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["incoming"] == 1
    assert data["outgoing"] == 0
    assert data["reset_pending"] is True
    assert data["home"] == str(tinyclaw_home)


def test_status_text(tinyclaw_home):
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert f"Home: {tinyclaw_home}" in result.stdout


def test_agents_json(settings_file):
    result = runner.invoke(app, ["agents", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert [agent["agent_id"] for agent in data["agents"]] == ["coder", "lead", "researcher", "reviewer"]
    (team,) = data["teams"]
    assert team["team_id"] == "dev"
    assert team["leader_agent"] == "lead"


def test_agents_text_defaults_without_settings(tinyclaw_home):
    result = runner.invoke(app, ["agents"])
    assert result.exit_code == 0
    assert "@default" in result.stdout


def test_agents_invalid_settings_exit_code(tinyclaw_home):
    (tinyclaw_home / "settings.json").write_text("{broken")

    result = runner.invoke(app, ["agents"])

    assert result.exit_code == 1
    assert "Config error: Invalid JSON" in result.output


def test_run_once_processes_queue(settings_file, completed):
    runner.invoke(app, ["send", "@coder fix bug"])

    with (
        patch("tinyclaw.cli.setup_logging"),
        patch("tinyclaw.lib.providers.base.subprocess.run", return_value=completed("done")) as mock_run,
    ):
        result = runner.invoke(app, ["run", "--once"])

    assert result.exit_code == 0
    assert "Processed 1 message(s)" in result.stdout
    mock_run.assert_called_once()
    (path,) = paths.queue_outgoing().glob("*.json")
    assert json.loads(path.read_text())["message"] == "done"


def test_run_once_reports_bad_config(tinyclaw_home):
    (tinyclaw_home / "config.yaml").write_text("poll_interval: [unclosed")

    result = runner.invoke(app, ["run", "--once"])

    assert result.exit_code == 1
    assert "Config error: Invalid YAML" in result.output
