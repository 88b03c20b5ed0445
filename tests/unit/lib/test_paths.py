from pathlib import Path

from tinyclaw.lib import paths


def test_home_respects_env_var(monkeypatch):
    """TINYCLAW_HOME overrides every other location."""
    monkeypatch.setenv("TINYCLAW_HOME", "/custom/tinyclaw")
    assert paths.home() == Path("/custom/tinyclaw")


def test_home_expands_user(monkeypatch):
    monkeypatch.setenv("TINYCLAW_HOME", "~/alt-claw")
    assert paths.home() == Path.home() / "alt-claw"


def test_home_prefers_local_dir_with_settings(monkeypatch, tmp_path):
    monkeypatch.delenv("TINYCLAW_HOME", raising=False)
    local = tmp_path / ".tinyclaw"
    local.mkdir()
    (local / "settings.json").write_text("{}")
    monkeypatch.chdir(tmp_path)

    assert paths.home() == local


def test_home_falls_back_to_user_home(monkeypatch, tmp_path):
    monkeypatch.delenv("TINYCLAW_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "user"))
    monkeypatch.chdir(tmp_path)

    assert paths.home() == tmp_path / "user" / ".tinyclaw"


def test_queue_layout(tinyclaw_home):
    assert paths.queue_incoming() == tinyclaw_home / "queue" / "incoming"
    assert paths.queue_processing() == tinyclaw_home / "queue" / "processing"
    assert paths.queue_outgoing() == tinyclaw_home / "queue" / "outgoing"
    assert paths.queue_failed() == tinyclaw_home / "queue" / "failed"
    assert paths.log_file() == tinyclaw_home / "logs" / "queue.log"
    assert paths.reset_flag() == tinyclaw_home / "reset_flag"
