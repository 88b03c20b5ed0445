import json
import subprocess

import pytest

from tinyclaw.core.models import InboundMessage
from tinyclaw.lib import config
from tinyclaw.lib.settings import parse_settings
from tinyclaw.lib.signals import ResetSignal
from tinyclaw.os.queue.files import QueueDirs


@pytest.fixture
def tinyclaw_home(monkeypatch, tmp_path):
    """Isolated TINYCLAW_HOME per test.

    Provides:
    - Temporary home directory (queue, logs, settings live under it)
    - Fresh config cache (setup + teardown reset)
    """
    home = tmp_path / ".tinyclaw"
    home.mkdir()
    monkeypatch.setenv("TINYCLAW_HOME", str(home))
    config.clear_cache()

    yield home

    config.clear_cache()


@pytest.fixture
def settings_data(tmp_path):
    workspace = tmp_path / "workspace"
    return {
        "workspace": {"path": str(workspace)},
        "agents": {
            "coder": {"name": "Coder", "provider": "anthropic", "model": "sonnet"},
            "lead": {"name": "Lead", "provider": "anthropic", "model": "opus"},
            "researcher": {"name": "Researcher", "provider": "openai", "model": "gpt-5.3-codex"},
            "reviewer": {"name": "Reviewer", "provider": "opencode", "model": "sonnet"},
        },
        "teams": {
            "dev": {
                "name": "Dev Team",
                "agents": ["lead", "researcher", "reviewer"],
                "leader_agent": "lead",
            }
        },
    }


@pytest.fixture
def settings(settings_data):
    return parse_settings(settings_data)


@pytest.fixture
def settings_file(tinyclaw_home, settings_data):
    path = tinyclaw_home / "settings.json"
    path.write_text(json.dumps(settings_data, indent=2))
    return path


@pytest.fixture
def queue(tinyclaw_home):
    dirs = QueueDirs()
    dirs.ensure()
    return dirs


@pytest.fixture
def reset_signal(tmp_path):
    return ResetSignal(tmp_path / "flags" / "reset_flag")


@pytest.fixture
def make_inbound():
    """Factory for InboundMessage with sane defaults."""

    def _make(message: str = "hello", **overrides) -> InboundMessage:
        fields = {
            "channel": "telegram",
            "sender": "alice",
            "message": message,
            "timestamp": 1700000000000,
            "message_id": "m1",
        }
        fields.update(overrides)
        return InboundMessage(**fields)

    return _make


@pytest.fixture
def completed():
    """Factory for the CompletedProcess a patched subprocess.run returns."""

    def _completed(stdout: str = "", returncode: int = 0, stderr: str = ""):
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)

    return _completed
