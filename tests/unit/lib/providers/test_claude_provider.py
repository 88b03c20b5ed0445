import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from tinyclaw.core.models import AgentConfig
from tinyclaw.errors import BackendError
from tinyclaw.lib.providers import Claude


@pytest.fixture
def agent(tmp_path):
    return AgentConfig(
        agent_id="coder",
        name="Coder",
        provider="anthropic",
        model="sonnet",
        working_directory=str(tmp_path / "coder"),
    )


def test_resolve_model_aliases():
    assert Claude.resolve_model("sonnet") == "claude-sonnet-4-5"
    assert Claude.resolve_model("opus") == "claude-opus-4-6"


def test_unknown_model_passes_through():
    assert Claude.resolve_model("claude-3-7-custom") == "claude-3-7-custom"
    assert Claude.resolve_model("") == ""


def test_build_args_resume():
    args = Claude.build_args("fix bug", "claude-sonnet-4-5", resume=True)
    assert args == [
        "claude",
        "--dangerously-skip-permissions",
        "--model",
        "claude-sonnet-4-5",
        "-c",
        "-p",
        "fix bug",
    ]


def test_build_args_fresh_without_model():
    args = Claude.build_args("hi", "", resume=False)
    assert "-c" not in args
    assert "--model" not in args
    assert args[-2:] == ["-p", "hi"]


@patch("tinyclaw.lib.providers.base.subprocess.run")
def test_invoke_continues_conversation(mock_run, agent, reset_signal, completed):
    mock_run.return_value = completed("  done, fixed it \n")

    reply = Claude.invoke(agent, "fix bug", reset=reset_signal, timeout=30)

    assert reply == "done, fixed it"
    args = mock_run.call_args[0][0]
    assert args[:2] == ["claude", "--dangerously-skip-permissions"]
    assert "-c" in args
    assert "claude-sonnet-4-5" in args
    assert mock_run.call_args.kwargs["cwd"] == agent.working_directory
    assert mock_run.call_args.kwargs["timeout"] == 30


@patch("tinyclaw.lib.providers.base.subprocess.run")
def test_invoke_consumes_reset(mock_run, agent, reset_signal, completed):
    """Reset drops -c for exactly one invocation."""
    mock_run.return_value = completed("ok")
    reset_signal.request()

    Claude.invoke(agent, "first", reset=reset_signal)
    Claude.invoke(agent, "second", reset=reset_signal)

    first_args = mock_run.call_args_list[0][0][0]
    second_args = mock_run.call_args_list[1][0][0]
    assert "-c" not in first_args
    assert "-c" in second_args
    assert not reset_signal.is_set()


@patch("tinyclaw.lib.providers.base.subprocess.run")
def test_reset_consumed_even_when_backend_fails(mock_run, agent, reset_signal, completed):
    mock_run.return_value = completed("", returncode=1, stderr="boom")
    reset_signal.request()

    with pytest.raises(BackendError, match="boom"):
        Claude.invoke(agent, "hi", reset=reset_signal)

    assert not reset_signal.is_set()


@patch("tinyclaw.lib.providers.base.subprocess.run")
def test_nonzero_exit_without_stderr(mock_run, agent, reset_signal, completed):
    mock_run.return_value = completed("", returncode=2)
    with pytest.raises(BackendError, match="exited with code 2"):
        Claude.invoke(agent, "hi", reset=reset_signal)


@patch("tinyclaw.lib.providers.base.subprocess.run")
def test_timeout_raises_backend_error(mock_run, agent, reset_signal):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="claude", timeout=5)
    with pytest.raises(BackendError, match="timed out"):
        Claude.invoke(agent, "hi", reset=reset_signal, timeout=5)


@patch("tinyclaw.lib.providers.base.subprocess.run")
def test_missing_binary_raises_backend_error(mock_run, agent, reset_signal):
    mock_run.side_effect = FileNotFoundError("claude")
    with pytest.raises(BackendError, match="failed to start"):
        Claude.invoke(agent, "hi", reset=reset_signal)


@patch("tinyclaw.lib.providers.base.subprocess.run")
def test_working_directory_created(mock_run, agent, reset_signal, completed):
    mock_run.return_value = completed("ok")
    Claude.invoke(agent, "hi", reset=reset_signal)
    assert Path(agent.working_directory).is_dir()
