import pytest

from tinyclaw.core.protocols import Provider
from tinyclaw.errors import BackendError
from tinyclaw.lib.providers import (
    PROVIDER_NAMES,
    PROVIDERS,
    TRUNCATION_MARKER,
    Claude,
    Codex,
    OpenCode,
    get_provider,
    normalize_reply,
)


def test_settings_names_map_to_adapters():
    assert get_provider("anthropic") is Claude
    assert get_provider("openai") is Codex
    assert get_provider("opencode") is OpenCode
    assert get_provider("OpenAI") is Codex


def test_unknown_provider():
    with pytest.raises(BackendError, match="Unknown provider"):
        get_provider("gemini")


def test_unknown_provider_lists_known_names():
    assert PROVIDER_NAMES == ("anthropic", "openai", "opencode")
    with pytest.raises(BackendError, match="expected one of: anthropic, openai, opencode"):
        get_provider("openrouter")


@pytest.mark.parametrize("provider", list(PROVIDERS.values()))
def test_adapters_satisfy_protocol(provider):
    assert isinstance(provider, Provider)


def test_normalize_trims():
    assert normalize_reply("\n  hello  \n") == "hello"
    assert normalize_reply("") == ""


def test_normalize_keeps_reply_at_limit():
    text = "x" * 4000
    assert normalize_reply(text) == text


def test_normalize_truncates_with_marker():
    reply = normalize_reply("y" * 5000)
    assert reply.endswith(TRUNCATION_MARKER)
    assert reply == "y" * 3900 + TRUNCATION_MARKER


def test_truncation_respects_custom_limit():
    reply = normalize_reply("z" * 500, max_length=200)
    assert reply == "z" * 100 + TRUNCATION_MARKER


def test_truncation_never_splits_escape_sequence():
    text = "a" * 97 + "\x1b[31m" + "b" * 300
    reply = normalize_reply(text, max_length=200)
    body = reply[: -len(TRUNCATION_MARKER)]
    assert body == "a" * 97
    assert "\x1b" not in body


def test_truncation_keeps_complete_escape_sequence():
    text = "a" * 90 + "\x1b[0m" + "b" * 300
    reply = normalize_reply(text, max_length=200)
    assert reply.startswith("a" * 90 + "\x1b[0m")
