"""Read-only view over settings.json: agents, teams, legacy models section.

The settings file is owned by the setup wizard; nothing here writes it.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from tinyclaw.core.models import AgentConfig, TeamConfig
from tinyclaw.errors import ConfigError

from . import paths

log = logging.getLogger(__name__)

DEFAULT_AGENT_ID = "default"

# Legacy models-section defaults, checked in auto-detect order.
DEFAULT_PROVIDER_MODELS: dict[str, str] = {
    "openai": "gpt-5.3-codex",
    "opencode": "sonnet",
    "anthropic": "sonnet",
}


@dataclass
class Settings:
    agents: dict[str, AgentConfig] = field(default_factory=dict)
    teams: dict[str, TeamConfig] = field(default_factory=dict)
    workspace: Path = field(default_factory=paths.default_workspace)

    def get_agent(self, agent_id: str | None) -> AgentConfig | None:
        if not agent_id:
            return None
        return self.agents.get(agent_id.lower())

    def get_team(self, team_id: str | None) -> TeamConfig | None:
        if not team_id:
            return None
        return self.teams.get(team_id.lower())

    def default_agent_id(self) -> str | None:
        if DEFAULT_AGENT_ID in self.agents:
            return DEFAULT_AGENT_ID
        return next(iter(self.agents), None)


def detect_provider(models: dict) -> str:
    """Explicit models.provider, else first legacy section present, else anthropic."""
    provider = models.get("provider")
    if provider:
        return provider
    for candidate in DEFAULT_PROVIDER_MODELS:
        if models.get(candidate):
            return candidate
    return "anthropic"


def _default_agent(models: dict, workspace: Path) -> AgentConfig:
    provider = detect_provider(models)
    section = models.get(provider) or {}
    model = section.get("model") or DEFAULT_PROVIDER_MODELS.get(provider, "")
    return AgentConfig(
        agent_id=DEFAULT_AGENT_ID,
        name="Default",
        provider=provider,
        model=model,
        working_directory=str(workspace / DEFAULT_AGENT_ID),
    )


def _working_directory(raw: str | None, agent_id: str, workspace: Path) -> str:
    if not raw:
        return str(workspace / agent_id)
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = workspace / path
    return str(path)


def parse_settings(data: dict) -> Settings:
    if not isinstance(data, dict):
        raise ConfigError(f"Settings must be a JSON object, got {type(data).__name__}")

    workspace_raw = (data.get("workspace") or {}).get("path")
    workspace = Path(workspace_raw).expanduser() if workspace_raw else paths.default_workspace()
    models = data.get("models") or {}

    agents: dict[str, AgentConfig] = {}
    for agent_id, raw in (data.get("agents") or {}).items():
        key = agent_id.lower()
        agents[key] = AgentConfig(
            agent_id=key,
            name=raw.get("name") or agent_id,
            provider=raw.get("provider") or detect_provider(models),
            model=raw.get("model") or "",
            working_directory=_working_directory(raw.get("working_directory"), key, workspace),
        )
    if not agents:
        agents[DEFAULT_AGENT_ID] = _default_agent(models, workspace)

    teams: dict[str, TeamConfig] = {}
    for team_id, raw in (data.get("teams") or {}).items():
        key = team_id.lower()
        members = tuple(member.lower() for member in raw.get("agents") or ())
        leader = (raw.get("leader_agent") or "").lower()
        if leader not in agents:
            log.warning(f"Team '{team_id}' leader '{leader}' is not a configured agent, skipping")
            continue
        teams[key] = TeamConfig(
            team_id=key,
            name=raw.get("name") or team_id,
            agents=members,
            leader_agent=leader,
        )

    return Settings(agents=agents, teams=teams, workspace=workspace)


def load_settings(path: Path | None = None) -> Settings:
    """Load settings.json. A missing file yields the synthesized default agent."""
    path = path or paths.settings_file()
    if not path.exists():
        return parse_settings({})
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    return parse_settings(data)
