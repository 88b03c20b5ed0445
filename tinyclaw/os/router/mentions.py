"""@mention routing: resolve @identifier tokens to agents or team leaders."""

import logging
import re
from dataclasses import dataclass

from tinyclaw.core.models import InboundMessage, TeamContext
from tinyclaw.lib.settings import Settings

log = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"(?<!\w)@([A-Za-z0-9_-]+)")
LEADING_MENTION = re.compile(r"^\s*@([A-Za-z0-9_-]+)[ \t]*\n?")


@dataclass(frozen=True)
class MentionTarget:
    """One resolved mention occurrence."""

    mention: str
    agent_id: str
    task: str
    team_id: str | None = None


@dataclass(frozen=True)
class RootTarget:
    agent_id: str
    text: str
    team_context: TeamContext | None = None


def extract_mention_task(content: str, start: int) -> str:
    """Text following a mention up to the next mention token."""
    following = MENTION_PATTERN.search(content, start)
    end = following.start() if following else len(content)
    return content[start:end].strip()


class MentionRouter:
    def __init__(self, settings: Settings):
        self.settings = settings

    def resolve(self, identifier: str) -> tuple[str, str | None] | None:
        """Agent ids first, then team ids (routed to the leader).

        Returns (agent_id, team_id) or None when the name is just text.
        """
        agent = self.settings.get_agent(identifier)
        if agent:
            return agent.agent_id, None
        team = self.settings.get_team(identifier)
        if team:
            return team.leader_agent, team.team_id
        return None

    def route(self, content: str) -> list[MentionTarget]:
        """Resolve every mention occurrence in content; unknown names are skipped."""
        targets = []
        for match in MENTION_PATTERN.finditer(content):
            resolved = self.resolve(match.group(1))
            if resolved is None:
                continue
            agent_id, team_id = resolved
            targets.append(
                MentionTarget(
                    mention=match.group(1),
                    agent_id=agent_id,
                    task=extract_mention_task(content, match.end()),
                    team_id=team_id,
                )
            )
        return targets

    def resolve_root(self, message: InboundMessage) -> RootTarget | None:
        """Pick the agent that answers a top-level inbound message.

        Order: explicit `agent` field, a leading @mention (stripped from the
        text), then the default agent.
        """
        if message.agent:
            target = self._target(message.agent, message.message)
            if target:
                return target
            log.warning(f"Pre-routed agent '{message.agent}' is not configured, ignoring")

        match = LEADING_MENTION.match(message.message)
        if match:
            body = message.message[match.end() :].strip() or message.message.strip()
            target = self._target(match.group(1), body)
            if target:
                return target

        default = self.settings.default_agent_id()
        if default is None:
            return None
        return RootTarget(agent_id=default, text=message.message)

    def _target(self, identifier: str, text: str) -> RootTarget | None:
        agent = self.settings.get_agent(identifier)
        if agent:
            return RootTarget(agent_id=agent.agent_id, text=text)
        team = self.settings.get_team(identifier)
        if team:
            return RootTarget(
                agent_id=team.leader_agent,
                text=text,
                team_context=TeamContext(team_id=team.team_id, team=team),
            )
        return None
