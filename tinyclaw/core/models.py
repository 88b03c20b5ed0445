from dataclasses import dataclass, field
from enum import Enum

from tinyclaw.errors import InvalidMessage

INBOUND_REQUIRED = ("channel", "sender", "message", "timestamp", "messageId")
OPTIONAL_STRINGS = ("senderId", "agent", "conversationId", "fromAgent")


class ConversationState(str, Enum):
    DISPATCHED = "dispatched"
    AWAITING_REPLIES = "awaiting_replies"
    FINALIZING = "finalizing"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class InboundMessage:
    """One unit of queue work, written by a channel adapter or by delegation."""

    channel: str
    sender: str
    message: str
    timestamp: int
    message_id: str
    sender_id: str | None = None
    agent: str | None = None
    files: tuple[str, ...] = ()
    conversation_id: str | None = None
    from_agent: str | None = None

    @property
    def is_delegated(self) -> bool:
        return self.conversation_id is not None

    @classmethod
    def from_wire(cls, data: dict) -> "InboundMessage":
        if not isinstance(data, dict):
            raise InvalidMessage(f"Expected JSON object, got {type(data).__name__}")
        missing = [key for key in INBOUND_REQUIRED if key not in data]
        if missing:
            raise InvalidMessage(f"Missing field(s): {', '.join(missing)}")
        if not isinstance(data["message"], str):
            raise InvalidMessage("Field 'message' must be a string")
        for key in OPTIONAL_STRINGS:
            if data.get(key) is not None and not isinstance(data[key], str):
                raise InvalidMessage(f"Field '{key}' must be a string")
        files = data.get("files")
        if files is not None and not (
            isinstance(files, list) and all(isinstance(path, str) for path in files)
        ):
            raise InvalidMessage("Field 'files' must be a list of strings")
        try:
            timestamp = int(data["timestamp"])
        except (TypeError, ValueError) as e:
            raise InvalidMessage(f"Invalid timestamp: {data['timestamp']!r}") from e

        return cls(
            channel=str(data["channel"]),
            sender=str(data["sender"]),
            message=data["message"],
            timestamp=timestamp,
            message_id=str(data["messageId"]),
            sender_id=data.get("senderId"),
            agent=data.get("agent") or None,
            files=tuple(files or ()),
            conversation_id=data.get("conversationId"),
            from_agent=data.get("fromAgent"),
        )

    def to_wire(self) -> dict:
        data = {
            "channel": self.channel,
            "sender": self.sender,
            "message": self.message,
            "timestamp": self.timestamp,
            "messageId": self.message_id,
        }
        if self.sender_id:
            data["senderId"] = self.sender_id
        if self.agent:
            data["agent"] = self.agent
        if self.files:
            data["files"] = list(self.files)
        if self.conversation_id:
            data["conversationId"] = self.conversation_id
        if self.from_agent:
            data["fromAgent"] = self.from_agent
        return data


@dataclass(frozen=True)
class OutboundMessage:
    channel: str
    sender: str
    message: str
    original_message: str
    timestamp: int
    message_id: str
    agent: str | None = None
    files: tuple[str, ...] = ()

    def to_wire(self) -> dict:
        data = {
            "channel": self.channel,
            "sender": self.sender,
            "message": self.message,
            "originalMessage": self.original_message,
            "timestamp": self.timestamp,
            "messageId": self.message_id,
        }
        if self.agent:
            data["agent"] = self.agent
        if self.files:
            data["files"] = list(self.files)
        return data


@dataclass(frozen=True)
class AgentConfig:
    agent_id: str
    name: str
    provider: str
    model: str
    working_directory: str


@dataclass(frozen=True)
class TeamConfig:
    team_id: str
    name: str
    agents: tuple[str, ...]
    leader_agent: str


@dataclass(frozen=True)
class TeamContext:
    team_id: str
    team: TeamConfig


@dataclass(frozen=True)
class ChainStep:
    agent_id: str
    response: str


@dataclass
class Conversation:
    """One top-level inbound message and the delegation tree it spawns.

    Owned exclusively by the queue loop; never persisted.
    """

    id: str
    channel: str
    sender: str
    original_message: str
    message_id: str
    root_agent: str
    start_time: float
    max_messages: int
    sender_id: str | None = None
    team_context: TeamContext | None = None
    state: ConversationState = ConversationState.DISPATCHED
    pending: int = 0
    total_messages: int = 1
    root_reply: str | None = None
    responses: list[ChainStep] = field(default_factory=list)
    files: set[str] = field(default_factory=set)
    outgoing_mentions: dict[str, int] = field(default_factory=dict)
    # delegated message id -> (from_agent, to_agent)
    open_delegations: dict[str, tuple[str, str]] = field(default_factory=dict)
    answered: set[str] = field(default_factory=set)

    @property
    def ready(self) -> bool:
        return self.pending == 0 and self.root_reply is not None
