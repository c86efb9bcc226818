"""
Typed events produced from DayZ server log lines.

Every event carries the source line and a best-effort timestamp. Events are
immutable; the classifier (and the whitelist differ for whitelist changes)
are the only places that build them.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional


class EventType(Enum):
    """Kinds of events the watcher can emit."""
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    KILL = "kill"
    DEATH = "death"
    CHAT = "chat"
    ADMIN = "admin"
    POSITION = "position"
    PLAYER_COUNT = "player_count"
    PLAYER_LIST_HEADER = "player_list_header"
    WHITELIST_UPDATE = "whitelist_update"


@dataclass(frozen=True)
class LogEvent:
    """Fields shared by every event."""
    raw_line: str
    timestamp: datetime

    event_type: ClassVar[EventType]

    def to_dict(self) -> dict:
        """JSON-ready rendering (used for dry-run output)."""
        data = asdict(self)
        data["type"] = self.event_type.value
        data["timestamp"] = self.timestamp.isoformat()
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data


@dataclass(frozen=True)
class ConnectEvent(LogEvent):
    """Player joined the server."""
    event_type: ClassVar[EventType] = EventType.CONNECT

    player: Optional[str] = None
    steam_id: Optional[str] = None
    guid: Optional[str] = None
    ip: Optional[str] = None  # "a.b.c.d:port"
    source: Optional[str] = None  # e.g. "BattlEye"


@dataclass(frozen=True)
class DisconnectEvent(LogEvent):
    """Player left the server."""
    event_type: ClassVar[EventType] = EventType.DISCONNECT

    player: Optional[str] = None
    steam_id: Optional[str] = None
    guid: Optional[str] = None
    ip: Optional[str] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class KillEvent(LogEvent):
    """One player killed another."""
    event_type: ClassVar[EventType] = EventType.KILL

    killer: Optional[str] = None
    victim: Optional[str] = None
    weapon: Optional[str] = None
    location: Optional[str] = None  # place name or "x, y[, z]"
    distance: Optional[float] = None  # meters
    hit_zone: Optional[str] = None
    killer_steam_id: Optional[str] = None
    victim_steam_id: Optional[str] = None


@dataclass(frozen=True)
class DeathEvent(LogEvent):
    """Player died without a second actor (environment, suicide, ...)."""
    event_type: ClassVar[EventType] = EventType.DEATH

    player: Optional[str] = None
    location: Optional[str] = None
    cause: Optional[str] = None
    steam_id: Optional[str] = None


@dataclass(frozen=True)
class ChatEvent(LogEvent):
    """Player sent a chat message."""
    event_type: ClassVar[EventType] = EventType.CHAT

    channel: Optional[str] = None  # Direct, Vehicle, Global, Side, Group, Admin or verbatim
    player: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class AdminEvent(LogEvent):
    """Kick, ban, restart or other administrative action."""
    event_type: ClassVar[EventType] = EventType.ADMIN

    action: Optional[str] = None
    target: Optional[str] = None
    reason: Optional[str] = None
    actor: Optional[str] = None
    source: Optional[str] = None
    steam_id: Optional[str] = None
    ip: Optional[str] = None


@dataclass(frozen=True)
class PositionEvent(LogEvent):
    """Player position report."""
    event_type: ClassVar[EventType] = EventType.POSITION

    player: Optional[str] = None
    coords: Optional[str] = None  # "x, y" or "x, y, z"


@dataclass(frozen=True)
class PlayerCountEvent(LogEvent):
    """Number of players online."""
    event_type: ClassVar[EventType] = EventType.PLAYER_COUNT

    count: int = 0


@dataclass(frozen=True)
class PlayerListHeaderEvent(LogEvent):
    """Header of an admin player list snapshot."""
    event_type: ClassVar[EventType] = EventType.PLAYER_LIST_HEADER

    snapshot: Optional[str] = None  # timestamp text as printed by the server
    part: int = 1


@dataclass(frozen=True)
class WhitelistUpdateEvent(LogEvent):
    """Membership of a whitelist-style file changed."""
    event_type: ClassVar[EventType] = EventType.WHITELIST_UPDATE

    file: Optional[str] = None
    added: tuple[str, ...] = field(default_factory=tuple)
    removed: tuple[str, ...] = field(default_factory=tuple)
    total: int = 0
