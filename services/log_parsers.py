"""
Line classifier for DayZ server logs.

Turns one raw log line into at most one typed event. Each event family has
its own matcher function; MATCHERS lists them in priority order and the first
one that recognizes the line wins, so the specific formats (kills, positions)
are tried before the loose ones (chat, admin).

Log formats vary by server and version, so every pattern here is best-effort.
"""

import logging
import re
from datetime import datetime
from typing import Callable, Optional

from services.log_events import (
    AdminEvent,
    ChatEvent,
    ConnectEvent,
    DeathEvent,
    DisconnectEvent,
    KillEvent,
    LogEvent,
    PlayerCountEvent,
    PlayerListHeaderEvent,
    PositionEvent,
)

logger = logging.getLogger(__name__)

Matcher = Callable[[str, datetime], Optional[LogEvent]]

# ===========================================
# SHARED FRAGMENTS
# ===========================================

_NUM = r"-?\d+(?:\.\d+)?"

# Trailing annotations after a name: (id=...), (DEAD), (1.2.3.4:2304)
_NAME_TAIL = r"(?:\s*\([^)]*\))*"

# Where a free-text name stops inside a kill line
_NAME_STOP = (
    r"(?=\s+(?:with|using|weapon|from|near|at|in|by|pos|and|for)\b"
    r"|\s*[(\[<,;|]|\.?\s*$)"
)

# Leading "HH:MM:SS |" or full date-time column
_LINE_PREFIX = re.compile(
    r"^\s*\[?(?:\d{4}-\d{2}-\d{2}[ T])?\d{2}:\d{2}:\d{2}(?:[.,]\d+)?\]?\s*(?:\|\s*)?"
)

_DATETIME_RE = re.compile(r"(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2}:\d{2})")
_TIME_RE = re.compile(r"\b(\d{2}):(\d{2}):(\d{2})\b")

_LEADING_PLAYER_KEYWORD = re.compile(r"^player\s+(?=['\"])", re.IGNORECASE)

_NAME_NOISE = (
    re.compile(r"\(\s*(?:DEAD|ALIVE)\s*\)", re.IGNORECASE),
    re.compile(r"\(id=[^)]*\)", re.IGNORECASE),
    re.compile(r"\bcharID=\d+\b", re.IGNORECASE),
    re.compile(r"\bID=\d+\b", re.IGNORECASE),
    re.compile(r"\(dpnid=[^)]*\)", re.IGNORECASE),
    re.compile(r"\bSteamID\s*[=:]\s*\d+", re.IGNORECASE),
    re.compile(r"\bidentity:[^,]+", re.IGNORECASE),
    re.compile(r"\(\s*pos\s*=\s*<[^>]*>\s*\)", re.IGNORECASE),
    re.compile(r"\bpos\s*=\s*<[^>]*>", re.IGNORECASE),
    re.compile(
        r"\s+(?:has|was)\s+(?:been\s+)?(?:connected|disconnected|kicked|banned).*",
        re.IGNORECASE
    ),
    re.compile(r"\(\s*\)"),
)

_STEAM_ID_FIELD_RE = re.compile(r"\b(?:steamid|steam(?:64)?)\s*[:=]?\s*(\d{17})(?!\d)", re.IGNORECASE)
_STEAM_ID_PAREN_RE = re.compile(r"\((\d{17})\)")
_STEAM_ID_RE = re.compile(r"(?<!\d)(\d{17})(?!\d)")

_IP_PORT_RE = re.compile(r"(?<![\d.])(\d{1,3}(?:\.\d{1,3}){3}):(\d{2,5})\b")
_GUID_RE = re.compile(r"\bGUID\s*[:=]?\s*([A-Fa-f0-9]{8,})\b")

_PLACE_STOP = r"(?:with|using|weapon|from|by|distance|dist|hit|pos|headshot)\b"
_NAMED_PLACE_RE = re.compile(
    r"\b(?:near|at)\s+(?P<place>[A-Za-z][\w\-]*(?:\s+(?!" + _PLACE_STOP + r")[A-Za-z0-9][\w\-]*)*)",
    re.IGNORECASE
)
_POS_FIELD_RE = re.compile(r"pos\s*=\s*<\s*([^>]+?)\s*>", re.IGNORECASE)
_AT_COORDS_RE = re.compile(
    r"\bat\s*(" + _NUM + r")\s*,\s*(" + _NUM + r")(?:\s*,\s*(" + _NUM + r"))?",
    re.IGNORECASE
)

_WEAPON_STOP = r"(?:near|at|from|in|on|by|distance|dist|hit|pos|into|for|headshot)\b"
_WEAPON_RE = re.compile(
    r"\b(?:with|weapon)[\s:=]+(?:weapon[\s:=]+)?(?:(?:an?|the)\s+)?"
    r"(?P<weapon>[\w\-.]+(?:\s+(?!" + _WEAPON_STOP + r")[\w\-.]+)*)",
    re.IGNORECASE
)

_METERS = r"\s*(?:m|meters|metres)\b"
_DISTANCE_RES = (
    re.compile(r"\b(?:distance|dist)\s*[:=]?\s*(\d{1,5}(?:\.\d+)?)" + _METERS, re.IGNORECASE),
    re.compile(r"\((\d{1,5}(?:\.\d+)?)\s*m\)", re.IGNORECASE),
    re.compile(r"\bfrom\s+(\d{1,5}(?:\.\d+)?)" + _METERS, re.IGNORECASE),
)

_HIT_ZONE_RE = re.compile(r"\bhit\s*(?:zone|part)?\s*[:=]?\s*(?!by\b)([A-Za-z]+)", re.IGNORECASE)
_HEADSHOT_RE = re.compile(r"\bheadshot\b", re.IGNORECASE)

_ACTOR_VALUE = (
    r"['\"]?(?P<actor>[^'\";,()\[\]]+?)['\"]?"
    r"(?=\s*(?:[;,()\[]|\breason\b|\bfor\b|$))"
)
_ADMIN_ACTOR_RES = (
    re.compile(r"\[(?:Admin|GM)\]\s*(?P<actor>[^:\]]+?)\s*:", re.IGNORECASE),
    re.compile(r"\bby\s+admin\s+" + _ACTOR_VALUE, re.IGNORECASE),
    re.compile(r"\badmin\s*[:=]\s*" + _ACTOR_VALUE, re.IGNORECASE),
    re.compile(r"\bissued\s+by\s+" + _ACTOR_VALUE, re.IGNORECASE),
)


# ===========================================
# HELPERS
# ===========================================

def _clean(value) -> Optional[str]:
    """Trim whitespace and one layer of surrounding double quotes."""
    if value is None:
        return None
    text = str(value).strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    text = text.strip()
    return text or None


def _strip_prefix(line: str) -> str:
    return _LINE_PREFIX.sub("", line, count=1)


def sanitize_player(name) -> Optional[str]:
    """
    Reduce a captured name field to the bare player name.

    Strips quotes, (DEAD)/(ALIVE) markers, id/session annotations, SteamID
    and pos=<...> fragments, and any trailing "has connected"-style text.
    Returns None if nothing is left.
    """
    value = _clean(name)
    if not value:
        return None

    value = _LEADING_PLAYER_KEYWORD.sub("", value)
    value = value.strip("'\"")
    for pattern in _NAME_NOISE:
        value = pattern.sub("", value)

    value = re.sub(r"\s+", " ", value)
    value = re.sub(r"^[-–—\s]+", "", value)
    value = value.strip().strip("'\"").strip()
    return value or None


def parse_timestamp(line: str, now: datetime) -> datetime:
    """
    Best-effort timestamp for a line.

    A full "YYYY-MM-DD HH:MM:SS" (or "T" separated) wins; a bare "HH:MM:SS"
    is placed on today's date, which can land on the wrong day for lines
    written just before midnight; otherwise `now`.
    """
    match = _DATETIME_RE.search(line)
    if match:
        try:
            return datetime.strptime(f"{match.group(1)} {match.group(2)}", "%Y-%m-%d %H:%M:%S")
        except ValueError:
            pass

    match = _TIME_RE.search(line)
    if match:
        hours, minutes, seconds = (int(part) for part in match.groups())
        try:
            return now.replace(hour=hours, minute=minutes, second=seconds, microsecond=0)
        except ValueError:
            pass

    return now


def parse_location(line: str) -> Optional[str]:
    """Place name ("near Berezino"), pos=<x, y, z> or "at x, y[, z]"."""
    named = _NAMED_PLACE_RE.search(line)
    if named and len(named.group("place")) >= 3:
        return _clean(named.group("place"))

    pos = _POS_FIELD_RE.search(line)
    if pos:
        return _clean(pos.group(1))

    coords = _AT_COORDS_RE.search(line)
    if coords:
        return ", ".join(part for part in coords.groups() if part)

    return None


def parse_weapon(line: str) -> Optional[str]:
    """Weapon from "with <name>" or "weapon <name>"."""
    match = _WEAPON_RE.search(line)
    if not match:
        return None
    weapon = match.group("weapon").rstrip(".")
    if len(weapon) < 2:
        return None
    return _clean(weapon)


def parse_steam_id(line: str) -> Optional[str]:
    """First 17-digit Steam identifier, preferring labelled ones."""
    for pattern in (_STEAM_ID_FIELD_RE, _STEAM_ID_PAREN_RE, _STEAM_ID_RE):
        match = pattern.search(line)
        if match:
            return match.group(1)
    return None


def parse_distance(line: str) -> Optional[float]:
    """Distance in meters."""
    for pattern in _DISTANCE_RES:
        match = pattern.search(line)
        if match:
            return float(match.group(1))
    return None


def parse_hit_zone(line: str) -> Optional[str]:
    """Explicit hit zone field, or "Head" when the line mentions a headshot."""
    match = _HIT_ZONE_RE.search(line)
    if match:
        zone = match.group(1)
        return zone[0].upper() + zone[1:]
    if _HEADSHOT_RE.search(line):
        return "Head"
    return None


def parse_ip_port(line: str) -> Optional[str]:
    match = _IP_PORT_RE.search(line)
    if not match:
        return None
    return f"{match.group(1)}:{match.group(2)}"


def parse_guid(line: str) -> Optional[str]:
    match = _GUID_RE.search(line)
    return match.group(1) if match else None


def parse_admin_actor(line: str) -> Optional[str]:
    """
    Who performed an admin action.

    Tried in order: [Admin]/[GM] tag, "by admin X", "admin=X", "issued by X".
    """
    for pattern in _ADMIN_ACTOR_RES:
        match = pattern.search(line)
        if match:
            actor = _clean(match.group("actor"))
            if actor:
                return actor
    return None


def _normalize_coords(text: str) -> Optional[str]:
    """Join 2 or 3 numeric components as "x, y[, z]"."""
    parts = re.findall(_NUM, text or "")
    if len(parts) < 2:
        return None
    return ", ".join(parts[:3])


def _attribute_steam_ids(body: str, second_start: int) -> tuple[Optional[str], Optional[str]]:
    """
    Split 17-digit tokens between the two actors of a kill line.

    A token belongs to the actor whose name precedes it most closely; only
    the first token per actor is kept.
    """
    first = second = None
    for match in _STEAM_ID_RE.finditer(body):
        if match.start() >= second_start:
            if second is None:
                second = match.group(1)
        elif first is None:
            first = match.group(1)
    return first, second


# ===========================================
# KILL / DEATH
# ===========================================

_PASSIVE_KILL_RE = re.compile(
    r"^(?P<victim>.+?)" + _NAME_TAIL + r"\s+(?:was\s+|has\s+been\s+)?killed\s+by\s+"
    r"(?P<killer>.+?)" + _NAME_STOP,
    re.IGNORECASE
)
_ACTIVE_KILL_RE = re.compile(
    r"^(?P<killer>.+?)" + _NAME_TAIL + r"\s+killed\s+(?!by\b)(?P<victim>.+?)" + _NAME_STOP,
    re.IGNORECASE
)

_DEATH_RE = re.compile(
    r"^(?P<name>.+?)" + _NAME_TAIL + r"\s+(?:has\s+)?"
    r"(?P<verb>died|is\s+dead|committed\s+suicide|suicided?|bled\s+out"
    r"|starv(?:ed|ing)(?:\s+to\s+death)?|drown(?:ed|ing))\b",
    re.IGNORECASE
)
_CAUSE_FIELD_RE = re.compile(r"\b(?:cause|reason)\s*[:=]\s*(?P<cause>[A-Za-z][\w \-]*)", re.IGNORECASE)
_CAUSE_PHRASE_RE = re.compile(
    r"\b(?:by|from|of)\s+(?P<cause>[A-Za-z][\w\-]*(?:\s+(?!(?:at|near|in|with|pos)\b)[A-Za-z][\w\-]*)*)",
    re.IGNORECASE
)
_VERB_CAUSES = {
    "bled out": "bled out",
    "starved": "starved",
    "starving": "starved",
    "starved to death": "starved",
    "starving to death": "starved",
    "drowned": "drowned",
    "drowning": "drowned",
    "suicide": "suicide",
    "suicided": "suicide",
    "committed suicide": "suicide",
}


def _death_cause(body: str, verb: str, verb_end: int) -> Optional[str]:
    field_match = _CAUSE_FIELD_RE.search(body)
    if field_match:
        return _clean(field_match.group("cause"))

    phrase = _CAUSE_PHRASE_RE.search(body, verb_end)
    if phrase:
        return _clean(phrase.group("cause"))

    return _VERB_CAUSES.get(re.sub(r"\s+", " ", verb.lower()))


def match_kill_death(line: str, timestamp: datetime) -> Optional[LogEvent]:
    """
    Kill lines ("X killed Y", "Y was killed by X") and environmental deaths.

    The passive form is tried first and its actors are swapped so that the
    killer/victim fields always mean the same thing.
    """
    body = _strip_prefix(line)

    passive = True
    match = _PASSIVE_KILL_RE.search(body)
    if match is None:
        passive = False
        match = _ACTIVE_KILL_RE.search(body)

    if match is not None:
        killer = sanitize_player(match.group("killer"))
        victim = sanitize_player(match.group("victim"))
        if killer or victim:
            second = "killer" if passive else "victim"
            first_id, second_id = _attribute_steam_ids(body, match.start(second))
            killer_id, victim_id = (second_id, first_id) if passive else (first_id, second_id)
            return KillEvent(
                raw_line=line,
                timestamp=timestamp,
                killer=killer,
                victim=victim,
                weapon=parse_weapon(body),
                location=parse_location(body),
                distance=parse_distance(body),
                hit_zone=parse_hit_zone(body),
                killer_steam_id=killer_id,
                victim_steam_id=victim_id,
            )

    death = _DEATH_RE.search(body)
    if death is None:
        return None

    return DeathEvent(
        raw_line=line,
        timestamp=timestamp,
        player=sanitize_player(death.group("name")),
        location=parse_location(body),
        cause=_death_cause(body, death.group("verb"), death.end("verb")),
        steam_id=parse_steam_id(body),
    )


# ===========================================
# POSITION
# ===========================================

_COORDS = (
    r"(?P<x>" + _NUM + r")\s*,\s*(?P<y>" + _NUM + r")(?:\s*,\s*(?P<z>" + _NUM + r"))?"
)
_SPOTTED_RE = re.compile(r"^(?P<name>.+?)\s+was\s+spotted\s+at\s*" + _COORDS, re.IGNORECASE)
_PLAYER_AT_RE = re.compile(
    r"\bPlayer\s+['\"]?(?P<name>.+?)['\"]?\s+(?:is\s+)?at\s*" + _COORDS,
    re.IGNORECASE
)
_SCRIPT_POS_RE = re.compile(
    r"\bplayer\s+(?P<name>[^(]+?)\s*\(.*?pos\s*=\s*<\s*(?P<coords>[^>]+?)\s*>",
    re.IGNORECASE
)
_SPACED_POS_RE = re.compile(
    r"\bplayer\s+(?P<name>[^:]+?)\s+pos\s*=\s*(?P<coords>-?[\d.]+(?:[\s,]+-?[\d.]+){1,2})",
    re.IGNORECASE
)


def match_script_position(line: str, timestamp: datetime) -> Optional[PositionEvent]:
    """
    Script log positions.

    "player Name (dpnid=..., ...) pos=<x, y, z>" or "player Name pos=x y z".
    """
    body = _strip_prefix(line)
    for pattern in (_SCRIPT_POS_RE, _SPACED_POS_RE):
        match = pattern.search(body)
        if not match:
            continue
        coords = _normalize_coords(match.group("coords"))
        if coords:
            return PositionEvent(
                raw_line=line,
                timestamp=timestamp,
                player=sanitize_player(match.group("name")),
                coords=coords,
            )
    return None


def match_position(line: str, timestamp: datetime) -> Optional[PositionEvent]:
    """"X was spotted at x, y[, z]" or "Player X [is] at x, y[, z]"."""
    body = _strip_prefix(line)
    for pattern in (_SPOTTED_RE, _PLAYER_AT_RE):
        match = pattern.search(body)
        if match:
            coords = ", ".join(part for part in match.group("x", "y", "z") if part)
            return PositionEvent(
                raw_line=line,
                timestamp=timestamp,
                player=sanitize_player(match.group("name")),
                coords=coords,
            )
    return None


# ===========================================
# PLAYER COUNT / PLAYER LIST
# ===========================================

_PLAYER_COUNT_RES = (
    re.compile(r"Total Players\s*:\s*(\d+)", re.IGNORECASE),
    re.compile(r"Players Online\s*[:=]\s*(\d+)", re.IGNORECASE),
    re.compile(r"PlayerList log:\s*(\d+)\s+players?", re.IGNORECASE),
)
_PLAYER_LIST_HEADER_RE = re.compile(
    r"Latest Admin Player List\s*-\s*(?P<snapshot>.+?)\s*-\s*Part\s*(?P<part>\d+)",
    re.IGNORECASE
)


def match_player_count(line: str, timestamp: datetime) -> Optional[PlayerCountEvent]:
    for pattern in _PLAYER_COUNT_RES:
        match = pattern.search(line)
        if match:
            return PlayerCountEvent(raw_line=line, timestamp=timestamp, count=int(match.group(1)))
    return None


def match_player_list_header(line: str, timestamp: datetime) -> Optional[PlayerListHeaderEvent]:
    match = _PLAYER_LIST_HEADER_RE.search(line)
    if not match:
        return None
    return PlayerListHeaderEvent(
        raw_line=line,
        timestamp=timestamp,
        snapshot=_clean(match.group("snapshot")),
        part=int(match.group("part")),
    )


# ===========================================
# BATTLEYE
# ===========================================

BATTLEYE_MARKER = "battleye server:"
BATTLEYE_SOURCE = "BattlEye"

_BE_PLAYER = (
    r"BattlEye Server:\s*(?:\([^)]*\)\s*)?Player\s*#\d+\s+(?P<name>.+?)" + _NAME_TAIL
)
_BE_REASON = (
    r"(?:\s+by\s+BattlEye)?"
    r"(?:\s+for\s+(?P<for_reason>.+)"
    r"|\s*:?\s*\((?P<paren_reason>[^)]*)\)"
    r"|\s*:\s*(?P<colon_reason>.+))?"
)
_BE_CONNECT_RE = re.compile(_BE_PLAYER + r"\s+connected\b", re.IGNORECASE)
_BE_DISCONNECT_RE = re.compile(_BE_PLAYER + r"\s+disconnected\b", re.IGNORECASE)
_BE_KICK_RE = re.compile(
    _BE_PLAYER + r"\s+(?:was\s+|has\s+been\s+)?kicked\b" + _BE_REASON,
    re.IGNORECASE
)
_BE_BAN_RE = re.compile(
    _BE_PLAYER + r"\s+(?:was\s+|has\s+been\s+)?banned\b" + _BE_REASON,
    re.IGNORECASE
)


def _be_reason(match: re.Match) -> Optional[str]:
    for group in ("for_reason", "paren_reason", "colon_reason"):
        reason = _clean(match.group(group))
        if reason:
            return reason
    return None


def match_battleye(line: str, timestamp: datetime) -> Optional[LogEvent]:
    """Connect, disconnect, kick and ban lines tagged "BattlEye Server:"."""
    if BATTLEYE_MARKER not in line.lower():
        return None

    steam_id = parse_steam_id(line)
    ip = parse_ip_port(line)

    match = _BE_CONNECT_RE.search(line)
    if match:
        return ConnectEvent(
            raw_line=line, timestamp=timestamp, player=sanitize_player(match.group("name")),
            steam_id=steam_id, guid=parse_guid(line), ip=ip, source=BATTLEYE_SOURCE,
        )

    match = _BE_DISCONNECT_RE.search(line)
    if match:
        return DisconnectEvent(
            raw_line=line, timestamp=timestamp, player=sanitize_player(match.group("name")),
            steam_id=steam_id, guid=parse_guid(line), ip=ip, source=BATTLEYE_SOURCE,
        )

    for action, pattern in (("kick", _BE_KICK_RE), ("ban", _BE_BAN_RE)):
        match = pattern.search(line)
        if match:
            return AdminEvent(
                raw_line=line,
                timestamp=timestamp,
                action=action,
                target=sanitize_player(match.group("name")),
                reason=_be_reason(match),
                actor=BATTLEYE_SOURCE,
                source=BATTLEYE_SOURCE,
                steam_id=steam_id,
                ip=ip,
            )

    return None


# ===========================================
# CONNECT / DISCONNECT
# ===========================================

_LOOSE_NAME = r"(?P<name>['\"]?[^'\"\]|:]+?['\"]?)"

_CONNECT_RES = (
    re.compile(
        r"\bPlayer\s*#\d+\s+(?P<name>.+?)" + _NAME_TAIL + r"\s+(?:has\s+|is\s+)?connected\b",
        re.IGNORECASE
    ),
    re.compile(
        r"\bPlayer\s+['\"]?(?P<name>.+?)['\"]?" + _NAME_TAIL
        + r"\s+(?:has\s+(?:been\s+)?|is\s+)?connected\b",
        re.IGNORECASE
    ),
    re.compile(_LOOSE_NAME + _NAME_TAIL + r"\s+has\s+connected\b", re.IGNORECASE),
    re.compile(r"\bjoined\s+the\s+game:\s*(?P<name>['\"]?[^'\"\]]+['\"]?)", re.IGNORECASE),
)

_DISCONNECT_RES = (
    re.compile(
        r"\bPlayer\s*#\d+\s+(?P<name>.+?)" + _NAME_TAIL
        + r"\s+(?:has\s+(?:been\s+)?)?disconnected\b",
        re.IGNORECASE
    ),
    re.compile(
        r"\bPlayer\s+['\"]?(?P<name>.+?)['\"]?" + _NAME_TAIL
        + r"\s+(?:has\s+(?:been\s+)?)?disconnected\b",
        re.IGNORECASE
    ),
    re.compile(_LOOSE_NAME + _NAME_TAIL + r"\s+has\s+(?:been\s+)?disconnected\b", re.IGNORECASE),
    re.compile(r"\bleft\s+the\s+game:\s*(?P<name>['\"]?[^'\"\]]+['\"]?)", re.IGNORECASE),
)


def match_connect_disconnect(line: str, timestamp: datetime) -> Optional[LogEvent]:
    """Generic join/leave phrasings, each with identifiers found anywhere on the line."""
    body = _strip_prefix(line)

    for event_cls, patterns in ((ConnectEvent, _CONNECT_RES), (DisconnectEvent, _DISCONNECT_RES)):
        for pattern in patterns:
            match = pattern.search(body)
            if match:
                return event_cls(
                    raw_line=line,
                    timestamp=timestamp,
                    player=sanitize_player(match.group("name")),
                    steam_id=parse_steam_id(line),
                    guid=parse_guid(line),
                    ip=parse_ip_port(line),
                )
    return None


# ===========================================
# CHAT
# ===========================================

CHAT_CHANNELS = ("Direct", "Vehicle", "Global", "Side", "Group", "Admin")
_CHANNEL_NAMES = {channel.lower(): channel for channel in CHAT_CHANNELS}

_CHAT_RES = (
    re.compile(
        r"\((?P<channel>" + "|".join(CHAT_CHANNELS) + r")\)\s+(?P<name>[^:]+):\s*\"?(?P<message>.+?)\"?$",
        re.IGNORECASE
    ),
    re.compile(
        r"\bChat:\s*\((?P<channel>[^)]+)\)\s*(?P<name>[^:]+):\s*\"?(?P<message>.+?)\"?$",
        re.IGNORECASE
    ),
)


def match_chat(line: str, timestamp: datetime) -> Optional[ChatEvent]:
    """"(Channel) Speaker: "message"" with or without a "Chat:" prefix."""
    for pattern in _CHAT_RES:
        match = pattern.search(line)
        if match:
            channel = _clean(match.group("channel"))
            return ChatEvent(
                raw_line=line,
                timestamp=timestamp,
                channel=_CHANNEL_NAMES.get(channel.lower(), channel) if channel else None,
                player=sanitize_player(match.group("name")),
                message=_clean(match.group("message")),
            )
    return None


# ===========================================
# ADMIN
# ===========================================

_ADMIN_ACTION_RE = re.compile(
    r"\b(kick(?:ed)?|ban(?:ned)?|restart(?:ed|ing)?|shutdown|stopping|start(?:ed)?)\b",
    re.IGNORECASE
)
_TARGET_VALUE = (
    r"['\"]?(?P<target>[^'\";,()\[\]]+?)['\"]?"
    r"(?=\s*(?:[;,()\[]|\b(?:reason|by|for|from|was|has|kick(?:ed)?|ban(?:ned)?)\b|$))"
)
_ADMIN_TARGET_RES = (
    re.compile(r"\bplayer\s+" + _TARGET_VALUE, re.IGNORECASE),
    re.compile(
        r"^(?P<target>.+?)" + _NAME_TAIL + r"\s+(?:was|has\s+been)\s+(?:kicked|banned)\b",
        re.IGNORECASE
    ),
    re.compile(r"\b(?:kick(?:ed)?|ban(?:ned)?)\s+(?!(?:by|for|from)\b)" + _TARGET_VALUE, re.IGNORECASE),
)
_ADMIN_REASON_RE = re.compile(r"\breason\s*[:=]\s*(?P<reason>[^;]+)", re.IGNORECASE)


def match_admin(line: str, timestamp: datetime) -> Optional[AdminEvent]:
    """Kicks, bans and server lifecycle actions, with optional target, reason and actor."""
    match = _ADMIN_ACTION_RE.search(line)
    if not match:
        return None

    body = _strip_prefix(line)
    target = None
    for pattern in _ADMIN_TARGET_RES:
        target_match = pattern.search(body)
        if target_match:
            target = sanitize_player(target_match.group("target"))
            if target:
                break

    reason_match = _ADMIN_REASON_RE.search(line)

    return AdminEvent(
        raw_line=line,
        timestamp=timestamp,
        action=match.group(1).lower(),
        target=target,
        reason=_clean(reason_match.group("reason")) if reason_match else None,
        actor=parse_admin_actor(line),
    )


# ===========================================
# CLASSIFIER
# ===========================================

# Priority order: first match wins.
MATCHERS: tuple[Matcher, ...] = (
    match_kill_death,
    match_script_position,
    match_position,
    match_player_count,
    match_player_list_header,
    match_battleye,
    match_connect_disconnect,
    match_chat,
    match_admin,
)


class LineClassifier:
    """Runs the matcher table over single log lines."""

    def __init__(self, matchers: tuple[Matcher, ...] = MATCHERS,
                 clock: Callable[[], datetime] = datetime.now):
        self.matchers = matchers
        self._clock = clock

    def classify(self, line: str) -> Optional[LogEvent]:
        """
        Classify one line of log text.

        Returns the event from the first matcher that recognizes the line, or
        None. Never raises: a matcher that errors is treated as no match.
        """
        line = line.strip()
        if not line:
            return None

        timestamp = parse_timestamp(line, self._clock())

        for matcher in self.matchers:
            try:
                event = matcher(line, timestamp)
            except Exception as e:
                logger.debug(f"{matcher.__name__} failed on line: {e}")
                continue
            if event is not None:
                return event

        logger.debug(f"No match: {line[:100]}")
        return None
