"""
Discord embed builders and delivery sinks for log events.
Creates formatted embeds for connects, disconnects, kills, deaths, chat, admin
actions, positions, player counts and whitelist changes.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import discord

from services.log_events import (
    AdminEvent, ChatEvent, ConnectEvent, DeathEvent, DisconnectEvent, EventType,
    KillEvent, LogEvent, PlayerCountEvent, PlayerListHeaderEvent, PositionEvent,
    WhitelistUpdateEvent
)

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
WHITELIST_DISPLAY_LIMIT = 10


def pretty(value: Optional[str]) -> Optional[str]:
    """Underscores to spaces ("Head_Shot" -> "Head Shot")."""
    if not value:
        return value
    return value.replace("_", " ").strip()


def format_whitelist_list(items) -> str:
    """One entry per line, at most WHITELIST_DISPLAY_LIMIT, then an overflow count."""
    if not items:
        return "None"
    shown = "\n".join(items[:WHITELIST_DISPLAY_LIMIT])
    if len(items) > WHITELIST_DISPLAY_LIMIT:
        return f"{shown}\n... and {len(items) - WHITELIST_DISPLAY_LIMIT} more"
    return shown


def _base_embed(event: LogEvent, title: str, server_name: str,
                color: discord.Color, description: Optional[str] = None) -> discord.Embed:
    embed = discord.Embed(
        title=title,
        description=description,
        color=color,
        timestamp=event.timestamp
    )
    embed.set_footer(text=server_name)
    return embed


def _add_identity_fields(embed: discord.Embed, event, include_ip: bool):
    if event.steam_id:
        embed.add_field(name="SteamID", value=f"`{event.steam_id}`", inline=True)
    if event.guid:
        embed.add_field(name="GUID", value=f"`{event.guid}`", inline=True)
    if include_ip and event.ip:
        embed.add_field(name="IP", value=event.ip, inline=True)
    if event.source:
        embed.add_field(name="Source", value=event.source, inline=True)


def build_connect_embed(event: ConnectEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    """
    Format:
        🟢 Player Connected
        <player> joined the server
        SteamID | GUID | IP (opt-in) | Source
    """
    embed = _base_embed(
        event, "🟢 Player Connected", server_name, discord.Color.green(),
        f"**{event.player or UNKNOWN}** joined the server"
    )
    _add_identity_fields(embed, event, include_ip)
    return embed


def build_disconnect_embed(event: DisconnectEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    embed = _base_embed(
        event, "🔴 Player Disconnected", server_name, discord.Color.red(),
        f"**{event.player or UNKNOWN}** left the server"
    )
    _add_identity_fields(embed, event, include_ip)
    return embed


def build_kill_embed(event: KillEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    """
    Format:
        💀 Kill
        <killer> killed <victim>
        Weapon | Location | Distance | Hit Zone
    """
    embed = _base_embed(
        event, "💀 Kill", server_name, discord.Color.dark_red(),
        f"**{event.killer or UNKNOWN}** killed **{event.victim or UNKNOWN}**"
    )

    if event.weapon:
        embed.add_field(name="Weapon", value=event.weapon, inline=True)
    if event.location:
        embed.add_field(name="Location", value=pretty(event.location), inline=True)
    if event.distance is not None:
        embed.add_field(name="Distance", value=f"{event.distance:g} m", inline=True)
    if event.hit_zone:
        embed.add_field(name="Hit Zone", value=pretty(event.hit_zone), inline=True)
    if event.killer_steam_id:
        embed.add_field(name="Killer SteamID", value=f"`{event.killer_steam_id}`", inline=True)
    if event.victim_steam_id:
        embed.add_field(name="Victim SteamID", value=f"`{event.victim_steam_id}`", inline=True)

    return embed


def build_death_embed(event: DeathEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    cause = f" ({pretty(event.cause)})" if event.cause else ""
    embed = _base_embed(
        event, "☠️ Player Died", server_name, discord.Color.dark_grey(),
        f"**{event.player or UNKNOWN}** died{cause}"
    )
    if event.location:
        embed.add_field(name="Location", value=pretty(event.location), inline=True)
    if event.steam_id:
        embed.add_field(name="SteamID", value=f"`{event.steam_id}`", inline=True)
    return embed


def build_chat_embed(event: ChatEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    # Choose color based on channel
    channel_colors = {
        'global': discord.Color.blue(),
        'admin': discord.Color.gold(),
        'direct': discord.Color.green(),
        'vehicle': discord.Color.teal(),
        'side': discord.Color.purple(),
        'group': discord.Color.orange(),
    }
    color = channel_colors.get((event.channel or '').lower(), discord.Color.blue())

    embed = _base_embed(event, "💬 Chat", server_name, color)
    embed.add_field(name="Channel", value=event.channel or "N/A", inline=True)
    embed.add_field(name="Player", value=event.player or UNKNOWN, inline=True)
    embed.add_field(name="Message", value=(event.message or "-")[:1024], inline=False)
    return embed


def build_admin_embed(event: AdminEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    actor = event.actor or event.source or "Admin"
    action = event.action or "action"
    target = f" on **{event.target}**" if event.target else ""

    embed = _base_embed(
        event, "🛡️ Admin Action", server_name, discord.Color.gold(),
        f"**{actor}** performed {action}{target}"
    )
    if event.reason:
        embed.add_field(name="Reason", value=pretty(event.reason), inline=False)
    if event.source and event.actor != event.source:
        embed.add_field(name="Source", value=event.source, inline=True)
    if event.steam_id:
        embed.add_field(name="SteamID", value=f"`{event.steam_id}`", inline=True)
    if include_ip and event.ip:
        embed.add_field(name="IP", value=event.ip, inline=True)
    return embed


def build_position_embed(event: PositionEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    embed = _base_embed(event, "📍 Player Position", server_name, discord.Color.blurple())
    embed.add_field(name="Player", value=event.player or UNKNOWN, inline=True)
    embed.add_field(name="Coordinates", value=event.coords or "N/A", inline=True)
    return embed


def build_player_count_embed(event: PlayerCountEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    return _base_embed(
        event, "👥 Players Online", server_name, discord.Color.blurple(),
        f"Total: {event.count}"
    )


def build_player_list_header_embed(event: PlayerListHeaderEvent, server_name: str,
                                   include_ip: bool = False) -> discord.Embed:
    embed = _base_embed(event, "📋 Player List Snapshot", server_name, discord.Color.blurple())
    embed.add_field(name="Log Time", value=event.snapshot or "N/A", inline=True)
    embed.add_field(name="Part", value=str(event.part), inline=True)
    return embed


def build_whitelist_update_embed(event: WhitelistUpdateEvent, server_name: str,
                                 include_ip: bool = False) -> discord.Embed:
    embed = _base_embed(event, "📝 Whitelist Updated", server_name, discord.Color.orange())
    embed.add_field(name="File", value=event.file or "N/A", inline=True)
    embed.add_field(name="Total", value=str(event.total), inline=True)
    if event.added:
        embed.add_field(name="Added", value=format_whitelist_list(event.added), inline=False)
    if event.removed:
        embed.add_field(name="Removed", value=format_whitelist_list(event.removed), inline=False)
    return embed


EMBED_BUILDERS: dict[EventType, Callable[..., discord.Embed]] = {
    EventType.CONNECT: build_connect_embed,
    EventType.DISCONNECT: build_disconnect_embed,
    EventType.KILL: build_kill_embed,
    EventType.DEATH: build_death_embed,
    EventType.CHAT: build_chat_embed,
    EventType.ADMIN: build_admin_embed,
    EventType.POSITION: build_position_embed,
    EventType.PLAYER_COUNT: build_player_count_embed,
    EventType.PLAYER_LIST_HEADER: build_player_list_header_embed,
    EventType.WHITELIST_UPDATE: build_whitelist_update_embed,
}


def build_event_embed(event: LogEvent, server_name: str, include_ip: bool = False) -> discord.Embed:
    """Render any event with the builder registered for its type."""
    builder = EMBED_BUILDERS.get(event.event_type)
    if builder is None:
        return _base_embed(event, "Event", server_name, discord.Color.blurple(), event.raw_line[:2000])
    return builder(event, server_name, include_ip)


def build_status_embed(server_name: str, online: bool) -> discord.Embed:
    """Watcher online/offline announcement."""
    if online:
        return discord.Embed(
            title=f"🟢 {server_name} - Log Watcher Online",
            description="Watching server logs for new events.",
            color=discord.Color.green()
        )
    return discord.Embed(
        title=f"🔴 {server_name} - Log Watcher Offline",
        description="Log watcher is shutting down.",
        color=discord.Color.red()
    )


# ===========================================
# SINKS
# ===========================================

class EventSink(ABC):
    """Where classified events go."""

    @abstractmethod
    async def deliver(self, event: LogEvent) -> bool:
        """Deliver one event. Returns False on failure instead of raising."""


class DiscordChannelSink(EventSink):
    """Sends each event as an embed to one text channel."""

    def __init__(self, channel: discord.abc.Messageable, server_name: str, include_ip: bool = False):
        self.channel = channel
        self.server_name = server_name
        self.include_ip = include_ip

    async def deliver(self, event: LogEvent) -> bool:
        embed = build_event_embed(event, self.server_name, self.include_ip)
        try:
            await self.channel.send(embed=embed)
            return True
        except discord.HTTPException as e:
            logger.error(f"Discord send failed for {event.event_type.value} event: {e}")
            return False


class DryRunSink(EventSink):
    """Prints events instead of sending them."""

    def __init__(self, output: Callable[[str], None] = print):
        self.output = output

    async def deliver(self, event: LogEvent) -> bool:
        self.output(f"[DRY] {event.event_type.value}: {json.dumps(event.to_dict(), ensure_ascii=False)}")
        return True


class LogOnlySink(EventSink):
    """Writes events to the application log. Used when the channel is unavailable."""

    async def deliver(self, event: LogEvent) -> bool:
        logger.info(f"{event.event_type.value}: {event.raw_line[:200]}")
        return True
