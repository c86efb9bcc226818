# cogs/admin/serverlogs.py
"""
Server Log Watcher Commands

Administrator commands for the running log watcher:
- View watcher status (bootstrap flag, tracked files, last tick)
- Trigger a tick immediately
- Reset stored offsets and whitelist baselines
"""

import discord
from discord import app_commands
from discord.ext import commands
from datetime import datetime
import logging

from helpers.utils import truncate

logger = logging.getLogger(__name__)

MAX_LISTED_FILES = 15


def format_tick_summary(result) -> str:
    """One-paragraph summary of a TickResult."""
    if result is None:
        return "No tick has run yet."

    started = datetime.fromtimestamp(result.started_at).strftime('%Y-%m-%d %H:%M:%S')
    lines = [
        f"**Started:** {started} ({result.duration:.1f}s)",
        f"**Files:** {result.files_ingested} read / {result.files_listed} matched"
        + (f" / {result.files_failed} failed" if result.files_failed else ""),
        f"**Events:** {result.events_classified} classified, {result.events_delivered} delivered"
        + (f", {result.delivery_failures} failed" if result.delivery_failures else ""),
        f"**Whitelist updates:** {result.whitelist_updates}",
    ]
    if result.aborted:
        lines.append("⚠️ Tick aborted (remote listing failed)")
    return "\n".join(lines)


class ServerLogsCommands(commands.GroupCog, name="logs"):
    """Log watcher commands."""

    def __init__(self, bot: commands.Bot, monitor):
        self.bot = bot
        self.monitor = monitor
        super().__init__()

    @app_commands.command(name="status", description="Show log watcher status")
    @app_commands.default_permissions(administrator=True)
    async def watcher_status(self, interaction: discord.Interaction):
        """Show current watcher status."""
        state = self.monitor.state

        embed = discord.Embed(
            title="Log Watcher Status",
            color=discord.Color.blue()
        )

        embed.add_field(
            name="Status",
            value="🟢 Running" if self.monitor.is_running else "🔴 Stopped",
            inline=True
        )
        embed.add_field(
            name="Bootstrapped",
            value="Yes" if state.bootstrapped else "No",
            inline=True
        )

        if state.files:
            file_lines = [
                f"`{path}` @ {file_state.offset:,} bytes"
                for path, file_state in sorted(state.files.items())[:MAX_LISTED_FILES]
            ]
            if len(state.files) > MAX_LISTED_FILES:
                file_lines.append(f"... and {len(state.files) - MAX_LISTED_FILES} more")
            files_value = "\n".join(file_lines)
        else:
            files_value = "No files tracked yet"
        embed.add_field(name="Tracked Files", value=truncate(files_value, 1024), inline=False)

        if state.whitelists:
            whitelist_value = "\n".join(
                f"`{path}` ({len(wl.entries)} entries)"
                for path, wl in sorted(state.whitelists.items())
            )
            embed.add_field(name="Whitelists", value=truncate(whitelist_value, 1024), inline=False)

        embed.add_field(
            name="Last Tick",
            value=format_tick_summary(self.monitor.last_result),
            inline=False
        )

        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="tick", description="Check the server logs now")
    @app_commands.default_permissions(administrator=True)
    async def run_tick(self, interaction: discord.Interaction):
        """Run one ingestion cycle right away."""
        await interaction.response.defer(ephemeral=True)

        try:
            result = await self.monitor.tick()
        except Exception as e:
            logger.error(f"Manual tick failed: {e}", exc_info=True)
            await interaction.followup.send(f"An error occurred: {e}", ephemeral=True)
            return

        if result is None:
            await interaction.followup.send(
                "A log check is already running, try again in a moment.",
                ephemeral=True
            )
            return

        await interaction.followup.send(format_tick_summary(result), ephemeral=True)

    @app_commands.command(name="reset", description="Forget read positions and whitelist baselines")
    @app_commands.default_permissions(administrator=True)
    async def reset_state(self, interaction: discord.Interaction):
        """Clear stored offsets so the next tick bootstraps again."""
        if self.monitor.is_ticking:
            await interaction.response.send_message(
                "A log check is running, try again in a moment.",
                ephemeral=True
            )
            return

        self.monitor.reset_state()
        logger.info(f"State reset by {interaction.user} ({interaction.user.id})")

        await interaction.response.send_message(
            "Watcher state cleared. The next check starts a fresh bootstrap pass.",
            ephemeral=True
        )


async def setup(bot: commands.Bot):
    """Load the ServerLogsCommands cog."""
    await bot.add_cog(ServerLogsCommands(bot, bot.log_monitor))
