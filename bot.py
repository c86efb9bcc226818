import sys
import logging
import discord
from discord.ext import commands
from dotenv import load_dotenv

from config.settings import ConfigurationError, configure_logging, load_settings
from database.connection import close_pool
from services.log_embed_builder import (
    DiscordChannelSink, DryRunSink, EventSink, LogOnlySink, build_status_embed
)
from services.log_monitor import LogMonitor
from services.remote_files import create_transport
from services.state_store import EngineState, create_state_store

logger = logging.getLogger(__name__)

PREFIX = '/'
EXTENSIONS = ('cogs.admin.serverlogs',)


class LogWatcherBot(commands.Bot):
    """Discord client that owns the log monitor for one DayZ server."""

    def __init__(self, settings):
        intents = discord.Intents.default()
        super().__init__(command_prefix=PREFIX, intents=intents)
        self.settings = settings
        self.state_store = create_state_store(settings)
        self.log_monitor = None
        self.log_channel = None
        self._synced = False

    async def setup_hook(self):
        settings = self.settings
        sink = await self.build_sink()

        state = self.state_store.load() or EngineState()
        logger.info(
            f"Loaded state: {len(state.files)} file(s), {len(state.whitelists)} whitelist(s), "
            f"bootstrapped={state.bootstrapped}"
        )

        self.log_monitor = LogMonitor(
            transport=create_transport(settings),
            sink=sink,
            state=state,
            store=self.state_store,
            directory=settings.ftp_path,
            patterns=settings.file_patterns,
            whitelist_files=settings.whitelist_files,
            backfill=settings.backfill_on_boot,
        )

        for extension in EXTENSIONS:
            await self.load_extension(extension)

    async def build_sink(self) -> EventSink:
        """Channel sink, or a printing/logging one in dry-run mode or when the channel can't be fetched."""
        settings = self.settings

        if settings.dry_run:
            logger.info("Dry run: events are printed, nothing is sent to Discord")
            return DryRunSink()

        try:
            self.log_channel = await self.fetch_channel(settings.channel_id)
        except discord.HTTPException as e:
            logger.error(f"Cannot fetch channel {settings.channel_id}, events will only be logged: {e}")
            self.log_channel = None
            return LogOnlySink()

        return DiscordChannelSink(self.log_channel, settings.server_name, include_ip=settings.include_ip)

    async def on_ready(self):
        logger.info(f"Logged in as {self.user.name} - {self.user.id}")

        if not self._synced:
            try:
                synced = await self.tree.sync()
                logger.info(f"Synced {len(synced)} command(s)")
            except discord.HTTPException as e:
                logger.error(f"Command sync failed: {e}")
            self._synced = True

        if self.log_monitor.is_running:
            return

        if self.log_channel is not None:
            try:
                await self.log_channel.send(embed=build_status_embed(self.settings.server_name, online=True))
            except discord.HTTPException as e:
                logger.error(f"Failed to send online status: {e}")

        await self.log_monitor.start(self.settings.poll_interval)

    async def close(self):
        if self.log_monitor is not None:
            await self.log_monitor.stop()

        if self.log_channel is not None and not self.is_closed():
            try:
                await self.log_channel.send(embed=build_status_embed(self.settings.server_name, online=False))
            except discord.HTTPException as e:
                logger.error(f"Failed to send offline status: {e}")

        if self.settings.state_backend == 'mysql':
            close_pool()

        await super().close()


def main():
    # Load environment variables
    load_dotenv()

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(str(e))
        sys.exit(1)

    configure_logging(settings)

    bot = LogWatcherBot(settings)
    bot.run(settings.discord_token, log_handler=None)


if __name__ == '__main__':
    main()
