import os
import sys
import time

import discord
from discord.ext import commands
from dotenv import load_dotenv

from config.config_loader import ConfigLoader
from config.settings import CatalogSettings, load_token, resolve_deploy_scope
from helpers.http_helper import HTTPClient
from services.service_container import ServiceContainer
from utils.errors import ConfigurationError
from utils.logging import get_logger

# Initialize logger
logger = get_logger(__name__)

# Load environment variables
load_dotenv()

# Load configuration using ConfigLoader
config = ConfigLoader.load_config()

# Configure intents - start from none and enable only what's required
intents = discord.Intents.none()
intents.guilds = True  # Required: channels, threads, forums
intents.guild_messages = True  # Required: channel history for clearing
intents.message_content = True  # Required: reading posted dataset headers

# List of initial extensions to load
initial_extensions = [
    "cogs.spots.commands",
    "cogs.webhook.commands",
]


class MyBot(commands.Bot):
    """Bot with project-specific attributes and helpers."""

    def __init__(
        self,
        *args,
        deploy_scope: tuple[str, int | None] = ("global", None),
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)

        # Assign the entire config to the bot instance
        self.config = config

        # Initialize uptime tracking
        self.start_time = time.monotonic()

        catalog_settings = CatalogSettings.from_config(self.config)
        self.http_client = HTTPClient(
            timeout=catalog_settings.timeout,
            concurrency=catalog_settings.concurrency,
            user_agent=os.getenv("HTTP_USER_AGENT"),
        )

        self.deploy_scope = deploy_scope
        self.services: ServiceContainer | None = None

    async def setup_hook(self) -> None:
        """Initialize services, load cogs, and sync commands."""
        # Initialize the HTTP client session
        await self.http_client._get_session()

        self.services = ServiceContainer(self.http_client, self.config)
        await self.services.initialize()
        logger.info("ServiceContainer initialized")

        for ext in initial_extensions:
            try:
                await self.load_extension(ext)
                logger.info(f"Loaded extension: {ext}")
            except commands.ExtensionError as e:
                logger.exception(f"Failed to load extension {ext}", exc_info=e)

        await self.sync_commands()

        # Log all loaded commands after the setup (deterministic ordering)
        logger.info("Registered commands: ")
        for command in self.tree.walk_commands():
            logger.info(
                f"- Command: {command.name}, Description: {command.description}"
            )

        self._validate_required_attributes()

    async def sync_commands(self) -> None:
        """Sync the command tree to the configured scope (one guild or global)."""
        scope, guild_id = self.deploy_scope
        try:
            if scope == "guild" and guild_id is not None:
                guild = discord.Object(id=guild_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info(f"Synced {len(synced)} commands to guild {guild_id}.")
            else:
                synced = await self.tree.sync()
                logger.info(f"Synced {len(synced)} commands globally.")
        except discord.HTTPException as e:
            logger.exception("Failed to sync commands", exc_info=e)

    def _validate_required_attributes(self) -> None:
        """Ensure all required bot attributes are initialized before cogs use them.

        Raises:
            RuntimeError: If any required attribute is missing or uninitialized.
        """
        required_attrs = {
            "config": self.config,
            "services": self.services,
            "http_client": self.http_client,
        }
        missing = [name for name, value in required_attrs.items() if value is None]
        if missing:
            raise RuntimeError(
                f"Bot initialization incomplete: missing {missing}. "
                "These attributes must be initialized before cogs can access them."
            )
        logger.info("All required bot attributes validated and initialized.")

    async def on_ready(self) -> None:
        """Called when the bot is ready."""
        if not self.user:
            logger.warning("Bot user is not initialized")
            return
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info(f"Bot is ready and online in {len(self.guilds)} guilds!")

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        """Forget every channel binding of a guild the bot left."""
        if self.services is None:
            return
        removed = await self.services.store.remove_guild(guild.id)
        logger.info(
            f"Left guild '{guild.name}', removed {removed} channel bindings",
            extra={"guild_id": guild.id},
        )

    def uptime(self) -> str:
        """Human readable time since start."""
        seconds = int(time.monotonic() - self.start_time)
        hours, remainder = divmod(seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"{hours}h {minutes}m {seconds}s"

    async def close(self) -> None:
        """
        Closes the bot and cleans up all resources.
        """
        logger.info(f"Shutting down the bot after {self.uptime()}.")

        if self.services:
            try:
                await self.services.cleanup()
                logger.info("Services cleaned up")
            except Exception as e:
                logger.exception("Error cleaning up services", exc_info=e)

        # Close the HTTP client
        await self.http_client.close()

        # Call parent close
        await super().close()


def main(argv: list[str] | None = None) -> int:
    """Start the bot. Returns 1 when required configuration is missing."""
    argv = sys.argv[1:] if argv is None else argv
    try:
        token = load_token()
        deploy_scope = resolve_deploy_scope(argv)
    except ConfigurationError as e:
        logger.critical(f"Startup aborted: {e}")
        return 1

    bot = MyBot(
        command_prefix=commands.when_mentioned,
        intents=intents,
        deploy_scope=deploy_scope,
    )
    # Logging is configured by utils.logging; keep discord.py from adding its own handler
    bot.run(token, log_handler=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
