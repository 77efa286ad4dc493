"""
Modshield Discord Automod Bot
=============================

Connects a py-cord bot to the automod engine: every guild message is checked
against the configured rules and repeat offenders are escalated from warnings
to timeouts, kicks and bans.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODSHIELD_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("MODSHIELD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import discord
from dotenv import load_dotenv

from modshield.automod.engine import AutomodEngine
from modshield.automod.message_tracker import MessageTracker
from modshield.configuration.app_configuration import app_config
from modshield.configuration.guild_settings import guild_settings_manager
from modshield.database.database import get_db
from modshield.scheduler.maintenance_scheduler import MaintenanceScheduler
from modshield.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Returns
    -------
    str
        Discord bot token extracted from the loaded environment.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Construct the Discord intents automod needs.

    Returns
    -------
    discord.Intents
        Intents enabling guild, member and message content events.
    """
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def build_engine() -> AutomodEngine:
    """Create the automod engine wired to the global database and settings."""
    tracker = MessageTracker(
        max_history=app_config.tracker_max_history,
        retention_ms=int(app_config.tracked_message_ttl * 1000),
    )
    return AutomodEngine(
        config_store=guild_settings_manager,
        violation_store=get_db(),
        tracker=tracker,
        violation_window_ms=int(app_config.violation_window_hours * 60 * 60 * 1000),
    )


def create_bot(engine: AutomodEngine) -> discord.Bot:
    """Instantiate the Discord bot and register the message listener."""
    from modshield.bot.cogs import message_listener

    bot = discord.Bot(intents=build_intents())
    message_listener.setup(bot, engine)
    logger.info("All cogs loaded successfully.")
    return bot


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot | None, scheduler: MaintenanceScheduler | None) -> None:
    """Stop the scheduler, close the bot and the database."""
    if scheduler is not None:
        try:
            await scheduler.shutdown()
        except Exception as exc:
            logger.exception("Error during maintenance scheduler shutdown: %s", exc)

    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord bot: %s", exc)

    try:
        await get_db().shutdown()
    except Exception as exc:
        logger.exception("Error during database shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database, engine and bot, returning an exit code.

    Returns
    -------
    int
        Process exit code reflecting success or failure of initialization.
    """
    token = load_environment()

    logger.info("Initializing database...")
    if not await get_db().initialize():
        logger.critical("Failed to initialize database at %s", app_config.database_path)
        return 1

    try:
        engine = build_engine()
        bot = create_bot(engine)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await get_db().shutdown()
        return 1

    scheduler = MaintenanceScheduler(
        get_db(),
        engine.tracker,
        lambda: app_config.maintenance_interval,
        tracked_message_ttl=app_config.tracked_message_ttl,
        violation_retention_days=app_config.violation_retention_days,
    )
    scheduler.start()

    exit_code = 0
    try:
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, scheduler)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    logger.info("Starting Modshield…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
