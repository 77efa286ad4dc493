"""Message listener Cog for Modshield.

Hands every created message to the automod engine. The cog holds no
moderation logic of its own.
"""

import discord
from discord.ext import commands

from modshield.automod.engine import AutomodEngine
from modshield.util import discord_utils
from modshield.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for routing message events into automod."""

    def __init__(self, discord_bot_instance, engine: AutomodEngine):
        """
        Initialize the message listener cog.

        Parameters
        ----------
        discord_bot_instance:
            The Discord bot instance to attach this cog to.
        engine:
            Automod engine that moderates each message.
        """
        self.bot = discord_bot_instance
        self.engine = engine
        logger.info("Message listener cog loaded")

    @commands.Cog.listener(name='on_message')
    async def on_message(self, message: discord.Message):
        if discord_utils.is_ignored_message(message):
            return
        await self.engine.process_message(message)


def setup(discord_bot_instance, engine: AutomodEngine):
    """Register the message listener cog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, engine))
