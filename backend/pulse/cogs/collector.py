"""
Analytics collector Cog
Forwards messages, membership changes and voice activity to the fact sink
"""

import logging

from discord.ext import commands

import discord
from pulse.dispatcher import FactDispatcher

logger = logging.getLogger(__name__)


class Collector(commands.Cog):
    """Gateway listeners feeding the fact dispatcher"""

    def __init__(self, bot: commands.Bot, dispatcher: FactDispatcher):
        self.bot = bot
        self.dispatcher = dispatcher

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        """A message was posted"""
        await self.dispatcher.handle_message(message)

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member):
        """A member joined a guild"""
        await self.dispatcher.handle_member_join(member)

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member):
        """A member left a guild"""
        await self.dispatcher.handle_member_remove(member)

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ):
        """Voice channel joined, left or switched"""
        await self.dispatcher.handle_voice_state_update(member, before, after)


async def setup(bot: commands.Bot):
    dispatcher = getattr(bot, "fact_dispatcher", None)
    if dispatcher is None:
        raise RuntimeError("Collector cog requires bot.fact_dispatcher to be set")
    await bot.add_cog(Collector(bot, dispatcher))
