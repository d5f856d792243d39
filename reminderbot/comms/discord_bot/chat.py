"""Outbound Discord messages for the core and the reconciliation loops."""

from __future__ import annotations

import discord
import structlog

from reminderbot.comms.chat_client import ChatClient
from reminderbot.comms.discord_bot.normalizer import split_message
from reminderbot.shared.errors import RemoteDeliveryFailure
from reminderbot.shared.schemas.prompts import PromptAction

logger = structlog.get_logger()

_BUTTON_STYLES = {
    "primary": discord.ButtonStyle.primary,
    "secondary": discord.ButtonStyle.secondary,
    "success": discord.ButtonStyle.success,
    "danger": discord.ButtonStyle.danger,
}


def build_view(actions: list[PromptAction], timeout: float | None = None) -> discord.ui.View:
    """Buttons only carry custom ids; presses are handled in ``on_interaction``."""
    view = discord.ui.View(timeout=timeout)
    for action in actions:
        view.add_item(
            discord.ui.Button(
                label=action.label,
                style=_BUTTON_STYLES.get(action.style, discord.ButtonStyle.secondary),
                custom_id=action.custom_id,
            )
        )
    return view


class DiscordChatClient(ChatClient):
    """Sends through a (connected) ``discord.Client``."""

    def __init__(self, client: discord.Client, view_timeout: float | None = 300):
        self.client = client
        self.view_timeout = view_timeout

    async def _channel(self, channel_id: str):
        channel = self.client.get_channel(int(channel_id))
        if channel is None:
            channel = await self.client.fetch_channel(int(channel_id))
        return channel

    async def send_message(self, channel_id: str, text: str) -> str | None:
        try:
            channel = await self._channel(channel_id)
            message = None
            for chunk in split_message(text):
                message = await channel.send(chunk)
        except (discord.DiscordException, ValueError) as e:
            logger.error("discord_send_failed", channel_id=channel_id, error=str(e))
            raise RemoteDeliveryFailure(str(e)) from e
        return str(message.id) if message else None

    async def send_interactive_prompt(
        self,
        channel_id: str,
        text: str,
        actions: list[PromptAction],
    ) -> str | None:
        chunks = split_message(text) or [""]
        try:
            channel = await self._channel(channel_id)
            for chunk in chunks[:-1]:
                await channel.send(chunk)
            # Buttons go on the last chunk so they sit under the whole prompt
            message = await channel.send(
                chunks[-1], view=build_view(actions, timeout=self.view_timeout)
            )
        except (discord.DiscordException, ValueError) as e:
            logger.error("discord_prompt_failed", channel_id=channel_id, error=str(e))
            raise RemoteDeliveryFailure(str(e)) from e
        return str(message.id)

    async def send_direct_message(self, user_id: str, text: str) -> None:
        try:
            user = self.client.get_user(int(user_id))
            if user is None:
                user = await self.client.fetch_user(int(user_id))
            for chunk in split_message(text):
                await user.send(chunk)
        except (discord.DiscordException, ValueError) as e:
            logger.error("discord_dm_failed", user_id=user_id, error=str(e))
            raise RemoteDeliveryFailure(str(e)) from e
