"""Discord bot implementation."""

from __future__ import annotations

import discord
import structlog
from discord import Intents, app_commands

from reminderbot.comms.discord_bot.interactions import InteractionHandler
from reminderbot.shared.config import Settings
from reminderbot.shared.schemas.prompts import CONTEXT_MODAL, make_custom_id

logger = structlog.get_logger()


class ContextModal(discord.ui.Modal, title="Add context"):
    """Free-text correction for a pending notification."""

    context = discord.ui.TextInput(
        label="Context",
        custom_id="context",
        style=discord.TextStyle.paragraph,
        placeholder="e.g. it's next Friday, not this one",
        max_length=500,
    )

    def __init__(self, request_id: str, handler: InteractionHandler):
        super().__init__(custom_id=make_custom_id(CONTEXT_MODAL, request_id))
        self.request_id = request_id
        self.handler = handler

    async def on_submit(self, interaction: discord.Interaction):
        await self.handler.on_context_submit(
            DiscordResponder(interaction, self.handler),
            self.request_id,
            self.context.value,
            str(interaction.user.id),
            str(interaction.channel_id) if interaction.channel_id else None,
        )


class DiscordResponder:
    """Answers a single ``discord.Interaction``."""

    def __init__(self, interaction: discord.Interaction, handler: InteractionHandler):
        self.interaction = interaction
        self.handler = handler

    async def reply_ephemeral(self, text: str) -> None:
        await self.interaction.response.send_message(text, ephemeral=True)

    async def reply_update(self, text: str) -> None:
        await self.interaction.response.edit_message(content=text, view=None)

    async def show_modal(self, request_id: str) -> None:
        await self.interaction.response.send_modal(ContextModal(request_id, self.handler))


class ReminderDiscordBot(discord.Client):
    """Registers the slash commands and forwards every interaction to the handler."""

    def __init__(self, settings: Settings, handler: InteractionHandler):
        super().__init__(intents=Intents.default())
        self.settings = settings
        self.handler = handler
        self.tree = app_commands.CommandTree(self)
        self._register_commands()

    async def setup_hook(self):
        synced = await self.tree.sync()
        logger.info("discord_commands_synced", count=len(synced))

    async def on_ready(self):
        logger.info("discord_bot_ready", user=str(self.user))

    async def on_interaction(self, interaction: discord.Interaction):
        # Slash commands are routed by the command tree, modals by their view
        if interaction.type is not discord.InteractionType.component:
            return
        custom_id = (interaction.data or {}).get("custom_id", "")
        await self.handler.on_component(
            DiscordResponder(interaction, self.handler),
            custom_id,
            str(interaction.user.id),
            str(interaction.channel_id) if interaction.channel_id else None,
        )

    def _register_commands(self) -> None:
        handler = self.handler

        def responder(interaction: discord.Interaction) -> DiscordResponder:
            return DiscordResponder(interaction, handler)

        @self.tree.command(name="notify", description="Schedule a notification from a sentence")
        @app_commands.describe(text="What to be notified about, and when")
        async def notify(interaction: discord.Interaction, text: str):
            await handler.on_notify(
                responder(interaction),
                text,
                str(interaction.user.id),
                str(interaction.channel_id),
            )

        todo = app_commands.Group(name="todo", description="Manage your todo list")

        @todo.command(name="add", description="Add an item to your todo list")
        @app_commands.describe(text="The todo item")
        async def todo_add(interaction: discord.Interaction, text: str):
            await handler.on_todo_add(responder(interaction), str(interaction.user.id), text)

        @todo.command(name="list", description="Show your open todos")
        async def todo_list(interaction: discord.Interaction):
            await handler.on_todo_list(responder(interaction), str(interaction.user.id))

        @todo.command(name="done", description="Mark a todo as done")
        @app_commands.describe(index="Number shown by /todo list")
        async def todo_done(interaction: discord.Interaction, index: int):
            await handler.on_todo_done(responder(interaction), str(interaction.user.id), index)

        @todo.command(name="clear", description="Remove completed todos")
        async def todo_clear(interaction: discord.Interaction):
            await handler.on_todo_clear(responder(interaction), str(interaction.user.id))

        if self.settings.enable_todo_intent:
            self.tree.add_command(todo)
        else:
            logger.info("todo_commands_disabled")
