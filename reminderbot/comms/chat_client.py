"""Outbound side of the chat platform, as seen by the core and the loops."""

from __future__ import annotations

from abc import ABC, abstractmethod

from reminderbot.shared.schemas.prompts import PromptAction


class ChatClient(ABC):
    """Every method raises ``RemoteDeliveryFailure`` when the platform refuses a send."""

    @abstractmethod
    async def send_message(self, channel_id: str, text: str) -> str | None:
        """Post plain text to a channel; returns the platform message id if known."""
        ...

    @abstractmethod
    async def send_interactive_prompt(
        self,
        channel_id: str,
        text: str,
        actions: list[PromptAction],
    ) -> str | None:
        """Post text with buttons attached; returns the platform message id if known."""
        ...

    @abstractmethod
    async def send_direct_message(self, user_id: str, text: str) -> None:
        ...
