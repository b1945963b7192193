"""Command registry and dispatch."""

from __future__ import annotations

import traceback
from typing import Protocol

import structlog

from ask_credits_bot.commands.handlers import AskCommand, CheckCreditsCommand
from ask_credits_bot.commands.models import Interaction
from ask_credits_bot.credits.ledger import CreditLedger
from ask_credits_bot.llm.client import Answerer
from ask_credits_bot.session.cache import SessionAffinityCache
from ask_credits_bot.storage.chat_log import ChatLogStore

logger = structlog.get_logger()

GENERIC_ERROR_MESSAGE = "An error occurred while executing the command."
UNKNOWN_COMMAND_MESSAGE = "Unknown command."


class Command(Protocol):
    name: str
    description: str

    async def execute(self, interaction: Interaction) -> None: ...


class CommandRouter:
    """Looks up commands by name and guarantees every invocation gets a reply."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(self, command: Command) -> None:
        if command.name in self._commands:
            raise ValueError(f"Command already registered: {command.name}")
        self._commands[command.name] = command
        logger.debug("command_registered", name=command.name)

    @property
    def names(self) -> list[str]:
        return sorted(self._commands)

    def describe(self) -> list[dict[str, str]]:
        return [
            {"name": c.name, "description": c.description}
            for c in sorted(self._commands.values(), key=lambda c: c.name)
        ]

    async def handle(self, interaction: Interaction) -> None:
        command = self._commands.get(interaction.command)
        if command is None:
            logger.warning("unknown_command", command=interaction.command, user_id=interaction.user_id)
            await interaction.reply(UNKNOWN_COMMAND_MESSAGE, ephemeral=True)
            return

        try:
            await command.execute(interaction)
        except Exception as e:
            logger.error(
                "command_failed",
                command=interaction.command,
                user_id=interaction.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            logger.debug("command_failed_traceback", traceback=traceback.format_exc())
            if not interaction.replied:
                await interaction.reply(GENERIC_ERROR_MESSAGE, ephemeral=True)
                logger.error("command_error_replied", user_id=interaction.user_id)


def create_router(
    ledger: CreditLedger,
    sessions: SessionAffinityCache,
    answerer: Answerer,
    ask_cost: int = 1,
    chat_log: ChatLogStore | None = None,
) -> CommandRouter:
    """Build the router with every slash command registered."""
    router = CommandRouter()
    router.register(CheckCreditsCommand(ledger))
    router.register(
        AskCommand(ledger, sessions, answerer, cost=ask_cost, chat_log=chat_log)
    )
    return router
