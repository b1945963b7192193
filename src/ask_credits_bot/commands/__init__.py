"""Slash command module."""

from ask_credits_bot.commands.handlers import AskCommand, CheckCreditsCommand
from ask_credits_bot.commands.models import Interaction, InteractionRequest, Reply
from ask_credits_bot.commands.router import CommandRouter, create_router

__all__ = [
    "AskCommand",
    "CheckCreditsCommand",
    "CommandRouter",
    "Interaction",
    "InteractionRequest",
    "Reply",
    "create_router",
]
