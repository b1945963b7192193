"""Slash command handlers."""

from __future__ import annotations

import sqlite3

import structlog

from ask_credits_bot.commands.models import Interaction
from ask_credits_bot.credits.ledger import CreditLedger
from ask_credits_bot.errors import InsufficientCredits
from ask_credits_bot.llm.client import Answerer
from ask_credits_bot.session.cache import SessionAffinityCache
from ask_credits_bot.storage.chat_log import ChatLogStore

logger = structlog.get_logger()


class CheckCreditsCommand:
    name = "checkcredits"
    description = "Check your available credits."

    def __init__(self, ledger: CreditLedger):
        self._ledger = ledger

    async def execute(self, interaction: Interaction) -> None:
        user_id = interaction.user_id
        logger.info("check_credits_start", user_id=user_id)
        result = await self._ledger.check_balance(user_id)
        await interaction.reply(result.message)
        logger.info(
            "check_credits_done", user_id=user_id, credits=result.balance, granted=result.granted
        )


class AskCommand:
    """Answer a question with the completion service, for a credit fee.

    The user's channel is remembered while the answer is generated, and
    the answer is delivered to that context once it is ready.
    """

    name = "ask"
    description = "Ask the assistant a question."

    def __init__(
        self,
        ledger: CreditLedger,
        sessions: SessionAffinityCache,
        answerer: Answerer,
        cost: int = 1,
        chat_log: ChatLogStore | None = None,
    ):
        self._ledger = ledger
        self._sessions = sessions
        self._answerer = answerer
        self._cost = cost
        self._chat_log = chat_log

    async def execute(self, interaction: Interaction) -> None:
        user_id = interaction.user_id
        query = str(interaction.options.get("query") or "").strip()
        if not query:
            await interaction.reply("Please provide a question.", ephemeral=True)
            return

        self._sessions.remember(
            user_id,
            interaction.channel_id,
            interaction.channel_kind,
            query,
            interaction.guild_id,
        )
        try:
            try:
                await self._ledger.debit(user_id, self._cost)
            except InsufficientCredits as e:
                await interaction.reply(
                    f"You need {e.required} credit(s) to ask, but you have {e.balance}. "
                    "Use /checkcredits to see your balance.",
                    ephemeral=True,
                )
                return

            try:
                answer = await self._answerer.answer(query)
            except Exception as e:
                logger.error("ask_answer_failed", user_id=user_id, error=str(e))
                await self._ledger.refund(user_id, self._cost)
                raise

            target = self._sessions.recall(user_id)
            context_id = target.context_id if target else interaction.channel_id
            await interaction.send_to(context_id, answer)
            logger.info("ask_answer_delivered", user_id=user_id, context_id=context_id)
        finally:
            self._sessions.forget(user_id)

        if self._chat_log is not None:
            try:
                await self._chat_log.append(user_id, query, answer)
            except sqlite3.Error as e:
                logger.warning("chat_log_append_failed", user_id=user_id, error=str(e))
