"""Completion service client module."""

from ask_credits_bot.llm.client import AnswerClient, Answerer, EchoAnswerClient

__all__ = ["AnswerClient", "Answerer", "EchoAnswerClient"]
