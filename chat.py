"""
Chat-facing glue around a Phrasebook.

Learns from every message a human sends and answers with a generated phrase
when the bot is mentioned. Transport is left to the caller: feed it
ChatMessage objects and send back whatever handle() returns.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from phrasebook import Phrasebook

logger = logging.getLogger(__name__)

DEFAULT_ORDER = 3
MAX_PHRASE_LENGTH = 20


@dataclass
class ChatMessage:
    text: Optional[str]
    user: Optional[str]
    channel: Optional[str] = None
    ts: Optional[str] = None
    bot_id: Optional[str] = None


class ChatResponder:
    def __init__(self, phrasebook: Phrasebook, bot_user_id: str,
                 max_phrase_length: int = MAX_PHRASE_LENGTH):
        self.phrasebook = phrasebook
        self.bot_user_id = bot_user_id
        self.max_phrase_length = max_phrase_length

    @property
    def mention(self) -> str:
        return f"<@{self.bot_user_id}>"

    def handle(self, message: ChatMessage) -> Optional[str]:
        """Learn from ``message`` and return a reply if the bot was mentioned."""
        logger.info("[%s] (channel:%s) %s says: %s",
                    message.ts, message.channel, message.user, message.text)

        if message.user == self.bot_user_id:
            return None
        if message.text is None:
            return None

        # Other bots are answered but never learned from
        if not message.bot_id:
            self.phrasebook.learn(message.text)

        if self.mention in message.text:
            return self.phrasebook.generate(self.max_phrase_length)
        return None
