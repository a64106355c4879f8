"""Thin wrapper around the Stream chat server client.

All calls are safe to repeat: user upsert and member add are idempotent on
the Stream side, so transient failures are simply retried.
"""

from __future__ import annotations

import logging

from stream_chat import StreamChat
from stream_chat.base.exceptions import StreamAPIException
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from config import settings

_LOGGER = logging.getLogger(__name__)

CHANNEL_TYPE = "messaging"

_transient = retry(
    reraise=True,
    stop=stop_after_attempt(3),
    wait=wait_random_exponential(multiplier=0.5, max=4),
    retry=retry_if_exception_type((StreamAPIException, OSError)),
)


class ChatConfigError(RuntimeError):
    """Chat provider credentials are missing."""


class StreamChatDelivery:
    def __init__(self, client: StreamChat, bot_user_id: str, bot_name: str) -> None:
        self.client = client
        self.bot_user_id = bot_user_id
        self.bot_name = bot_name
        self._bot_ready = False

    @_transient
    def ensure_bot_user(self) -> None:
        if self._bot_ready:
            return
        self.client.upsert_user(
            {
                "id": self.bot_user_id,
                "name": self.bot_name,
                "role": "admin",  # bots post in any channel
                "is_bot": True,
            }
        )
        self._bot_ready = True
        _LOGGER.info("[CHAT] Ensured system bot user %s", self.bot_user_id)

    @_transient
    def add_member(self, channel_id: str, user_id: str) -> None:
        self.client.channel(CHANNEL_TYPE, channel_id).add_members([user_id])

    @_transient
    def send_message(self, channel_id: str, text: str, **extra) -> None:
        channel = self.client.channel(CHANNEL_TYPE, channel_id)
        channel.send_message({"text": text, **extra}, self.bot_user_id)


def get_chat_delivery() -> StreamChatDelivery:
    if not settings.STREAM_API_KEY or not settings.STREAM_API_SECRET:
        raise ChatConfigError("STREAM_API_KEY and STREAM_API_SECRET must be set")
    client = StreamChat(api_key=settings.STREAM_API_KEY, api_secret=settings.STREAM_API_SECRET)
    return StreamChatDelivery(client, settings.SYSTEM_BOT_USER_ID, settings.SYSTEM_BOT_NAME)
