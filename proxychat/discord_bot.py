from __future__ import annotations

import asyncio
import logging
import threading

import discord

from proxychat.config import Settings
from proxychat.engine.orchestrator import Orchestrator
from proxychat.engine.ports import PresentationSink

log = logging.getLogger(__name__)

DISCORD_MESSAGE_LIMIT = 2000


class DiscordSink(PresentationSink):
    """Sends user-visible text back to the channel each user last wrote in.

    Called on the authoritative thread; sends are scheduled onto the
    client's event loop.
    """

    def __init__(self) -> None:
        super().__init__()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._channels: dict[str, object] = {}
        self._lock = threading.Lock()

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def remember_channel(self, user_id: str, channel: object) -> None:
        with self._lock:
            self._channels[user_id] = channel

    def send_message(self, user_id: str, text: str) -> None:
        with self._lock:
            channel = self._channels.get(user_id)
        if channel is None or self._loop is None:
            log.warning("discord_send_skipped user=%s reason=no_channel", user_id)
            return
        content = f"<@{user_id}> {text}"[:DISCORD_MESSAGE_LIMIT]
        future = asyncio.run_coroutine_threadsafe(channel.send(content), self._loop)
        future.add_done_callback(_log_send_failure)


def _log_send_failure(future) -> None:
    exc = future.exception()
    if exc is not None:
        log.warning("discord_send_failed error=%s", exc)


def run_discord_bot(orchestrator: Orchestrator, sink: DiscordSink, settings: Settings) -> None:
    if not settings.discord_token:
        raise RuntimeError("DISCORD_TOKEN is required to run the Discord bot")

    intents = discord.Intents.default()
    intents.message_content = True
    client = discord.Client(intents=intents)

    @client.event
    async def on_ready() -> None:
        sink.bind(asyncio.get_running_loop())
        user_name = str(client.user) if client.user else "unknown"
        log.info("logged_in_as=%s", user_name)

    @client.event
    async def on_message(message) -> None:
        if message.author == client.user or message.author.bot:
            return
        channel_name = getattr(message.channel, "name", "")
        if channel_name != settings.discord_channel:
            return
        user_id = str(message.author.id)
        sink.remember_channel(user_id, message.channel)
        orchestrator.post_message(user_id, message.content)

    log.info("starting_discord_bot channel=%s", settings.discord_channel)
    orchestrator.start()
    try:
        client.run(settings.discord_token)
    finally:
        orchestrator.stop()
