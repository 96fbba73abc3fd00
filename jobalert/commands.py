"""Telegram chat commands: /start, /professions and /check."""
from __future__ import annotations

import html
from typing import Any

from .config import load_professions
from .errors import DeliveryFailure
from .logger import get_logger
from .notify import Dispatcher, MessageChannel, SubscriberStore
from .storage import KeyValueStore

logger = get_logger()


def _split_command(text: str) -> tuple[str, str]:
    head, _, rest = text.strip().partition(" ")
    # Telegram appends @botname in group chats: /check@jobalert_bot
    command = head.split("@", 1)[0].lower()
    return command, rest.strip()


def _format_list(names: list[str]) -> str:
    if not names:
        return "(none)"
    return ", ".join(html.escape(n) for n in names)


def handle_command(
    chat_id: int,
    text: str,
    kv: KeyValueStore,
    dispatcher: Dispatcher | None = None,
) -> str | None:
    """Apply one chat command and return the reply text (None = no reply)."""
    subscribers = SubscriberStore(kv)
    command, args = _split_command(text)
    available = [p.name for p in load_professions(kv)]

    if command == "/start":
        subscriber = subscribers.get_or_create(chat_id)
        return (
            "Welcome! You will get alerts for new jobs in the Netherlands.\n"
            f"Available professions: {_format_list(available)}\n"
            f"Your professions: {_format_list(subscriber.professions)}\n"
            "Set them with /professions name1, name2"
        )

    if command == "/professions":
        subscriber = subscribers.get_or_create(chat_id)
        if not args:
            return f"Your professions: {_format_list(subscriber.professions)}"

        by_lower = {name.lower(): name for name in available}
        wanted = [a.strip() for a in args.split(",") if a.strip()]
        unknown = [w for w in wanted if w.lower() not in by_lower]
        if unknown:
            return (
                f"Unknown professions: {_format_list(unknown)}\n"
                f"Available professions: {_format_list(available)}"
            )
        chosen = []
        for w in wanted:
            name = by_lower[w.lower()]
            if name not in chosen:
                chosen.append(name)
        subscriber.professions = chosen
        subscribers.save(subscriber)
        logger.info("Subscriber updated", chat_id=chat_id, professions=chosen)
        return f"Your professions: {_format_list(chosen)}"

    if command == "/check":
        subscriber = subscribers.get_or_create(chat_id)
        if dispatcher is None:
            return "Notifications are not configured."
        sent = dispatcher.dispatch_to(subscriber)
        return None if sent else "No new jobs for your professions right now."

    return None


def handle_update(
    update: Any,
    kv: KeyValueStore,
    channel: MessageChannel,
    dispatcher: Dispatcher | None = None,
) -> str | None:
    """Process a Telegram webhook update. Returns the reply that was sent."""
    if not isinstance(update, dict):
        return None
    message = update.get("message")
    if not isinstance(message, dict):
        return None
    text = message.get("text")
    chat_id = (message.get("chat") or {}).get("id")
    if not text or chat_id is None or not text.startswith("/"):
        return None

    reply = handle_command(int(chat_id), text, kv, dispatcher)
    if reply:
        try:
            channel.send(int(chat_id), reply)
        except DeliveryFailure as e:
            logger.warning("Could not send command reply", chat_id=chat_id, error=str(e))
    return reply
