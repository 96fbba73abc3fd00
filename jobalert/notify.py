"""
Subscriber fan-out and Telegram delivery.

Every live pending job is sent to each subscriber whose profession
interests contain the job's profession. A delivery marker per
(job, subscriber) keeps repeated dispatch passes from resending the same
alert while the job is still pending.
"""
from __future__ import annotations

import html
from typing import Protocol

import requests

from .errors import DeliveryFailure
from .logger import get_logger
from .models import Job, Subscriber
from .publisher import PublishStore
from .retry import (
    CircuitBreaker,
    CircuitOpenError,
    RetryError,
    exponential_backoff,
    should_retry_http_status,
)
from .storage import KeyValueStore

logger = get_logger()

SUBSCRIBER_PREFIX = "user:"


def subscriber_key(chat_id: int) -> str:
    return f"{SUBSCRIBER_PREFIX}{chat_id}"


def delivery_key(job_id: str, chat_id: int) -> str:
    return f"sent:{job_id}:{chat_id}"


class MessageChannel(Protocol):
    def send(self, chat_id: int, text: str) -> None: ...


class _TransientStatus(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


@exponential_backoff(
    max_retries=2,
    base_delay=1.0,
    exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, _TransientStatus),
)
def _post_with_retry(url: str, payload: dict, timeout: float):
    resp = requests.post(url, json=payload, timeout=timeout)
    if should_retry_http_status(resp.status_code):
        raise _TransientStatus(resp.status_code)
    return resp


class TelegramChannel:
    """Sends HTML-formatted messages through the Telegram Bot API."""

    def __init__(
        self,
        token: str | None,
        api_base: str = "https://api.telegram.org",
        timeout: float = 15.0,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=60,
            expected_exception=(RetryError, requests.exceptions.RequestException),
        )

    def send(self, chat_id: int, text: str) -> None:
        if not self.token:
            raise DeliveryFailure("TELEGRAM_BOT_TOKEN is not configured")

        url = f"{self.api_base}/bot{self.token}/sendMessage"
        payload = {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}
        try:
            resp = self.breaker.call(_post_with_retry, url, payload, self.timeout)
        except CircuitOpenError as e:
            raise DeliveryFailure(str(e)) from e
        except RetryError as e:
            raise DeliveryFailure(f"Telegram unreachable: {e}") from e
        except requests.exceptions.RequestException as e:
            raise DeliveryFailure(f"Telegram request error: {e}") from e

        if not resp.ok:
            description = ""
            try:
                description = resp.json().get("description", "")
            except ValueError:
                pass
            raise DeliveryFailure(f"Telegram rejected message ({resp.status_code}): {description}")


def format_job_message(job: Job) -> str:
    e = html.escape
    return "\n".join([
        "🆕 New Job Alert!",
        "",
        f"🏢 {e(job.company)}",
        f"👨‍💻 {e(job.title)}",
        f"📍 {e(job.location)}",
        f"🔍 {e(job.profession or '')}",
        f"🔗 {e(job.url)}",
    ])


class SubscriberStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def get(self, chat_id: int) -> Subscriber | None:
        data = self.kv.get_json(subscriber_key(chat_id))
        return Subscriber.from_dict(data) if data else None

    def get_or_create(self, chat_id: int) -> Subscriber:
        subscriber = self.get(chat_id)
        if subscriber is None:
            subscriber = Subscriber(chat_id=chat_id)
            self.save(subscriber)
        return subscriber

    def save(self, subscriber: Subscriber) -> None:
        self.kv.put_json(subscriber_key(subscriber.chat_id), subscriber.to_dict())

    def all(self) -> list[Subscriber]:
        subscribers = []
        for key, data in self.kv.items_json(SUBSCRIBER_PREFIX).items():
            try:
                subscribers.append(Subscriber.from_dict(data))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("Skipping malformed subscriber", key=key, error=str(e))
        return subscribers


class Dispatcher:
    def __init__(
        self,
        publish_store: PublishStore,
        subscribers: SubscriberStore,
        channel: MessageChannel,
        remember_deliveries: bool = True,
    ) -> None:
        self.publish_store = publish_store
        self.subscribers = subscribers
        self.channel = channel
        self.remember_deliveries = remember_deliveries

    @property
    def kv(self) -> KeyValueStore:
        return self.publish_store.kv

    def dispatch(self) -> int:
        """Deliver every pending job to every interested subscriber.

        Returns:
            Number of messages sent
        """
        jobs = self.publish_store.pending()
        subscribers = self.subscribers.all()
        sent = 0
        for job in jobs:
            for subscriber in subscribers:
                if subscriber.wants(job.profession) and self._deliver(job, subscriber):
                    sent += 1
        logger.info("Dispatch finished", pending=len(jobs), subscribers=len(subscribers), sent=sent)
        return sent

    def dispatch_to(self, subscriber: Subscriber) -> int:
        sent = 0
        for job in self.publish_store.pending():
            if subscriber.wants(job.profession) and self._deliver(job, subscriber):
                sent += 1
        return sent

    def _deliver(self, job: Job, subscriber: Subscriber) -> bool:
        marker = delivery_key(job.id, subscriber.chat_id)
        if self.remember_deliveries and self.kv.get(marker) is not None:
            return False
        try:
            self.channel.send(subscriber.chat_id, format_job_message(job))
        except DeliveryFailure as e:
            logger.record_delivery(False, "DeliveryFailure")
            logger.warning("Delivery failed", chat_id=subscriber.chat_id, job_id=job.id, error=str(e))
            return False
        logger.record_delivery(True)
        if self.remember_deliveries:
            self.kv.put(marker, "1", ttl=self.publish_store.retention_seconds)
        return True
