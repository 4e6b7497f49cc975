"""Email notifications delivered through a background queue."""

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any, Protocol

import resend
import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    """Structured outbound email."""

    to: str
    subject: str
    html: str
    sender: str

    def to_payload(self) -> dict[str, Any]:
        """Render the message in the email provider's wire format."""
        return {
            "from": self.sender,
            "to": [self.to],
            "subject": self.subject,
            "html": self.html,
        }


class EmailSender(Protocol):
    """Anything able to deliver an :class:`EmailMessage`."""

    async def send(self, message: EmailMessage) -> None:
        """Deliver the message or raise."""
        ...


class ResendEmailSender:
    """Deliver emails through the Resend API."""

    def __init__(self, api_key: str):
        """Initialize sender with a Resend API key."""
        self.api_key = api_key

    async def send(self, message: EmailMessage) -> None:
        """Send one email; the SDK is blocking so it runs in a worker thread."""
        if not self.api_key:
            raise RuntimeError("Email service not configured - RESEND_API_KEY missing")

        resend.api_key = self.api_key
        response = await asyncio.to_thread(resend.Emails.send, message.to_payload())
        logger.info("email_sent", to=message.to, subject=message.subject, response=str(response))


class NotificationDispatcher:
    """
    Queue of outbound emails with its own retry policy.

    Request handlers call :meth:`enqueue` and return immediately; a worker
    task started with the application delivers queued messages, retrying
    failed sends with exponential backoff. Delivery failures are logged and
    never reach the request that produced the message.
    """

    def __init__(
        self,
        sender: EmailSender,
        *,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        queue_size: int = 1000,
    ):
        """Initialize dispatcher around an email sender."""
        self.sender = sender
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.queue: asyncio.Queue[EmailMessage] = asyncio.Queue(maxsize=queue_size)

        self._accepting = True
        self._worker_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """Whether the background worker is alive."""
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        """Start the background delivery worker."""
        if self.is_running:
            return

        self._accepting = True
        self._worker_task = asyncio.create_task(self._worker())
        logger.info("notification_dispatcher_started")

    async def stop(self, timeout: float = 10.0) -> None:
        """Stop accepting messages, flush the queue and stop the worker."""
        self._accepting = False

        if self._worker_task is None:
            return

        try:
            await asyncio.wait_for(self.queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("notification_queue_not_drained", pending=self.queue.qsize())

        self._worker_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker_task
        self._worker_task = None
        logger.info("notification_dispatcher_stopped")

    def enqueue(self, message: EmailMessage) -> bool:
        """
        Hand a message over for delivery.

        Returns:
            True if the message was queued, False if it was rejected
        """
        if not self._accepting:
            logger.warning("notification_rejected", reason="dispatcher_stopped", to=message.to)
            return False

        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("notification_rejected", reason="queue_full", to=message.to)
            return False

        logger.debug("notification_enqueued", to=message.to, subject=message.subject)
        return True

    async def drain(self) -> int:
        """Deliver every queued message inline; returns how many were processed."""
        processed = 0
        while not self.queue.empty():
            message = self.queue.get_nowait()
            try:
                await self._deliver(message)
            finally:
                self.queue.task_done()
            processed += 1
        return processed

    async def _worker(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                await self._deliver(message)
            finally:
                self.queue.task_done()

    async def _deliver(self, message: EmailMessage) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.sender.send(message)
                return True
            except Exception as e:
                if attempt == self.max_attempts:
                    logger.error(
                        "notification_send_failed",
                        to=message.to,
                        subject=message.subject,
                        attempts=attempt,
                        error=str(e),
                    )
                    return False

                delay = self.retry_delay * 2 ** (attempt - 1)
                logger.warning(
                    "notification_send_retry",
                    to=message.to,
                    attempt=attempt,
                    retry_in=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        return False
