"""
Notification providers and the multi-channel fan-out dispatcher.

Supports two delivery channels: email (SMTP) and SMS (Twilio). Console
providers stand in for both in development. Channel delivery is
best-effort: the dispatcher attempts every channel independently and
reports a result per channel, so one failing provider never blocks the
others.
"""
import asyncio
import enum
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional

from twilio.rest import Client as TwilioClient

from carwash.lib.logging import get_logger
from carwash.lib.settings import settings


logger = get_logger(__name__)


class NotificationChannel(str, enum.Enum):
    """Delivery channels."""
    EMAIL = "email"
    SMS = "sms"


class NotificationProvider(ABC):
    """
    Abstract base class for notification delivery providers.
    """

    @abstractmethod
    async def send(
        self,
        to: str,
        message: str,
        **kwargs
    ) -> bool:
        """
        Send notification via this provider.

        Args:
            to: Recipient identifier (email address or phone number)
            message: Message content to send
            **kwargs: Provider-specific parameters

        Returns:
            True if sent successfully, False otherwise
        """
        pass

    @property
    @abstractmethod
    def channel(self) -> NotificationChannel:
        """Return the channel this provider supports."""
        pass


class SMTPEmailProvider(NotificationProvider):
    """
    Email provider using SMTP (SSL on port 465, STARTTLS otherwise).

    smtplib blocks, so each send runs in a worker thread.
    """

    def __init__(self):
        if not settings.smtp_username or not settings.smtp_password:
            raise ValueError(
                "SMTP credentials not configured. "
                "Set SMTP_USERNAME and SMTP_PASSWORD environment variables."
            )
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.from_email = settings.smtp_from_email or settings.smtp_username
        self.from_name = settings.smtp_from_name

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.EMAIL

    def _build_message(self, to: str, message: str, subject: str, html: Optional[str]) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to
        msg.attach(MIMEText(message, "plain"))
        if html:
            msg.attach(MIMEText(html, "html"))
        return msg

    def _deliver(self, to: str, msg: MIMEMultipart) -> None:
        if self.smtp_port == 465:
            with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.from_email, [to], msg.as_string())
        else:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.from_email, [to], msg.as_string())

    async def send(
        self,
        to: str,
        message: str,
        **kwargs
    ) -> bool:
        """
        Send an email.

        Args:
            to: Recipient email address
            message: Plain-text body
            **kwargs: subject, html

        Returns:
            True if the SMTP server accepted the message
        """
        subject = kwargs.get("subject", settings.app_name)
        msg = self._build_message(to, message, subject, kwargs.get("html"))

        try:
            await asyncio.to_thread(self._deliver, to, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email via SMTP: {e}", extra={"to": to})
            return False

        logger.info("Email sent via SMTP", extra={"to": to, "subject": subject})
        return True


class TwilioSMSProvider(NotificationProvider):
    """
    Twilio SMS provider for sending text messages.
    """

    def __init__(self, client: Optional[TwilioClient] = None):
        self.from_number = settings.twilio_from_number
        self.client = client or TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)
        logger.info("Twilio SMS provider initialized")

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.SMS

    async def send(
        self,
        to: str,
        message: str,
        **kwargs
    ) -> bool:
        """
        Send SMS via Twilio.

        Args:
            to: Phone number in E.164 format
            message: SMS text content
            **kwargs: Ignored

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            msg = await asyncio.to_thread(
                self.client.messages.create,
                body=message,
                from_=self.from_number,
                to=to,
            )
        except Exception as e:
            logger.error(f"Failed to send SMS via Twilio: {e}", extra={"to": to})
            return False

        logger.info(f"SMS sent via Twilio: {msg.sid}", extra={"to": to})
        return True


class ConsoleEmailProvider(NotificationProvider):
    """
    Console email provider for development/testing.
    Prints messages to console instead of sending.
    """

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.EMAIL

    async def send(
        self,
        to: str,
        message: str,
        **kwargs
    ) -> bool:
        subject = kwargs.get("subject", settings.app_name)
        print("\n" + "=" * 60)
        print(f"Email to {to}: {subject}")
        print(f"   {message}")
        print("=" * 60 + "\n")
        logger.info("Email logged to console", extra={"to": to, "subject": subject})
        return True


class ConsoleSMSProvider(NotificationProvider):
    """
    Console SMS provider for development/testing.
    Prints messages to console instead of sending.
    """

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.SMS

    async def send(
        self,
        to: str,
        message: str,
        **kwargs
    ) -> bool:
        print("\n" + "=" * 60)
        print(f"SMS to {to}:")
        print(f"   {message}")
        print("=" * 60 + "\n")
        logger.info("SMS logged to console", extra={"to": to})
        return True


@dataclass
class ChannelMessage:
    """One message to deliver on one channel."""
    channel: NotificationChannel
    to: str
    message: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChannelResult:
    """Outcome of a single channel attempt."""
    channel: NotificationChannel
    attempted: bool
    success: bool
    error: Optional[str] = None


class NotificationDispatcher:
    """
    Sends a set of channel messages, isolating each channel's failure.
    """

    def __init__(self, providers: Dict[NotificationChannel, NotificationProvider]):
        self._providers = dict(providers)

    def get_provider(self, channel: NotificationChannel) -> Optional[NotificationProvider]:
        return self._providers.get(channel)

    async def _attempt(self, request: ChannelMessage) -> ChannelResult:
        provider = self.get_provider(request.channel)
        if provider is None:
            logger.error(f"No provider for channel: {request.channel.value}")
            return ChannelResult(request.channel, attempted=False, success=False, error="no provider configured")

        try:
            success = await provider.send(request.to, request.message, **request.options)
        except Exception as e:
            logger.error(
                f"Error sending {request.channel.value} notification: {e}",
                extra={"to": request.to},
                exc_info=True,
            )
            return ChannelResult(request.channel, attempted=True, success=False, error=str(e))

        if not success:
            logger.warning(f"{request.channel.value} notification not delivered", extra={"to": request.to})
            return ChannelResult(request.channel, attempted=True, success=False, error="provider reported failure")

        return ChannelResult(request.channel, attempted=True, success=True)

    async def fan_out(self, requests: List[ChannelMessage]) -> Dict[NotificationChannel, ChannelResult]:
        """
        Attempt every channel concurrently.

        Returns:
            Result per requested channel
        """
        results = await asyncio.gather(*(self._attempt(request) for request in requests))
        return {result.channel: result for result in results}


def get_notification_dispatcher() -> NotificationDispatcher:
    """
    Build a dispatcher from settings.

    notification_provider=live uses SMTP and Twilio where credentials are
    configured; anything else (or missing credentials) falls back to the
    console providers.
    """
    providers: Dict[NotificationChannel, NotificationProvider] = {}

    live = settings.notification_provider == "live"

    if live and settings.smtp_username and settings.smtp_password:
        providers[NotificationChannel.EMAIL] = SMTPEmailProvider()
    else:
        providers[NotificationChannel.EMAIL] = ConsoleEmailProvider()

    if live and settings.twilio_account_sid:
        providers[NotificationChannel.SMS] = TwilioSMSProvider()
    else:
        providers[NotificationChannel.SMS] = ConsoleSMSProvider()

    logger.info(
        "NotificationDispatcher initialized",
        extra={channel.value: type(provider).__name__ for channel, provider in providers.items()},
    )
    return NotificationDispatcher(providers)
