"""Email service with multiple provider support.

Supports:
- SMTP (Gmail by default)
- Resend (HTTP API)
- Console/Log (development - just logs emails)

Every provider exposes the same two-step contract: ``verify()`` checks that
the transport is reachable and accepts our credentials, ``send()`` delivers
one message. Both raise ``EmailError`` with a human-readable message.
"""

import asyncio
import os
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib
import httpx
import structlog

from walkthrough_recorder.config import EmailBackend, Settings

logger = structlog.get_logger()


class EmailError(Exception):
    """Raised when the mail transport cannot verify or deliver."""
    pass


class EmailNotConfiguredError(EmailError):
    """Raised when no mail transport is configured."""
    pass


class EmailProvider(ABC):
    """Abstract base class for email providers."""

    name: str = "base"

    @abstractmethod
    async def verify(self) -> None:
        """Check that the transport is reachable.

        Raises:
            EmailError: If the transport is unavailable or rejects credentials
        """
        pass

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
    ) -> None:
        """Send an email.

        Args:
            to: Recipient email address
            subject: Email subject
            html: HTML body content
            text: Plain text body content (optional)
            from_email: Sender email address
            from_name: Sender display name

        Raises:
            EmailError: If the message could not be delivered
        """
        pass


class ConsoleEmailProvider(EmailProvider):
    """Development provider - logs emails to console instead of sending."""

    name = "console"

    async def verify(self) -> None:
        logger.debug("Console email provider verified")

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
    ) -> None:
        logger.info(
            "Email sent (console/development mode)",
            to=to,
            subject=subject,
            from_email=from_email,
            from_name=from_name,
            html_length=len(html),
            text_length=len(text) if text else 0,
        )
        if os.getenv("EMAIL_DEBUG", "false").lower() == "true":
            logger.debug("Email HTML content", html=html)


class ResendEmailProvider(EmailProvider):
    """Resend.com email provider.

    See: https://resend.com/docs/api-reference/emails/send-email
    """

    name = "resend"
    API_URL = "https://api.resend.com/emails"
    DOMAINS_URL = "https://api.resend.com/domains"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def verify(self) -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(self.DOMAINS_URL, headers=self._headers(), timeout=15.0)
        except httpx.RequestError as e:
            raise EmailError(f"Resend unreachable: {e}") from e

        # Send-only keys cannot list domains but are still valid for delivery
        if response.status_code == 401 and "restricted_api_key" in response.text:
            return
        if response.status_code != 200:
            raise EmailError(f"Resend rejected credentials (HTTP {response.status_code})")

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
    ) -> None:
        from_field = from_email or "noreply@walkthroughs.app"
        if from_name:
            from_field = f"{from_name} <{from_field}>"

        payload = {
            "from": from_field,
            "to": [to] if isinstance(to, str) else to,
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.API_URL,
                    headers=self._headers(),
                    json=payload,
                    timeout=30.0,
                )
        except httpx.RequestError as e:
            logger.error("Resend request failed", error=str(e), to=to, subject=subject)
            raise EmailError(f"Resend request failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                "Resend API error",
                status_code=response.status_code,
                response=response.text,
                to=to,
                subject=subject,
            )
            raise EmailError(f"Resend API error (HTTP {response.status_code}): {response.text[:200]}")

        logger.info(
            "Email sent via Resend",
            to=to,
            subject=subject,
            message_id=response.json().get("id"),
        )


class SMTPEmailProvider(EmailProvider):
    """SMTP email provider (Gmail SMTP with an app password by default)."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        start_tls: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.timeout = timeout

    async def verify(self) -> None:
        smtp = aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            use_tls=self.use_tls,
            start_tls=self.start_tls,
            timeout=self.timeout,
        )
        try:
            await smtp.connect()
            if self.username and self.password:
                await smtp.login(self.username, self.password)
            await smtp.noop()
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
            logger.error("SMTP verification failed", host=self.host, port=self.port, error=str(e))
            raise EmailError(f"Email service unavailable: {e}") from e
        finally:
            if smtp.is_connected:
                try:
                    await smtp.quit()
                except aiosmtplib.SMTPException:
                    smtp.close()

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
    ) -> None:
        sender = from_email or self.username or "noreply@walkthroughs.app"
        sender_display = f"{from_name} <{sender}>" if from_name else sender

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender_display
        msg["To"] = to

        if text:
            msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=self.use_tls,
                start_tls=self.start_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
            logger.error("SMTP send failed", error=str(e), to=to, subject=subject, host=self.host)
            raise EmailError(f"SMTP send failed: {e}") from e

        logger.info("Email sent via SMTP", to=to, subject=subject, host=self.host)


class EmailService:
    """Mail capability used by the notifier.

    A service without a provider is valid: it represents an unconfigured
    transport and fails every call with EmailNotConfiguredError.
    """

    NOT_CONFIGURED_MESSAGE = (
        "Email transporter not configured. Please check GMAIL_USER and "
        "GMAIL_APP_PASSWORD environment variables."
    )

    def __init__(
        self,
        provider: EmailProvider | None = None,
        from_email: str = "noreply@walkthroughs.app",
        from_name: str | None = None,
        smtp_summary: dict | None = None,
    ):
        self.provider = provider
        self.from_email = from_email
        self.from_name = from_name
        # Host/port/sender shown in diagnostic emails
        self.smtp_summary = smtp_summary or {}

    @property
    def is_configured(self) -> bool:
        return self.provider is not None

    def _require_provider(self) -> EmailProvider:
        if self.provider is None:
            raise EmailNotConfiguredError(self.NOT_CONFIGURED_MESSAGE)
        return self.provider

    async def verify(self) -> None:
        """Verify the configured transport.

        Raises:
            EmailNotConfiguredError: If no provider is configured
            EmailError: If the transport is unavailable
        """
        await self._require_provider().verify()

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> None:
        """Send an email using the configured provider.

        Raises:
            EmailNotConfiguredError: If no provider is configured
            EmailError: If delivery failed
        """
        await self._require_provider().send(
            to=to,
            subject=subject,
            html=html,
            text=text,
            from_email=self.from_email,
            from_name=self.from_name,
        )


def _select_provider(settings: Settings) -> Optional[EmailProvider]:
    """Pick the email provider for the configured backend."""
    backend = settings.email_backend
    resend_key = settings.resend_api_key.get_secret_value() if settings.resend_api_key else None
    gmail_password = (
        settings.gmail_app_password.get_secret_value() if settings.gmail_app_password else None
    )

    if backend == EmailBackend.DISABLED:
        return None
    if backend == EmailBackend.CONSOLE:
        logger.info("Using Console email provider (development mode)")
        return ConsoleEmailProvider()

    if backend in (EmailBackend.AUTO, EmailBackend.RESEND) and resend_key:
        logger.info("Using Resend email provider")
        return ResendEmailProvider(resend_key)

    if backend in (EmailBackend.AUTO, EmailBackend.SMTP) and settings.gmail_user and gmail_password:
        logger.info("Using SMTP email provider", host=settings.smtp_host)
        return SMTPEmailProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.gmail_user,
            password=gmail_password,
            start_tls=settings.smtp_start_tls,
        )

    logger.warning("No email transport configured", backend=backend.value)
    return None


def create_email_service(settings: Settings) -> EmailService:
    """Build an EmailService from settings."""
    return EmailService(
        provider=_select_provider(settings),
        from_email=settings.sender_address,
        from_name=settings.email_from_name,
        smtp_summary={
            "host": settings.smtp_host,
            "port": settings.smtp_port,
            "sender": settings.sender_address,
        },
    )
