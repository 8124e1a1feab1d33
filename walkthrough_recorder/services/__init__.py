"""External service clients used by the recording pipeline."""

from walkthrough_recorder.services.email_service import (
    ConsoleEmailProvider,
    EmailError,
    EmailNotConfiguredError,
    EmailProvider,
    EmailService,
    ResendEmailProvider,
    SMTPEmailProvider,
    create_email_service,
)

__all__ = [
    "EmailProvider",
    "ConsoleEmailProvider",
    "ResendEmailProvider",
    "SMTPEmailProvider",
    "EmailService",
    "EmailError",
    "EmailNotConfiguredError",
    "create_email_service",
]
