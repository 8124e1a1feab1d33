"""Completion notifications for recording sessions."""

from html import escape
from typing import Any, Optional

import structlog

from walkthrough_recorder.recording.models import RecordingSession
from walkthrough_recorder.services.email_service import EmailService

logger = structlog.get_logger()


COMPLETION_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: linear-gradient(135deg, #8B5CF6, #A855F7); padding: 20px; text-align: center;">
    <h1 style="color: white; margin: 0;">Your Walkthrough is Ready!</h1>
  </div>
  <div style="padding: 30px; background: #f9fafb;">
    <h2 style="color: #1f2937;">Hello!</h2>
    <p style="color: #4b5563; line-height: 1.6;">
      Your requested walkthrough for "<strong>{prompt}</strong>" has been successfully recorded and processed.
    </p>
    <div style="background: white; border-radius: 8px; padding: 20px; margin: 20px 0; border-left: 4px solid #8B5CF6;">
      <h3 style="margin: 0 0 10px 0; color: #1f2937;">Video Walkthrough</h3>
      <p style="margin: 0 0 15px 0; color: #6b7280;">Watch the complete step-by-step tutorial:</p>
      <a href="{video_url}" style="display: inline-block; background: #8B5CF6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; font-weight: 500;">
        Watch Video Tutorial
      </a>
    </div>
{script_block}
    <div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #e5e7eb;">
      <p style="color: #6b7280; font-size: 14px;">
        This walkthrough was generated automatically. If you have any questions, just reply to this email.
      </p>
    </div>
  </div>
</div>
"""

SCRIPT_TEMPLATE = """\
    <div style="background: white; border-radius: 8px; padding: 20px; margin: 20px 0; border-left: 4px solid #10b981;">
      <h3 style="margin: 0 0 10px 0; color: #1f2937;">Tutorial Script</h3>
      <p style="margin: 0 0 15px 0; color: #6b7280;">Read the step-by-step instructions:</p>
      <div style="background: #f3f4f6; padding: 15px; border-radius: 4px; font-family: monospace; white-space: pre-wrap; color: #374151;">{script}</div>
    </div>
"""

TEST_TEMPLATE = """\
<h2>Email Configuration Test</h2>
<p>This is a test email to verify that your email configuration is working correctly.</p>
<p>If you received this email, your mail settings are properly configured!</p>
<p><strong>Configuration Details:</strong></p>
<ul>
  <li>SMTP Host: {host}</li>
  <li>Port: {port}</li>
  <li>Sender: {sender}</li>
</ul>
"""


class Notifier:
    """Send completion emails through the mail capability.

    ``notify`` reports its outcome instead of raising so the caller can
    record it on the session.
    """

    def __init__(self, email_service: EmailService, public_base_url: str = ""):
        self.email_service = email_service
        self.public_base_url = public_base_url.rstrip("/")
        self.log = logger.bind(component="notifier")

    def absolute_video_url(self, video_url: Optional[str]) -> str:
        if not video_url:
            return ""
        if video_url.startswith("/") and self.public_base_url:
            return f"{self.public_base_url}{video_url}"
        return video_url

    def subject_for(self, session: RecordingSession) -> str:
        return f'Your "{session.user_prompt}" walkthrough is ready!'

    def render_completion(self, session: RecordingSession) -> str:
        script_block = ""
        if session.script_content:
            script_block = SCRIPT_TEMPLATE.format(script=escape(session.script_content))
        return COMPLETION_TEMPLATE.format(
            prompt=escape(session.user_prompt),
            video_url=escape(self.absolute_video_url(session.video_url), quote=True),
            script_block=script_block,
        )

    def render_text(self, session: RecordingSession) -> str:
        lines = [
            f'Your requested walkthrough for "{session.user_prompt}" has been recorded and processed.',
            "",
            f"Watch it here: {self.absolute_video_url(session.video_url)}",
        ]
        if session.script_content:
            lines += ["", "Tutorial script:", session.script_content]
        return "\n".join(lines)

    async def notify(self, session: RecordingSession) -> tuple[bool, Optional[str]]:
        """Verify the transport and send the completion email.

        Returns:
            (True, None) on success, (False, reason) on any failure
        """
        log = self.log.bind(session_id=session.id)
        try:
            await self.email_service.verify()
            await self.email_service.send_email(
                to=session.email,
                subject=self.subject_for(session),
                html=self.render_completion(session),
                text=self.render_text(session),
            )
        except Exception as e:
            log.error("Completion email failed", error=str(e), error_type=type(e).__name__)
            return False, str(e) or type(e).__name__

        log.info("Completion email sent", to=session.email)
        return True, None

    async def test_email_configuration(self, email: str) -> dict[str, Any]:
        """Verify the transport and send a diagnostic message."""
        if not self.email_service.is_configured:
            return {"success": False, "message": EmailService.NOT_CONFIGURED_MESSAGE}

        summary = self.email_service.smtp_summary
        try:
            await self.email_service.verify()
            await self.email_service.send_email(
                to=email,
                subject="Walkthroughs Email Test",
                html=TEST_TEMPLATE.format(
                    host=escape(str(summary.get("host", ""))),
                    port=escape(str(summary.get("port", ""))),
                    sender=escape(str(summary.get("sender", ""))),
                ),
            )
        except Exception as e:
            self.log.error("Email test failed", to=email, error=str(e))
            return {"success": False, "message": f"Email test failed: {str(e) or 'Unknown error'}"}

        return {"success": True, "message": f"Test email sent successfully to {email}"}
