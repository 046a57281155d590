"""
Completion email delivery.
"""

from __future__ import annotations

import asyncio
from html import escape
from typing import TYPE_CHECKING

import structlog
from src.domain.models import InvalidGuestDataError
from src.domain.services.report_builder import resolve_owner
from src.libs.resend_client import EmailAttachment, ResendClientError, ResendClientProtocol

if TYPE_CHECKING:
    from src.core.config import Settings
    from src.domain.services.artifact_store import StoredArtifact
    from src.domain.services.collaborators import UserDirectoryProtocol
    from src.infrastructure.db.models import Assessment

logger = structlog.get_logger(__name__)

EMAIL_SUBJECT = "Your MyZone AI Readiness Assessment Results Are Ready!"
DEFAULT_RECIPIENT_NAME = "Valued User"
DEFAULT_COMPANY_NAME = "your organization"


class CompletionNotifier:
    """Sends the report-ready email. Delivery is best effort and never raises."""

    def __init__(
        self,
        client: ResendClientProtocol,
        users: UserDirectoryProtocol,
        settings: Settings,
    ) -> None:
        self.client = client
        self.users = users
        self.settings = settings

    def download_url(self, relative_path: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}{relative_path}"

    async def notify(self, assessment: Assessment, artifact: StoredArtifact) -> bool:
        try:
            return await self._send(assessment, artifact)
        except (ResendClientError, InvalidGuestDataError, OSError) as exc:
            await logger.aerror(
                "completion_email_failed",
                assessment_id=assessment.id,
                error=str(exc),
            )
        except Exception as exc:
            await logger.aexception(
                "completion_email_unexpected_error",
                assessment_id=assessment.id,
                error=str(exc),
            )
        return False

    async def _send(self, assessment: Assessment, artifact: StoredArtifact) -> bool:
        owner = await resolve_owner(assessment, self.users)
        if not owner.recipient_email:
            await logger.ainfo("completion_email_skipped_no_recipient", assessment_id=assessment.id)
            return False

        from_email = self.settings.resend_from_email
        if not from_email:
            await logger.awarning(
                "completion_email_skipped",
                assessment_id=assessment.id,
                reason="RESEND_FROM_EMAIL not configured",
            )
            return False

        recipient_name = owner.recipient_name or DEFAULT_RECIPIENT_NAME
        company_name = owner.company_name or DEFAULT_COMPANY_NAME
        url = self.download_url(artifact.relative_path)
        text_body, html_body = self._build_email_content(recipient_name, company_name, url)

        attachments = None
        if artifact.size <= self.settings.email_attachment_max_bytes:
            attachments = [
                EmailAttachment(
                    filename=artifact.file_name,
                    content=await asyncio.to_thread(artifact.absolute_path.read_bytes),
                )
            ]

        response = await self.client.send_email(
            from_email=from_email,
            to_emails=[owner.recipient_email],
            subject=EMAIL_SUBJECT,
            html=html_body,
            text=text_body,
            attachments=attachments,
        )
        await logger.ainfo(
            "completion_email_sent",
            assessment_id=assessment.id,
            to_email=owner.recipient_email,
            resend_id=response.id,
            attached=attachments is not None,
        )
        return True

    def _build_email_content(
        self,
        recipient_name: str,
        company_name: str,
        download_url: str,
    ) -> tuple[str, str]:
        text_body = "\n".join(
            [
                f"Hi {recipient_name},",
                "",
                f"Thank you for completing the AI Readiness Assessment for {company_name}.",
                "Your personalised report with category scores and recommendations is ready.",
                "",
                f"Download your report: {download_url}",
                "",
                "Thank you,",
                "The MyZone AI Team",
            ]
        )

        name_html = escape(recipient_name)
        company_html = escape(company_name)
        url_html = escape(download_url)
        html_body = (
            f"<p>Hi {name_html},</p>"
            "<p>Thank you for completing the AI Readiness Assessment for "
            f"<strong>{company_html}</strong>.</p>"
            "<p>Your personalised report with category scores and recommendations is ready.</p>"
            f'<p><a href="{url_html}">Download your report</a></p>'
            "<p>Thank you,<br>The MyZone AI Team</p>"
        )
        return text_body, html_body
