"""Career Discovery Report rendering and delivery."""

from .email_report import ReportRenderer, RenderedReport, report_subject
from .email_sender import ResendEmailSender

__all__ = ["ReportRenderer", "RenderedReport", "report_subject", "ResendEmailSender"]
