"""Service layer between the transport and the interview engine."""

from .interview_service import InterviewService, build_service

__all__ = ["InterviewService", "build_service"]
