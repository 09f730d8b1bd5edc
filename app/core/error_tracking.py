"""
Error tracking and reporting.

Reports to Sentry when a DSN is configured; otherwise errors are only
logged locally.
"""

from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from app.config import settings

logger = structlog.get_logger(__name__)


class ErrorTracker:
    """Error tracking interface over the Sentry SDK."""

    def __init__(self, enabled: bool = False, dsn: str | None = None):
        self.enabled = bool(enabled and dsn)
        self.dsn = dsn

        if self.enabled:
            self._init_sentry(dsn)

    def _init_sentry(self, dsn: str) -> None:
        """Initialize Sentry SDK."""
        sentry_sdk.init(
            dsn=dsn,
            environment=settings.environment,
            release=settings.app_version,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            integrations=[
                FastApiIntegration(),
                SqlalchemyIntegration(),
                AsyncioIntegration(),
            ],
        )

        logger.info("sentry_initialized")

    def capture_exception(
        self,
        exception: Exception,
        context: dict[str, Any] | None = None,
    ) -> str | None:
        """
        Capture and report an exception.

        Args:
            exception: The exception to report
            context: Additional context (request, caller, etc.)

        Returns:
            Event ID from error tracker (or None)
        """
        if not self.enabled:
            logger.error(
                "exception_captured",
                exception=str(exception),
                exception_type=type(exception).__name__,
                context=context,
            )
            return None

        try:
            with sentry_sdk.new_scope() as scope:
                for key, value in (context or {}).items():
                    scope.set_extra(key, value)
                return sentry_sdk.capture_exception(exception)

        except Exception as e:
            logger.error(
                "error_tracking_failed",
                error=str(e),
                original_exception=str(exception),
            )
            return None

    def capture_message(
        self,
        message: str,
        level: str = "info",
        context: dict[str, Any] | None = None,
    ) -> str | None:
        """
        Capture a non-exception event.

        Used for fail-open permission checks, which are worth seeing in
        the error tracker even though the request goes through.
        """
        if not self.enabled:
            logger.info("message_captured", message=message, context=context)
            return None

        try:
            with sentry_sdk.new_scope() as scope:
                for key, value in (context or {}).items():
                    scope.set_extra(key, value)
                return sentry_sdk.capture_message(message, level=level)

        except Exception as e:
            logger.error("error_tracking_failed", error=str(e))
            return None


# Global error tracker instance
error_tracker = ErrorTracker(
    enabled=settings.sentry_enabled,
    dsn=settings.sentry_dsn,
)
