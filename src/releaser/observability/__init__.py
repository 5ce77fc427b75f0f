"""Observability - logging and reporting."""

from .logger import LogContext, add_context, clear_all_context, configure_logging
from .report import MessageCategory, MessageLevel, Report, ReportMessage, render_release_summary

__all__ = [
    "configure_logging",
    "add_context",
    "clear_all_context",
    "LogContext",
    "MessageCategory",
    "MessageLevel",
    "Report",
    "ReportMessage",
    "render_release_summary",
]
