"""Report sink for release commands.

Every step that can fail or emit a user-facing diagnostic receives the Report
explicitly. Nothing here raises: the report only accumulates messages and
derives the exit status from them.
"""

from dataclasses import dataclass, field
from enum import Enum

import structlog
from rich.console import Console
from rich.table import Table

from ..models.results import PublishStatus, ReleaseResult

logger = structlog.get_logger(__name__)


class MessageCategory(str, Enum):
    """Stable category tag so tooling can tell failure classes apart."""

    CYCLIC_DEPENDENCIES = "cyclic_dependencies"
    UNRELEASABLE_PACKAGES = "unreleasable_packages"
    PUBLISH_FAILED = "publish_failed"
    NETWORK_ERROR = "network_error"
    USAGE_ERROR = "usage_error"
    INFO = "info"


class MessageLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ReportMessage:
    """One named message recorded on a report."""

    category: MessageCategory
    level: MessageLevel
    text: str
    package: str | None = None

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.text}"


@dataclass
class Report:
    """
    Accumulates named errors, warnings and info messages for one command run.

    Attributes:
        messages: Every recorded message in order
        console: Optional rich console that echoes messages as they arrive
    """

    messages: list[ReportMessage] = field(default_factory=list)
    console: Console | None = None

    def report_error(
        self, category: MessageCategory, text: str, package: str | None = None
    ) -> None:
        self._record(ReportMessage(category, MessageLevel.ERROR, text, package))

    def report_warning(
        self, category: MessageCategory, text: str, package: str | None = None
    ) -> None:
        self._record(ReportMessage(category, MessageLevel.WARNING, text, package))

    def report_info(self, text: str, package: str | None = None) -> None:
        self._record(ReportMessage(MessageCategory.INFO, MessageLevel.INFO, text, package))

    def _record(self, message: ReportMessage) -> None:
        self.messages.append(message)

        log = logger.error if message.level == MessageLevel.ERROR else logger.info
        log(
            "Report message",
            category=message.category.value,
            level=message.level.value,
            text=message.text,
            package=message.package,
        )

        if self.console is not None:
            style = {
                MessageLevel.ERROR: "red",
                MessageLevel.WARNING: "yellow",
                MessageLevel.INFO: "cyan",
            }[message.level]
            prefix = message.level.value.upper()
            self.console.print(f"[{style}]{prefix}[/{style}] {message.text}")

    @property
    def errors(self) -> list[ReportMessage]:
        return [m for m in self.messages if m.level == MessageLevel.ERROR]

    def errors_in(self, category: MessageCategory) -> list[ReportMessage]:
        """Return the recorded errors of one category."""
        return [m for m in self.errors if m.category == category]

    def has_errors(self) -> bool:
        return bool(self.errors)

    def exit_code(self) -> int:
        """Process exit status: 1 if any error was recorded, else 0."""
        return 1 if self.has_errors() else 0


def render_release_summary(result: ReleaseResult, console: Console) -> None:
    """
    Print a per-package summary table of a release run.

    Args:
        result: Release result to render
        console: Rich console for output
    """
    table = Table(title="Release Summary")
    table.add_column("Package", style="cyan")
    table.add_column("Version")
    table.add_column("Status")
    table.add_column("Details", overflow="fold")

    styles = {
        PublishStatus.PUBLISHED: "green",
        PublishStatus.FAILED: "red",
        PublishStatus.SKIPPED: "yellow",
    }
    for r in result.results:
        style = styles[r.status]
        status = r.status.value + (" (dry run)" if r.dry_run else "")
        table.add_row(
            r.package, r.version or "-", f"[{style}]{status}[/{style}]", r.error_message or ""
        )

    console.print(table)
    console.print(result.get_summary())
