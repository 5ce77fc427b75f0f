"""Unit tests for the report sink and the release summary."""

from rich.console import Console

from releaser.models.results import FailureKind, PublishResult, ReleaseResult
from releaser.observability import (
    MessageCategory,
    MessageLevel,
    Report,
    render_release_summary,
)


class TestReport:
    """Report accumulation and exit status."""

    def test_empty_report_succeeds(self):
        report = Report()

        assert not report.has_errors()
        assert report.exit_code() == 0

    def test_warnings_and_info_do_not_fail(self):
        report = Report()
        report.report_warning(MessageCategory.PUBLISH_FAILED, "Skipped b")
        report.report_info("No packages changed since v1.0.0")

        assert report.exit_code() == 0
        assert [m.level for m in report.messages] == [MessageLevel.WARNING, MessageLevel.INFO]

    def test_errors_by_category(self):
        report = Report()
        report.report_error(MessageCategory.CYCLIC_DEPENDENCIES, "Dependency cycle detected: a -> b")
        report.report_error(MessageCategory.NETWORK_ERROR, "down", package="a")

        assert report.exit_code() == 1
        assert len(report.errors_in(MessageCategory.CYCLIC_DEPENDENCIES)) == 1
        assert report.errors_in(MessageCategory.NETWORK_ERROR)[0].package == "a"
        assert report.errors_in(MessageCategory.USAGE_ERROR) == []

    def test_message_string_carries_category(self):
        report = Report()
        report.report_error(MessageCategory.USAGE_ERROR, "run me at the root")

        assert str(report.messages[0]) == "[usage_error] run me at the root"

    def test_console_echo(self):
        console = Console(record=True, width=120)
        report = Report(console=console)

        report.report_error(MessageCategory.PUBLISH_FAILED, "Failed to publish a@1.0.0: boom")

        output = console.export_text()
        assert "ERROR" in output
        assert "Failed to publish a@1.0.0: boom" in output


class TestReleaseSummary:
    def test_render(self):
        result = ReleaseResult(
            results=[
                PublishResult.published("a", "1.1.0", dry_run=True),
                PublishResult.failed("b", "1.1.0", "HTTP 500", FailureKind.REJECTED, 500),
                PublishResult.skipped("c", "1.1.0", "dependency b failed to publish"),
            ],
            batches=[["a", "b"], ["c"]],
        )
        console = Console(record=True, width=160)

        render_release_summary(result, console)

        output = console.export_text()
        assert "Release Summary" in output
        assert "published (dry run)" in output
        assert "dependency b failed to publish" in output
        assert "1 published, 1 failed, 1 skipped in 2 batches" in output
