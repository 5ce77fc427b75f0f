"""
Release Runner - Encapsulates the command flows of the release tool.

Every command follows the same shape:
1. Preconditions (workspace root, release tag, manifest sanity). A failure
   here is reported as a usage error before anything is mutated.
2. Package selection (discovery, change set, tagged packages)
3. Graph construction and cycle check (structural errors stop the command)
4. The command's own work (print, bump, publish)

The runner never calls sys.exit: it returns the report's exit code and the
CLI turns it into the process status.
"""

import posixpath
from pathlib import Path

import structlog
from rich.console import Console
from rich.table import Table

from ..config import ReleaseConfig
from ..constants import MANIFEST_FILENAME
from ..dependency.graph import PackageGraph
from ..dependency.resolver import ChangeSetResolver
from ..models.package import Package
from ..models.results import ReleaseResult
from ..observability.report import MessageCategory, Report, render_release_summary
from ..prompts import Prompter
from ..registry.client import RegistryClient
from ..registry.publisher import RegistryPublisher
from ..utils.exceptions import PreconditionError, UnreleasablePackagesError
from ..vcs.git import GitRepository
from ..versioning.plan import VersionPlan
from ..versioning.semver import SemVer
from ..workspace.discovery import WorkspaceDiscovery, ensure_workspace_root, public_packages
from ..workspace.manifest import ManifestMutator
from .orchestrator import ReleaseOrchestrator
from .throttle import PublishThrottle

logger = structlog.get_logger(__name__)


def validate_publishable(packages: list[Package]) -> None:
    """
    Check that every package can be published.

    Raises:
        PreconditionError: For a package without a version
    """
    for package in packages:
        if not package.version:
            raise PreconditionError(f"{package.name} has no version in its manifest")


class ReleaseRunner:
    """
    Runs release commands against one workspace.
    """

    def __init__(
        self,
        config: ReleaseConfig,
        console: Console,
        root: Path,
        cwd: Path | None = None,
        report: Report | None = None,
        prompter: Prompter | None = None,
        vcs: GitRepository | None = None,
    ) -> None:
        """
        Initialize ReleaseRunner.

        Args:
            config: Release configuration
            console: Rich console for output
            root: Workspace root directory
            cwd: Directory the command was invoked from (defaults to root)
            report: Report sink (a console-echoing one is created if None)
            prompter: Confirmation prompter
            vcs: Git adapter (defaults to the repository at root)
        """
        self.config = config
        self.console = console
        self.root = root
        self.cwd = cwd or root
        self.report = report or Report(console=console)
        self.prompter = prompter or Prompter(console)
        self.vcs = vcs or GitRepository(root)

    def _discover(self, command: str) -> list[Package]:
        ensure_workspace_root(self.cwd, self.root, f"release-tool {command}")
        return WorkspaceDiscovery(self.root).discover()

    def _build_graph(self, packages: list[Package]) -> PackageGraph:
        return PackageGraph.from_packages(packages, self.config.policy.dependency_kinds)

    def _resolver(self) -> ChangeSetResolver:
        return ChangeSetResolver(
            self.vcs,
            ignore_patterns=self.config.changes.ignore_changes,
            implicit_dependencies=self.config.changes.implicit_dependencies,
        )

    def _usage_error(self, error: PreconditionError) -> int:
        self.report.report_error(MessageCategory.USAGE_ERROR, str(error))
        return self.report.exit_code()

    def _render_generations(self, generations: list[list[Package]], title: str) -> None:
        table = Table(title=title)
        table.add_column("Batch", justify="right", style="cyan")
        table.add_column("Packages")
        for index, generation in enumerate(generations, start=1):
            table.add_row(
                str(index), ", ".join(f"{p.name}@{p.version or '-'}" for p in generation)
            )
        self.console.print(table)

    # ------------------------------------------------------------------
    # check-cycles
    # ------------------------------------------------------------------

    def check_cycles(self, dot_path: Path | None = None) -> int:
        """
        Report dependency cycles among the public packages.

        Args:
            dot_path: Optional file to write the graph to (Graphviz DOT)

        Returns:
            Exit code (1 if any cycle was found)
        """
        try:
            packages = public_packages(self._discover("check-cycles"))
        except PreconditionError as e:
            return self._usage_error(e)

        graph = self._build_graph(packages)
        cycles = graph.detect_cycles(self.report)

        if dot_path:
            dot_path.write_text(graph.to_dot() + "\n", encoding="utf-8")
            self.console.print(f"[green]OK:[/green] Dependency graph written to {dot_path}")

        if not cycles:
            self.report.report_info(f"No dependency cycles among {len(packages)} packages")
        return self.report.exit_code()

    # ------------------------------------------------------------------
    # plan
    # ------------------------------------------------------------------

    def show_plan(self, changed_only: bool = False) -> int:
        """
        Print the publish batches without publishing anything.

        Args:
            changed_only: Restrict to packages changed since the last release tag

        Returns:
            Exit code
        """
        try:
            packages = public_packages(self._discover("plan"))
            if changed_only:
                tag = self.vcs.last_release_tag()
                packages = self._resolver().resolve(packages, tag.name)
        except PreconditionError as e:
            return self._usage_error(e)

        graph = self._build_graph(packages)
        if graph.detect_cycles(self.report):
            return self.report.exit_code()

        try:
            generations = graph.generations()
        except UnreleasablePackagesError as e:
            self.report.report_error(MessageCategory.UNRELEASABLE_PACKAGES, str(e))
            return self.report.exit_code()

        self._render_generations(generations, f"Publish Plan ({len(packages)} packages)")
        return self.report.exit_code()

    # ------------------------------------------------------------------
    # version
    # ------------------------------------------------------------------

    def _next_version(self, requested: str | None, current: str, prefix: str) -> SemVer:
        if requested:
            try:
                return SemVer.parse(requested, prefix=prefix)
            except ValueError as e:
                raise PreconditionError(str(e)) from e
        try:
            current_version = SemVer.parse(current, prefix=prefix)
        except ValueError as e:
            raise PreconditionError(f"Last release tag is not a version: {e}") from e
        return self.prompter.choose_version(current_version)

    def version(
        self,
        version: str | None = None,
        forced: list[str] | None = None,
        release_all: bool = False,
        tag_prefix: str | None = None,
    ) -> int:
        """
        Bump every changed package to the next version, then commit and tag.

        Args:
            version: Explicit next version (prompted for if None)
            forced: Package names bumped even without changes
            release_all: Bump every package
            tag_prefix: Tag prefix overriding the configured one

        Returns:
            Exit code
        """
        prefix = tag_prefix if tag_prefix is not None else self.config.policy.tag_version_prefix

        try:
            packages = self._discover("version")
            last_tag = self.vcs.last_release_tag()
            changed = self._resolver().resolve(
                packages, last_tag.name, forced=forced or (), release_all=release_all
            )
            if not changed:
                self.report.report_info(f"No packages changed since {last_tag.name}")
                return self.report.exit_code()
            next_version = self._next_version(version, last_tag.version, prefix)
        except PreconditionError as e:
            return self._usage_error(e)

        plan = VersionPlan(next_version=str(next_version), packages=changed, tag_prefix=prefix)
        logger.info("Version plan ready", version=plan.next_version, packages=len(plan.packages))

        if not self.prompter.confirm_plan(plan):
            self.report.report_info("Aborted, no manifest was changed")
            return self.report.exit_code()

        mutator = ManifestMutator(self.config.policy.dependency_kinds)
        mutator.apply_plan(plan)
        written = mutator.persist()
        self.report.report_info(f"Updated {len(written)} manifests to {plan.next_version}")

        if self.prompter.confirm(
            f'Are you sure you want to commit and tag these changes as "{plan.tag_name}"?'
        ):
            self.vcs.commit(plan.tag_name)
            self.vcs.tag(plan.tag_name)
            self.report.report_info(f"Created commit and tag {plan.tag_name}")

        return self.report.exit_code()

    # ------------------------------------------------------------------
    # publish
    # ------------------------------------------------------------------

    def tagged_packages(self, packages: list[Package]) -> list[Package]:
        """
        Public packages whose manifest was changed by the HEAD commit.

        Private packages touched by the commit are reported and left out.

        Raises:
            PreconditionError: If HEAD carries no release tag
        """
        tags = self.vcs.head_tags(self.config.policy.release_tag_pattern)
        if not tags:
            raise PreconditionError("No version tag found")
        logger.info("Release tags at HEAD", tags=tags)

        manifest_dirs = {
            posixpath.dirname(path)
            for path in self.vcs.changed_files_in("HEAD")
            if posixpath.basename(path) == MANIFEST_FILENAME
        }
        touched = [p for p in packages if p.relative_path in manifest_dirs]
        for package in touched:
            if package.private:
                self.report.report_info(
                    f"Not publishing private package {package.name}", package=package.name
                )
        return [p for p in touched if not p.private]

    async def publish(self, dry_run: bool = False) -> int:
        """
        Publish the packages released by the HEAD commit in dependency order.

        Args:
            dry_run: Walk the publish order without contacting the registry

        Returns:
            Exit code (1 if any error was reported)
        """
        try:
            packages = self._discover("publish")
            tagged = self.tagged_packages(packages)
            validate_publishable(tagged)
        except PreconditionError as e:
            return self._usage_error(e)

        if not tagged:
            self.report.report_info("No packages to publish")
            return self.report.exit_code()

        graph = self._build_graph(tagged)
        if graph.detect_cycles(self.report):
            return self.report.exit_code()

        self._render_generations(graph.generations(), f"Publishing {len(tagged)} packages")
        if not dry_run and not self.prompter.confirm(
            f"Publish {len(tagged)} packages to {self.config.registry.url}?"
        ):
            self.report.report_info("Aborted, nothing was published")
            return self.report.exit_code()

        workspace_versions = {p.name: p.version for p in packages if p.version}
        async with RegistryClient(self.config.registry) as client:
            orchestrator = ReleaseOrchestrator(
                RegistryPublisher(client, workspace_versions, self.config.policy),
                policy=self.config.policy,
                throttle=PublishThrottle(self.config.throttle),
                dry_run=dry_run,
            )
            try:
                result = await orchestrator.release(graph, self.report)
            except UnreleasablePackagesError:
                # Already on the report; show what did get through
                result = orchestrator.result

        self._summarize(result)
        return self.report.exit_code()

    def _summarize(self, result: ReleaseResult) -> None:
        render_release_summary(result, self.console)
        if result.stopped_early:
            self.console.print(
                "[yellow]Release stopped early, remaining packages were not attempted[/yellow]"
            )
