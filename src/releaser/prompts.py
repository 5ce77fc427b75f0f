"""Interactive confirmation for release commands."""

from rich.console import Console
from rich.prompt import Confirm, Prompt

from .versioning.plan import VersionPlan
from .versioning.semver import BumpKind, SemVer


class Prompter:
    """
    Asks the user before anything irreversible happens.

    With assume_yes every confirmation is approved without asking. Choosing
    a version is still interactive: pass the version explicitly to avoid it.
    """

    def __init__(self, console: Console, assume_yes: bool = False) -> None:
        self.console = console
        self.assume_yes = assume_yes

    def confirm(self, message: str, default: bool = False) -> bool:
        if self.assume_yes:
            return True
        return Confirm.ask(message, default=default, console=self.console)

    def choose_version(self, current: SemVer) -> SemVer:
        """
        Offer patch/minor/major bumps of the current version.

        Returns:
            The chosen next version
        """
        candidates = current.candidates()
        self.console.print(f"\nSelect a new version (currently [cyan]{current}[/cyan]):")
        for kind, version in candidates.items():
            self.console.print(f"  {kind.value.capitalize()} ({version})")

        choice = Prompt.ask(
            "Version",
            choices=[kind.value for kind in BumpKind],
            default=BumpKind.PATCH.value,
            console=self.console,
        )
        return candidates[BumpKind(choice)]

    def confirm_plan(self, plan: VersionPlan) -> bool:
        """Show the pending version changes and ask for approval."""
        self.console.print("\n[bold]Changes:[/bold]")
        for change in plan.changes():
            self.console.print(f" - {change}")
        self.console.print("")
        return self.confirm("Are you sure you want to create these versions?")
