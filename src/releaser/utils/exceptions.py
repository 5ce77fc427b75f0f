"""Custom exceptions for the monorepo release tool.

Exception Hierarchy:
-------------------
ReleaseError (base)
├── PreconditionError           # Private package, missing name/version, non-root cwd, no tag
├── CyclicDependencyError       # Circular dependency between workspace packages
├── UnreleasablePackagesError   # Drain got stuck: nodes left but empty frontier
├── VCSError                    # A git command failed
└── RegistryError               # Registry rejected a request or could not be reached

Usage Guidelines:
----------------
1. Structural (cycles, unreleasable set) and precondition errors abort a run
   before any manifest, tag or registry side effect.

2. Publish failures are NOT raised out of the orchestrator. The registry
   publisher converts them into a failed PublishResult so sibling packages
   keep going; RegistryError only escapes from low-level client helpers.

3. Let httpx errors (NetworkError, TimeoutException) bubble up inside the
   registry client for tenacity retry logic.

4. Include context in exceptions:
   - Package identities for graph errors
   - The git command and its stderr for VCS errors
   - The HTTP status code for registry errors
"""


class ReleaseError(Exception):
    """Base exception for all release tool errors."""

    pass


class PreconditionError(ReleaseError):
    """Raised when a command cannot start safely (nothing has been mutated yet)."""

    pass


class CyclicDependencyError(ReleaseError):
    """
    Raised when dependency cycles make a release order impossible.

    Example cycles:
    1. @scope/a depends on @scope/b, @scope/b depends on @scope/a
    2. A package listing itself in its own dependencies (self-loop)
    """

    def __init__(self, message: str, cycles: list[list[str]] | None = None) -> None:
        """
        Initialize CyclicDependencyError.

        Args:
            message: Error message.
            cycles: Detected cycles, each a list of package names in edge order.
        """
        super().__init__(message)
        self.cycles = cycles or []


class UnreleasablePackagesError(ReleaseError):
    """
    Raised when the graph still has nodes but none of them is processable.

    Every remaining package is on a cycle or depends (transitively) only on
    cyclic packages, so no further batch can ever be scheduled.
    """

    def __init__(self, packages: list[str]) -> None:
        """
        Initialize UnreleasablePackagesError.

        Args:
            packages: Names of the packages left in the graph.
        """
        super().__init__(f"Unreleasable packages (dependency cycle): {', '.join(packages)}")
        self.packages = packages


class VCSError(ReleaseError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, command: str, returncode: int, stderr: str = "") -> None:
        """
        Initialize VCSError.

        Args:
            command: The git command line that failed.
            returncode: Process return code.
            stderr: Captured standard error.
        """
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"`{command}` failed with exit code {returncode}{detail}")
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class RegistryError(ReleaseError):
    """Base exception for package registry errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """
        Initialize RegistryError.

        Args:
            message: Error message.
            status_code: Optional HTTP status code (None for transport failures).
        """
        super().__init__(message)
        self.status_code = status_code
