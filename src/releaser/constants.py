"""Configuration constants for the monorepo release tool.

Named constants for defaults shared by the config layer, the CLI and the
registry adapters.
"""

# -----------------------------------------------------------------------------
# Concurrency
# -----------------------------------------------------------------------------

# Simultaneous pack/publish operations in flight. Kept small so a large
# release does not trip registry rate limits.
DEFAULT_MAX_CONCURRENT_PUBLISHES: int = 4


# -----------------------------------------------------------------------------
# Manifests
# -----------------------------------------------------------------------------

MANIFEST_FILENAME: str = "package.json"

# Dependency kinds that take part in release ordering and range rewriting.
# peerDependencies/optionalDependencies are deliberately absent.
RELEASE_DEPENDENCY_KINDS: tuple[str, ...] = ("dependencies", "devDependencies")

# Ranges using this protocol point at a sibling workspace package
WORKSPACE_PROTOCOL: str = "workspace:"

# Directories never shipped in a package tarball
PACK_EXCLUDED_DIRS: frozenset[str] = frozenset({"node_modules", ".git", ".hg", ".svn"})


# -----------------------------------------------------------------------------
# Change detection
# -----------------------------------------------------------------------------

# Glob patterns for files whose changes never require a new release.
# Minimatch syntax; a pattern without a slash matches the base name.
DEFAULT_IGNORE_CHANGES: tuple[str, ...] = (
    "*.md",
    "*.txt",
    "**/test/**",
    "**/__tests__/**",
    "**/codemods/**",
)


# -----------------------------------------------------------------------------
# Versioning / tags
# -----------------------------------------------------------------------------

DEFAULT_TAG_VERSION_PREFIX: str = "v"
DEFAULT_RELEASE_TAG_PATTERN: str = "v*.*.*"
DEFAULT_DIST_TAG: str = "latest"


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------

DEFAULT_REGISTRY_URL: str = "https://registry.npmjs.org"
DEFAULT_CONFIG_FILENAME: str = "release.yaml"
