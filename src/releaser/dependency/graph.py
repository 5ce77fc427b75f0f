"""Package Graph - dependency graph of workspace packages with cycle detection.

Drives release ordering: a package may only be published once every package
it depends on has left the graph.

Edge direction:
    node.dependencies: keys of nodes this node needs (published BEFORE it)
    node.dependents:   keys of nodes that need this node (published AFTER it)

    Both sets are always mutual inverses. Nodes refer to each other by key,
    never by object, so unlinking a node is a matter of discarding its key
    from the opposite set of every neighbour.

Draining:
    frontier() -> publish -> remove() each -> frontier() -> ...

    Packages in one frontier are independent of each other and can be
    published concurrently. An empty frontier on a non-empty graph means every
    remaining package sits on (or behind) a cycle.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

import structlog

from ..constants import RELEASE_DEPENDENCY_KINDS
from ..models.package import Package, PackageIdentity
from ..observability.report import MessageCategory, Report
from ..utils.exceptions import CyclicDependencyError, UnreleasablePackagesError

logger = structlog.get_logger(__name__)


class GraphNode(ABC):
    """
    A participant in the package graph.

    A node may stand for more than one package, so the frontier and drain
    logic only ever go through identities() / packages() and never assume a
    one-to-one mapping between nodes and packages.
    """

    dependencies: set[str]
    dependents: set[str]

    @property
    @abstractmethod
    def key(self) -> str:
        """Stable key of this node in the graph's node table."""

    @abstractmethod
    def identities(self) -> list[PackageIdentity]:
        """Identities of every package this node stands for."""

    @abstractmethod
    def packages(self) -> list[Package]:
        """Packages this node stands for."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable label used in errors and logs."""

    @property
    def is_processable(self) -> bool:
        """True if nothing blocks the release of this node."""
        return not self.dependencies

    def __str__(self) -> str:
        return self.describe()


@dataclass(eq=False)
class PackageNode(GraphNode):
    """
    Node in the package graph representing a single workspace package.

    Attributes:
        package: The package this node represents
        dependencies: Keys of nodes this node depends on (released before this)
        dependents: Keys of nodes that depend on this node (released after this)
    """

    package: Package
    dependencies: set[str] = field(default_factory=set)
    dependents: set[str] = field(default_factory=set)

    @property
    def key(self) -> str:
        return str(self.package.identity)

    def identities(self) -> list[PackageIdentity]:
        return [self.package.identity]

    def packages(self) -> list[Package]:
        return [self.package]

    def describe(self) -> str:
        return self.package.name


class PackageGraph:
    """
    Mutable dependency graph built once per release run.

    Features:
    - Construction restricted to edges inside the release set
    - Non-raising cycle detection with a report sink
    - Processable frontier extraction and idempotent node removal
    - Generation planning (dry drain) and DOT export
    """

    def __init__(self) -> None:
        """Initialize empty package graph."""
        self.nodes: dict[str, GraphNode] = {}
        # Identity -> key of the live node standing for it
        self._index: dict[PackageIdentity, str] = {}

    @classmethod
    def from_packages(
        cls,
        packages: Iterable[Package],
        dependency_kinds: Iterable[str] = RELEASE_DEPENDENCY_KINDS,
    ) -> "PackageGraph":
        """
        Build a graph whose nodes are exactly the given packages.

        Dependencies resolving outside the set are skipped silently: they are
        assumed to be published already. No error is raised for cycles, run
        detect_cycles() for that.

        Args:
            packages: Packages taking part in this release
            dependency_kinds: Manifest dependency kinds that count as edges

        Returns:
            The constructed PackageGraph
        """
        graph = cls()
        kinds = tuple(dependency_kinds)
        package_list = list(packages)

        # First pass: one node per package
        for package in package_list:
            graph.add_package(package)

        # Second pass: edges that stay inside the set
        for package in package_list:
            dependent_key = graph._index[package.identity]
            for dep_identity in package.dependency_identities(kinds):
                dependency_key = graph._index.get(dep_identity)
                if dependency_key is None:
                    continue
                graph.add_dependency(dependent_key, dependency_key)

        logger.info(
            "Package graph built",
            nodes=len(graph.nodes),
            edges=sum(len(node.dependencies) for node in graph.nodes.values()),
        )
        return graph

    def add_package(self, package: Package) -> GraphNode:
        """
        Add a package node and register it in the identity index.

        Args:
            package: Package to add

        Returns:
            The created node, or the existing one for a duplicate identity
        """
        existing_key = self._index.get(package.identity)
        if existing_key is not None:
            logger.warning("Package already in graph", package=package.name)
            return self.nodes[existing_key]

        node = PackageNode(package=package)
        self.nodes[node.key] = node
        self._index[package.identity] = node.key

        logger.debug("Added package to graph", package=package.name)
        return node

    def add_dependency(self, dependent_key: str, dependency_key: str) -> None:
        """
        Add a dependency edge, updating both sides.

        A self-dependency is kept as a self-loop so cycle detection reports it.

        Args:
            dependent_key: Node that depends on another (released AFTER)
            dependency_key: Node that is depended upon (released BEFORE)
        """
        if dependent_key not in self.nodes:
            raise ValueError(f"Dependent node not found: {dependent_key}")
        if dependency_key not in self.nodes:
            raise ValueError(f"Dependency node not found: {dependency_key}")

        self.nodes[dependent_key].dependencies.add(dependency_key)
        self.nodes[dependency_key].dependents.add(dependent_key)

        logger.debug("Added dependency edge", dependent=dependent_key, dependency=dependency_key)

    def node_for(self, package: Package | PackageIdentity) -> GraphNode | None:
        """Return the live node standing for a package, if any."""
        identity = package.identity if isinstance(package, Package) else package
        key = self._index.get(identity)
        return self.nodes.get(key) if key is not None else None

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(list(self.nodes.values()))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Package):
            item = item.identity
        return item in self._index

    def is_empty(self) -> bool:
        return not self.nodes

    def remaining_packages(self) -> list[Package]:
        """Packages still in the graph, sorted by name."""
        packages = [pkg for node in self.nodes.values() for pkg in node.packages()]
        return sorted(packages, key=lambda p: p.identity)

    # ------------------------------------------------------------------
    # Cycle detection
    # ------------------------------------------------------------------

    def find_cycles(self) -> list[list[str]]:
        """
        Find dependency cycles with an iterative depth-first search.

        Algorithm:
        - Walk dependencies from every node, keeping the current path as an
          explicit stack (plus a key -> stack position map for O(1) lookups)
        - Reaching a node that is on the path closes a cycle: the path slice
          from that node's position to the top is recorded
        - A node whose dependencies were all walked goes into `explored` and
          is never entered again, so total work is linear in edges

        Nodes are visited in insertion order and dependencies in sorted key
        order, so a given graph always yields the same cycles starting from
        the same re-entry point.

        Example:
            A -> B -> C -> A   (A depends on B, ...)
            path [A, B, C], C depends on A (on path at 0) -> cycle [A, B, C]

        Returns:
            Cycles as lists of node labels in dependency-edge order
        """
        cycles: list[list[str]] = []
        explored: set[str] = set()

        for start in self.nodes:
            if start in explored:
                continue

            path: list[str] = [start]
            on_path: dict[str, int] = {start: 0}
            pending: list[Iterator[str]] = [iter(sorted(self.nodes[start].dependencies))]

            while pending:
                dep_key = next(pending[-1], None)

                if dep_key is None:
                    # Every dependency of the top node walked: backtrack
                    done = path.pop()
                    del on_path[done]
                    explored.add(done)
                    pending.pop()
                    continue

                if dep_key in on_path:
                    cycle = path[on_path[dep_key] :]
                    cycles.append([self.nodes[key].describe() for key in cycle])
                    continue

                if dep_key in explored:
                    continue

                on_path[dep_key] = len(path)
                path.append(dep_key)
                pending.append(iter(sorted(self.nodes[dep_key].dependencies)))

        return cycles

    def detect_cycles(self, report: Report) -> int:
        """
        Report every dependency cycle on the report sink.

        Never raises and never mutates the graph, so it is safe as a
        pre-flight check before deciding whether to drain.

        Args:
            report: Report sink receiving one CYCLIC_DEPENDENCIES error per cycle

        Returns:
            Number of cycles reported
        """
        cycles = self.find_cycles()
        for cycle in cycles:
            report.report_error(
                MessageCategory.CYCLIC_DEPENDENCIES,
                f"Dependency cycle detected: {' -> '.join(cycle)}",
                package=cycle[0],
            )

        if cycles:
            logger.error("Dependency cycles detected", count=len(cycles), cycles=cycles)
        else:
            logger.info("No dependency cycles detected", nodes=len(self.nodes))
        return len(cycles)

    def assert_acyclic(self) -> None:
        """
        Raise if the graph contains a cycle.

        Raises:
            CyclicDependencyError: With every detected cycle attached
        """
        cycles = self.find_cycles()
        if cycles:
            rendered = "; ".join(" -> ".join(cycle) for cycle in cycles)
            raise CyclicDependencyError(f"Dependency cycles detected: {rendered}", cycles=cycles)

    # ------------------------------------------------------------------
    # Frontier & draining
    # ------------------------------------------------------------------

    def frontier(self) -> list[Package]:
        """
        Packages whose node has no outstanding dependency.

        These are the only packages safe to release now.

        Returns:
            Processable packages sorted by name (empty if graph is empty or stuck)
        """
        ready = [
            pkg for node in self.nodes.values() if node.is_processable for pkg in node.packages()
        ]
        return sorted(ready, key=lambda p: p.identity)

    def remove(self, package: Package | PackageIdentity) -> bool:
        """
        Delete a node and unlink it from every neighbour.

        Previously blocked dependents may become processable. Removing an
        absent package is a no-op, so a failed publish and its cleanup path can
        both call this safely.

        Args:
            package: Package (or identity) whose node to delete

        Returns:
            True if a node was removed, False if it was already absent
        """
        node = self.node_for(package)
        if node is None:
            return False

        key = node.key
        del self.nodes[key]
        for dep_key in node.dependencies:
            if dep_key != key:
                self.nodes[dep_key].dependents.discard(key)
        for dependent_key in node.dependents:
            if dependent_key != key:
                self.nodes[dependent_key].dependencies.discard(key)

        for member in node.identities():
            self._index.pop(member, None)

        logger.debug("Removed package from graph", node=node.describe(), remaining=len(self.nodes))
        return True

    def transitive_dependents(self, package: Package | PackageIdentity) -> set[PackageIdentity]:
        """
        Identities of every package that (transitively) depends on a package.

        Args:
            package: Package (or identity) to start from

        Returns:
            Dependent identities still in the graph, excluding the package itself
        """
        start = self.node_for(package)
        if start is None:
            return set()

        seen: set[str] = set()
        stack = [start.key]
        while stack:
            key = stack.pop()
            for dependent_key in self.nodes[key].dependents:
                if dependent_key not in seen:
                    seen.add(dependent_key)
                    stack.append(dependent_key)

        result = {member for key in seen for member in self.nodes[key].identities()}
        result.difference_update(start.identities())
        return result

    def generations(self) -> list[list[Package]]:
        """
        Simulate a full drain without mutating the graph.

        Each generation is what frontier() would return at that step, so
        packages in one generation can be published concurrently.

        Returns:
            Generations in release order

        Raises:
            UnreleasablePackagesError: If the simulated drain gets stuck
        """
        remaining = {key: set(node.dependencies) for key, node in self.nodes.items()}
        generations: list[list[Package]] = []

        while remaining:
            ready = [key for key, deps in remaining.items() if not deps]
            if not ready:
                stuck = sorted(self.nodes[key].describe() for key in remaining)
                raise UnreleasablePackagesError(stuck)

            packages = [pkg for key in ready for pkg in self.nodes[key].packages()]
            generations.append(sorted(packages, key=lambda p: p.identity))

            for key in ready:
                del remaining[key]
            for deps in remaining.values():
                deps.difference_update(ready)

        return generations

    def to_dot(self) -> str:
        """
        Generate DOT format representation of the package graph.

        Nodes on a cycle are highlighted in red.

        Returns:
            String containing the Graphviz DOT definition
        """
        on_cycle = {label for cycle in self.find_cycles() for label in cycle}

        lines = ["digraph PackageGraph {"]
        lines.append("    rankdir=LR;")
        lines.append("    node [shape=box style=filled];")

        for key, node in self.nodes.items():
            color = "#f8d7da" if node.describe() in on_cycle else "#d4edda"
            lines.append(f'    "{key}" [label="{node.describe()}" fillcolor="{color}"];')

            for dep_key in sorted(node.dependencies):
                lines.append(f'    "{dep_key}" -> "{key}";')

        lines.append("}")
        return "\n".join(lines)
