"""Walk declared resources in dependency order and feed the emitter.

The driver stands in for a full Terraform plan walk: it orders
declarations by the references between them, substitutes ``var.*``,
``local.*`` and ``count.index``, evaluates ``count``, and visits each
expanded occurrence exactly once, sequentially.
"""

from __future__ import annotations

import heapq
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple, Union

from .config import Settings, get_settings
from .constants import KIND_SCHEDULE
from .context import ConversionContext
from .emitter import TopologyEmitter
from .errors import ConfigurationError
from .graph import TopologyEdge, TopologyNode
from .identifiers import is_alias, is_interpolated, strip_interpolation
from .loader import Configuration, load_configuration
from .manifest import ERROR, OK, SKIPPED, Manifest
from .resources import Resource, ResourceDeclaration

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\$\{([^}]*)\}")
VALUE_PATTERN = re.compile(r"\$\{\s*(var|local)\.([A-Za-z0-9_-]+)\s*\}")
COUNT_INDEX_PATTERN = re.compile(r"\$\{\s*count\.index\s*\}")
SPLAT_PATTERNS = (
    re.compile(r"\$\{\s*element\(\s*([A-Za-z0-9_.-]+?)\.\*\.id\s*,\s*count\.index\s*\)\s*\}"),
    re.compile(r"\$\{\s*([A-Za-z0-9_.-]+?)\.\*\.id\s*\[\s*count\.index\s*\]\s*\}"),
)
REFERENCE_PATTERN = re.compile(r"(?<![\w.])([a-z][a-z0-9]*_[a-z0-9_]+)\.([A-Za-z0-9_-]+)")
LOCAL_PATTERN = re.compile(r"(?<![\w.])local\.([A-Za-z0-9_-]+)")

# guards against locals that refer to each other in a loop
MAX_INTERPOLATION_DEPTH = 8

ModulePath = Tuple[str, ...]


def _strings(value: Any) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for v in value.values():
            yield from _strings(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            yield from _strings(v)


def resource_reference(value: Any) -> Optional[str]:
    """``type.name`` if ``value`` is exactly one interpolated resource reference."""
    if not is_interpolated(value):
        return None
    token = strip_interpolation(value)
    if is_alias(token):
        return None
    match = REFERENCE_PATTERN.match(token)
    if not match:
        return None
    return f"{match.group(1)}.{match.group(2)}"


class Interpolator:
    """Substitutes values known before planning into one module's attributes."""

    def __init__(self, driver: "Driver", module_path: ModulePath) -> None:
        self.driver = driver
        self.module_path = module_path
        self.variables = driver.configuration.variables.get(module_path, {})
        self.locals = driver.configuration.locals.get(module_path, {})

    def _lookup(self, namespace: str, name: str) -> Tuple[bool, Any]:
        if namespace == "var":
            if name in self.variables:
                return True, self.variables[name]
            logger.warning(f"variable var.{name} has no default; leaving it uninterpolated")
            return False, None
        if name not in self.locals:
            return False, None
        value = self.locals[name]
        if resource_reference(value):
            # resolved later through the resource's alias table
            return False, None
        return True, value

    def _splat(self, target: str, index: int) -> str:
        count = self.driver.count_of(self.module_path, target)
        if count is None or count <= 1:
            return "${%s.id}" % target
        return "${%s.%d.id}" % (target, index % count)

    def _string(self, s: str, index: int, depth: int) -> Any:
        s = COUNT_INDEX_PATTERN.sub(str(index), s)
        for pattern in SPLAT_PATTERNS:
            s = pattern.sub(lambda m: self._splat(m.group(1), index), s)

        whole = VALUE_PATTERN.fullmatch(s)
        if whole:
            found, value = self._lookup(whole.group(1), whole.group(2))
            if not found:
                return s
            return self.value(value, index, depth + 1)

        def replace(m: "re.Match[str]") -> str:
            found, value = self._lookup(m.group(1), m.group(2))
            if not found or isinstance(value, (dict, list)):
                return m.group(0)
            return str(self.value(value, index, depth + 1))

        return VALUE_PATTERN.sub(replace, s)

    def value(self, value: Any, index: int = 0, depth: int = 0) -> Any:
        if depth > MAX_INTERPOLATION_DEPTH:
            return value
        if isinstance(value, str):
            return self._string(value, index, depth)
        if isinstance(value, dict):
            return {k: self.value(v, index, depth) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.value(v, index, depth) for v in value]
        return value

    def aliases(self) -> Dict[str, str]:
        """Alias table: ``local.name`` -> ``type.name`` for resource-valued locals."""
        table: Dict[str, str] = {}
        for name, value in self.locals.items():
            target = resource_reference(value)
            if target:
                table[f"local.{name}"] = target
        return table


@dataclass
class ConversionResult:
    """Everything produced by one conversion run."""

    context: ConversionContext
    manifest: Manifest
    diffs: Dict[str, dict] = field(default_factory=dict)

    @property
    def nodes(self) -> List[TopologyNode]:
        return self.context.nodes

    @property
    def edges(self) -> List[TopologyEdge]:
        return self.context.edges

    def records(self, fmt: str = "records") -> List[Dict[str, Any]]:
        return self.context.to_records(fmt)


class Driver:
    """Sequential, dependency-ordered resource walk.

    Usage:
        driver = Driver(load_file(Path("main.tf.json")))
        result = driver.run()
        records = result.records()
    """

    def __init__(
        self,
        configuration: Configuration,
        settings: Optional[Settings] = None,
        emitter: Optional[TopologyEmitter] = None,
    ) -> None:
        self.configuration = configuration
        self.settings = settings or get_settings()
        self.emitter = emitter or TopologyEmitter()
        self._index: Dict[Tuple[ModulePath, str], int] = {}
        for i, decl in enumerate(configuration.declarations):
            self._index.setdefault((tuple(decl.module_path), f"{decl.type}.{decl.name}"), i)
        self._counts: Dict[int, Optional[int]] = {}
        self._interpolators: Dict[ModulePath, Interpolator] = {}

    def interpolator(self, module_path: ModulePath) -> Interpolator:
        module_path = tuple(module_path)
        if module_path not in self._interpolators:
            self._interpolators[module_path] = Interpolator(self, module_path)
        return self._interpolators[module_path]

    # -- count -------------------------------------------------------------

    def evaluate_count(self, decl: ResourceDeclaration) -> int:
        """Number of occurrences of ``decl``.

        Raises:
            ConfigurationError: count is not a non-negative whole number
        """
        if decl.count is None:
            return 1
        value = self.interpolator(decl.module_path).value(decl.count)
        count: Optional[int] = None
        if isinstance(value, bool):
            count = None
        elif isinstance(value, int):
            count = value
        elif isinstance(value, float) and value.is_integer():
            count = int(value)
        elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
            count = int(value.strip())
        if count is None:
            raise ConfigurationError(f"cannot evaluate count {decl.count!r}", resource=decl.address, field="count")
        if count < 0:
            raise ConfigurationError(f"count must not be negative, got {count}", resource=decl.address, field="count")
        return count

    def count_of(self, module_path: ModulePath, address: str) -> Optional[int]:
        """Cached count of the declaration at ``address``, or None if unknown."""
        i = self._index.get((tuple(module_path), address))
        if i is None:
            return None
        if i not in self._counts:
            try:
                self._counts[i] = self.evaluate_count(self.configuration.declarations[i])
            except ConfigurationError:
                self._counts[i] = None
        return self._counts[i]

    def expand(self, decl: ResourceDeclaration, count: Optional[int] = None) -> List[Resource]:
        """Interpolated occurrences of ``decl``, one per count index."""
        if count is None:
            count = self.evaluate_count(decl)
        interpolator = self.interpolator(decl.module_path)
        aliases = interpolator.aliases()
        return [
            Resource(
                type=decl.type,
                name=decl.name,
                module_path=tuple(decl.module_path),
                index=index,
                count=count,
                attributes=interpolator.value(decl.attributes, index),
                variables=dict(aliases),
            )
            for index in range(count)
        ]

    # -- ordering ----------------------------------------------------------

    def dependencies(self, i: int) -> Set[int]:
        """Indexes of the declarations ``i`` references."""
        decl = self.configuration.declarations[i]
        path = tuple(decl.module_path)
        locals_ = self.configuration.locals.get(path, {})
        addresses: Set[str] = set(decl.depends_on)

        def scan(text: str) -> None:
            for token in TOKEN_PATTERN.findall(text):
                for m in REFERENCE_PATTERN.finditer(token):
                    addresses.add(f"{m.group(1)}.{m.group(2)}")
                for m in LOCAL_PATTERN.finditer(token):
                    target = resource_reference(locals_.get(m.group(1)))
                    if target:
                        addresses.add(target)

        for text in _strings(decl.attributes):
            scan(text)
        for text in _strings(decl.count):
            scan(text)

        deps = {self._index[(path, a)] for a in addresses if (path, a) in self._index}
        deps.discard(i)
        return deps

    def _rank(self, i: int) -> Tuple[int, int]:
        kind = self.configuration.declarations[i].kind
        return (KIND_SCHEDULE.get(kind.value, len(KIND_SCHEDULE)) if kind else len(KIND_SCHEDULE), i)

    def order(self) -> List[ResourceDeclaration]:
        """Declarations in dependency order.

        Among ready declarations, containers come first, then security
        groups, interfaces and compute. Reference cycles (security groups
        naming each other) are broken by releasing the best-ranked
        blocked declaration.
        """
        decls = self.configuration.declarations
        deps = {i: self.dependencies(i) for i in range(len(decls))}
        dependents: Dict[int, Set[int]] = {i: set() for i in range(len(decls))}
        for i, ds in deps.items():
            for d in ds:
                dependents[d].add(i)
        remaining = {i: len(ds) for i, ds in deps.items()}

        heap = [self._rank(i) for i in range(len(decls)) if remaining[i] == 0]
        heapq.heapify(heap)
        done: Set[int] = set()
        ordered: List[ResourceDeclaration] = []
        while len(ordered) < len(decls):
            if not heap:
                blocked = min(self._rank(i) for i in range(len(decls)) if i not in done)
                logger.debug(f"dependency cycle; releasing {decls[blocked[1]].address}")
                heapq.heappush(heap, blocked)
            _, i = heapq.heappop(heap)
            if i in done:
                continue
            done.add(i)
            ordered.append(decls[i])
            for j in dependents[i]:
                remaining[j] -= 1
                if remaining[j] == 0 and j not in done:
                    heapq.heappush(heap, self._rank(j))
        return ordered

    # -- run ---------------------------------------------------------------

    def run(self) -> ConversionResult:
        """Convert the configuration.

        Raises:
            ConfigurationError: in strict mode, the first malformed
                resource; always, when the resource cap is exceeded
        """
        decls = self.configuration.declarations
        max_resources = self.settings.max_resources
        if len(decls) > max_resources:
            raise ConfigurationError(f"{len(decls)} resources declared, limit is {max_resources}")

        manifest = Manifest.new()
        diffs: Dict[str, dict] = {}
        visited = 0
        for decl in self.order():
            if decl.kind is None:
                logger.debug(f"skipping unsupported resource type {decl.type}")
                manifest.add_resource(decl.address, decl.type, SKIPPED)
                continue
            try:
                count = self.evaluate_count(decl)
                visited += count
                if visited > max_resources:
                    raise ConfigurationError(f"more than {max_resources} resource occurrences after count expansion")
                occurrences = self.expand(decl, count)
                for resource in occurrences:
                    diff = self.emitter.visit(resource)
                    if diff:
                        diffs[self.emitter.resource_id(resource)] = diff
            except ConfigurationError as e:
                logger.error(f"Failed to process {decl.address}: {e.message}")
                manifest.add_resource(decl.address, decl.type, ERROR, detail=e.message)
                if self.settings.strict or visited > max_resources:
                    raise
                continue
            manifest.add_resource(decl.address, decl.type, OK, occurrences=len(occurrences))

        context = self.emitter.context
        manifest.finish(nodes=len(context.nodes), edges=len(context.edges))
        logger.info(
            f"Converted {len(decls)} resources: nodes={manifest.nodes}, "
            f"edges={manifest.edges}, errors={len(manifest.errors)}"
        )
        return ConversionResult(context=context, manifest=manifest, diffs=diffs)


def convert(
    configuration: Union[Configuration, Dict[str, Any]],
    settings: Optional[Settings] = None,
) -> ConversionResult:
    """Run one conversion over a Configuration or a parsed Terraform JSON document."""
    if isinstance(configuration, dict):
        configuration = load_configuration(configuration)
    return Driver(configuration, settings=settings).run()
