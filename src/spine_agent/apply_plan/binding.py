"""
Configuration binding for template rendering.

A ``ConfigBinding`` is built once per job application from the apply spec
the orchestrator sends to the node::

    {
        "job": {"name": "ccdb"},
        "index": 42,
        "properties": {"db": {"port": 5432}},
        ...
    }

Templates see four variables: ``name``, ``index``, ``spec`` (the whole
apply spec) and ``properties`` (the property tree), plus the lookup
function ``p(path, default)``. ``spec`` and ``properties`` are read-only
views that fail loudly on a missing field instead of yielding an empty
value, so a typo in a template never silently renders as nothing.

Property values are classified into a small tagged model
(``PropertyKind``) and every dotted path goes through one resolver,
``resolve_property``. A path only descends through MAPPING nodes; asking
for ``a.b`` when ``a`` is a string resolves to MISSING.

Examples:
    >>> binding = ConfigBinding.from_config({"properties": {"db": {"port": 5432}}})
    >>> binding.lookup("db.port")
    5432
    >>> binding.lookup("db.host", "localhost")
    'localhost'
    >>> binding.lookup(["db.user", "db.port"])
    5432

Tags:
    binding, properties, templates, spine-agent
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from spine_agent.core.errors import BindingError, PropertyNotFoundError, SpecFieldError


class _Missing:
    """Sentinel for an absent property (distinct from an explicit null)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class PropertyKind(str, Enum):
    """Kind of a value found in the property tree."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    MAPPING = "mapping"
    NULL = "null"
    MISSING = "missing"


def kind_of(value: Any) -> PropertyKind:
    """Classify a property value. Unknown scalars (dates, ...) count as strings."""
    if value is MISSING:
        return PropertyKind.MISSING
    if value is None:
        return PropertyKind.NULL
    # bool before number: bool is an int subclass
    if isinstance(value, bool):
        return PropertyKind.BOOLEAN
    if isinstance(value, (int, float)):
        return PropertyKind.NUMBER
    if isinstance(value, Mapping):
        return PropertyKind.MAPPING
    if isinstance(value, (list, tuple)):
        return PropertyKind.LIST
    return PropertyKind.STRING


def resolve_property(tree: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path against a property tree.

    Returns the value (possibly ``None`` for an explicit null) or
    ``MISSING`` when any segment is absent or not a mapping.
    """
    if not path:
        return MISSING

    node: Any = tree
    for key in path.split("."):
        if not key or kind_of(node) is not PropertyKind.MAPPING:
            return MISSING
        node = node.get(key, MISSING)
        if node is MISSING:
            return MISSING
    return node


class PropertyView:
    """Read-only dotted-access view over a tree node.

    ``view.a.b`` and ``view["a"]["b"]`` resolve through the tree and raise
    ``missing(path)`` with the canonical dotted path when a key is absent.
    The view has no public methods so property names such as ``keys`` or
    ``items`` never collide with attributes.
    """

    __slots__ = ("_tree", "_prefix", "_missing")

    def __init__(
        self,
        tree: Mapping[str, Any],
        prefix: str = "",
        missing: type[BindingError] = PropertyNotFoundError,
    ):
        self._tree = tree
        self._prefix = prefix
        self._missing = missing

    def _path(self, key: str) -> str:
        return f"{self._prefix}.{key}" if self._prefix else key

    def _wrap(self, value: Any, path: str) -> Any:
        kind = kind_of(value)
        if kind is PropertyKind.MAPPING:
            return PropertyView(value, path, self._missing)
        if kind is PropertyKind.LIST:
            return [self._wrap(item, path) for item in value]
        return value

    def __getattr__(self, key: str) -> Any:
        if key.startswith("_"):
            raise AttributeError(key)
        return self[key]

    def __getitem__(self, key: Any) -> Any:
        path = self._path(str(key))
        value = self._tree.get(key, MISSING) if isinstance(key, str) else MISSING
        if value is MISSING:
            raise self._missing(path)
        return self._wrap(value, path)

    def __contains__(self, key: object) -> bool:
        return key in self._tree

    def __iter__(self) -> Iterator[str]:
        return iter(self._tree)

    def __len__(self) -> int:
        return len(self._tree)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PropertyView):
            return dict(self._tree) == dict(other._tree)
        if isinstance(other, Mapping):
            return dict(self._tree) == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return str(dict(self._tree))

    def __repr__(self) -> str:
        return f"PropertyView({self._prefix or '<root>'!s}, keys={sorted(self._tree)})"


def _frozen(value: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(copy.deepcopy(dict(value)))


@dataclass(frozen=True)
class ConfigBinding:
    """
    Property lookup context bound once per job application.

    Attributes:
        name: Job name (``job.name`` of the apply spec), if present
        index: Job index on the node
        properties: Property tree
        spec: The full apply spec
    """

    name: str | None
    index: Any
    properties: Mapping[str, Any]
    spec: Mapping[str, Any]

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> ConfigBinding:
        """Build a binding from an apply spec mapping."""
        config = dict(config or {})

        job = config.get("job")
        name = job.get("name") if isinstance(job, Mapping) else None

        properties = config.get("properties")
        if properties is None:
            properties = {}
        if not isinstance(properties, Mapping):
            raise BindingError(
                f"invalid properties, mapping expected, {type(properties).__name__} given"
            )

        return cls(
            name=name,
            index=config.get("index"),
            properties=_frozen(properties),
            spec=_frozen(config),
        )

    def lookup(self, path: str | Sequence[str], default: Any = MISSING) -> Any:
        """Look up a property by dotted path, or by the first of several paths.

        A null value counts as unset. Without a default an unset property
        raises ``PropertyNotFoundError``.
        """
        paths = [path] if isinstance(path, str) else list(path)
        for candidate in paths:
            value = resolve_property(self.properties, candidate)
            if kind_of(value) not in (PropertyKind.MISSING, PropertyKind.NULL):
                return value
        if default is not MISSING:
            return default
        raise PropertyNotFoundError(paths)

    def template_variables(self) -> dict[str, Any]:
        """Variables exposed to a template rendered against this binding."""
        return {
            "name": self.name,
            "index": self.index,
            "spec": PropertyView(self.spec, missing=SpecFieldError),
            "properties": PropertyView(self.properties),
            "p": self.lookup,
        }


__all__ = [
    "MISSING",
    "ConfigBinding",
    "PropertyKind",
    "PropertyView",
    "kind_of",
    "resolve_property",
]
