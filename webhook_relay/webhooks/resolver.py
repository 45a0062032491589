"""Destination resolution from request paths.

Paths arrive with the route prefix already stripped. Two symmetric
conventions are supported, plus a fixed one:

- source_first:       source/destination[/topic]
                      source/hosts/destination[/topic]
- destination_first:  destination/source[/topic]
                      destination/apps/source[/topic]
- fixed:              one path bound to one declared route, no identifiers

When the topic is omitted it defaults to the other identifier already
captured: the source id in source_first mode, the destination id in
destination_first mode.
"""

from dataclasses import dataclass
from enum import Enum

from webhook_relay.errors import PathError


class AddressingConvention(str, Enum):
    """How identifiers are laid out in the request path."""

    SOURCE_FIRST = "source_first"
    DESTINATION_FIRST = "destination_first"
    FIXED = "fixed"

    @property
    def pivot(self) -> str | None:
        """Literal segment that may follow the first identifier."""
        return _PIVOT_WORDS.get(self)


_PIVOT_WORDS = {
    AddressingConvention.SOURCE_FIRST: "hosts",
    AddressingConvention.DESTINATION_FIRST: "apps",
}


@dataclass(frozen=True)
class ResolvedRoute:
    """The (source, destination, topic) triple for one request."""

    source: str
    destination: str
    topic: str


def split_path(path: str) -> list[str]:
    """Split a path on "/", trimming and dropping empty segments."""
    return [part.strip() for part in (path or "").split("/") if part.strip()]


def resolve_path(path: str, convention: AddressingConvention) -> ResolvedRoute:
    """Resolve a prefix-stripped path under a path-derived convention.

    Args:
        path: Request path with the route prefix removed.
        convention: source_first or destination_first.

    Returns:
        Resolved route triple.

    Raises:
        PathError: If the path has too few segments.
        ValueError: If called with the fixed convention.
    """
    if convention is AddressingConvention.FIXED:
        raise ValueError("fixed routes have no path-derived identifiers")

    segments = split_path(path)
    if len(segments) < 2:
        raise PathError(path, reason="too_few_segments")

    if segments[1] == convention.pivot:
        if len(segments) < 3:
            raise PathError(path, reason="missing_identifier_after_pivot")
        first, second = segments[0], segments[2]
        topic = segments[3] if len(segments) > 3 else None
    else:
        first, second = segments[0], segments[1]
        topic = segments[2] if len(segments) > 2 else None

    if convention is AddressingConvention.SOURCE_FIRST:
        source, destination = first, second
    else:
        destination, source = first, second

    # Omitted topic falls back to the leading identifier
    return ResolvedRoute(source=source, destination=destination, topic=topic or first)


class Resolver:
    """Resolver bound to one convention, selected once at startup."""

    def __init__(
        self,
        convention: AddressingConvention,
        *,
        fixed: ResolvedRoute | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            convention: Addressing convention for this mount.
            fixed: Constant route, required for the fixed convention.
        """
        if convention is AddressingConvention.FIXED and fixed is None:
            raise ValueError("fixed convention requires a fixed route")
        self.convention = convention
        self._fixed = fixed

    def resolve(self, path: str = "") -> ResolvedRoute:
        """Resolve a prefix-stripped path to a route triple.

        Raises:
            PathError: If the path does not fit the convention.
        """
        if self._fixed is not None:
            if split_path(path):
                raise PathError(path, reason="unexpected_segments")
            return self._fixed
        return resolve_path(path, self.convention)
