import re
from dataclasses import dataclass
from dataclasses import field


class ConfigurationError(ValueError):
    """Raised when the mapper is misconfigured or its rule file is invalid."""

    pass


@dataclass(frozen=True)
class Match:
    """A rule binding a scanner-specific identifier pattern to its owning Definition."""

    source: str
    """The scanner or vendor name, e.g. "SecurityScorecard". Compared exactly."""
    vuln_id: re.Pattern[str]
    """Case-insensitive pattern searched in the normalized scanner identifier."""
    ports: frozenset[int] = frozenset()
    """Ports the rule applies to. Empty means the rule applies regardless of port."""

    def matches(self, source: str, identifier: str) -> bool:
        return self.source == source and self.vuln_id.search(identifier) is not None

    def applies_to_port(self, port: int) -> bool:
        return not self.ports or port in self.ports


@dataclass
class Definition:
    """A canonical vulnerability record shared by many scanner identifiers."""

    name: str
    """Unique key within a rule store."""
    score: int = 0
    """Severity on a 0-100 scale."""
    cwe: str | None = None
    description: str = ""
    recommendation: str = ""
    matches: list[Match] = field(default_factory=list)
    """Populated while loading, in file order. A definition without matches is never returned by a lookup."""

    def add_match(self, match: Match) -> None:
        self.matches.append(match)


@dataclass(frozen=True)
class LoadResult:
    """The definitions parsed from one rule file, with the loader's counters."""

    definitions: tuple[Definition, ...]
    match_count: int
    """Number of match rows processed, valid or not."""
    invalid_match_count: int = 0
    """Number of match rows skipped. Only non-zero when loading leniently."""

    @property
    def definition_count(self) -> int:
        return len(self.definitions)
