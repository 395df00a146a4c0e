"""
Rule store for canonical vulnerability mappings.

A rule file is a CSV table with a header row. Each row is either a canonical
vulnerability ``definition`` or a ``match`` binding a scanner identifier pattern
to a definition by name::

    type,name,cwe or source,score or vuln_regx,port,description,remediation
    definition,Accessible UPNP server,,90,,A UPnP device is accessible,Close the port.
    match,Accessible UPNP server,SecurityScorecard,/^upnp_accessible$/i,,,
    match,Accessible HTTP server,TestScanner,/^http_accessible$/i,"80,8080",,

Columns are looked up by header name. A column whose header is not recognized
falls back to its documented position.
"""

import csv
import io
import logging
import os
import re
from collections import defaultdict

from kdi.mapping.model import ConfigurationError
from kdi.mapping.model import Definition
from kdi.mapping.model import LoadResult
from kdi.mapping.model import Match

logger = logging.getLogger(__name__)

DEFINITION_ROW = "definition"
MATCH_ROW = "match"

# Column key -> accepted (normalized) header names.
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "type": ("type",),
    "name": ("name",),
    "cwe_or_source": ("cwe_or_source", "cwe", "source"),
    "score_or_pattern": (
        "score_or_vuln_regx",
        "score_or_vuln_regex",
        "score_or_pattern",
        "score",
        "vuln_regx",
        "pattern",
    ),
    "port": ("port", "ports"),
    "description": ("description",),
    "remediation": ("remediation", "recommendation"),
}

COLUMN_POSITIONS: dict[str, int] = {
    "type": 0,
    "name": 1,
    "cwe_or_source": 2,
    "score_or_pattern": 3,
    "port": 4,
    "description": 5,
    "remediation": 6,
}

# Header written by the rule file authoring tools, in column order.
RULE_FILE_HEADER = (
    "type",
    "name",
    "cwe or source",
    "score or vuln_regx",
    "port",
    "description",
    "remediation",
)

_REGEX_LITERAL = re.compile(r"^/(?P<body>.*)/(?P<flags>[a-z]*)$", re.DOTALL)
_REGEX_LITERAL_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.DOTALL,
    "x": re.VERBOSE,
}
_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")


def rule_file_path(input_directory: str | None, mapping_file: str | None) -> str:
    """
    Resolve the rule file location.

    Raises:
        ConfigurationError: If the directory or the file name is missing.
        FileNotFoundError: If the resolved path does not exist.
    """
    if not input_directory:
        raise ConfigurationError("A mapping input directory is required.")
    if not mapping_file:
        raise ConfigurationError("A mapping file name is required.")
    path = os.path.join(input_directory, mapping_file)
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Mapping file not found: {path}")
    return path


def read_rule_file(path: str) -> str:
    """
    Read a rule file as text.

    Rule files are maintained in spreadsheets and are not always saved as UTF-8,
    so content that fails to decode as UTF-8 is read as ISO-8859-1.
    """
    with open(path, "rb") as fh:
        raw = fh.read()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("%s is not valid UTF-8, decoding as ISO-8859-1.", path)
        return raw.decode("iso-8859-1")


def _normalize_header(header: str) -> str:
    return re.sub(r"[\s\-]+", "_", header.strip().lower())


def resolve_columns(header: list[str]) -> dict[str, int]:
    normalized = [_normalize_header(h) for h in header]
    columns: dict[str, int] = {}
    for key, aliases in COLUMN_ALIASES.items():
        index = next((i for i, h in enumerate(normalized) if h in aliases), None)
        if index is None:
            index = COLUMN_POSITIONS[key]
            logger.debug(
                "No header found for rule column '%s', using position %d.",
                key,
                index + 1,
            )
        columns[key] = index
    return columns


def _cell(row: list[str], index: int) -> str:
    if index >= len(row):
        return ""
    return row[index] or ""


def parse_score(value: str) -> int:
    """Parse the leading integer of a cell: "90" -> 90, "abc" or "" -> 0."""
    match = _LEADING_INTEGER.match(value or "")
    return int(match.group(1)) if match else 0


def parse_ports(value: str) -> frozenset[int]:
    """Parse a comma separated port list, dropping blank and non-numeric entries."""
    ports = set()
    for entry in (value or "").split(","):
        entry = entry.strip()
        if entry.isascii() and entry.isdigit():
            ports.add(int(entry))
    return frozenset(ports)


def parse_pattern(value: str) -> re.Pattern[str]:
    """
    Compile a match pattern. Patterns are always case-insensitive.

    Both bare expressions (``^upnp_accessible$``) and delimited literals with
    trailing flags (``/^upnp_accessible$/i``) are accepted.

    Raises:
        ConfigurationError: If the pattern is blank or does not compile.
    """
    text = (value or "").strip()
    flags = re.IGNORECASE
    literal = _REGEX_LITERAL.match(text)
    if literal:
        text = literal.group("body")
        for flag in literal.group("flags"):
            flags |= _REGEX_LITERAL_FLAGS.get(flag, 0)
    if not text:
        raise ConfigurationError("Match pattern is empty.")
    try:
        return re.compile(text, flags)
    except re.error as e:
        raise ConfigurationError(f"Invalid match pattern {value!r}: {e}") from e


def load_rule_file(path: str, strict: bool = True) -> LoadResult:
    """
    Parse a rule file into definitions with their matches attached.

    All definition rows are indexed by name before any match row is processed,
    so match rows may appear anywhere in the file.

    Args:
        path: Path to the CSV rule file.
        strict: When True, the first invalid row aborts the load. When False,
            invalid match rows are logged, skipped and counted.

    Raises:
        ConfigurationError: If the file has no header, or (strict) a definition is
            unnamed or duplicated, or a match row references an unknown definition
            or carries an unusable pattern.
    """
    rows = list(csv.reader(io.StringIO(read_rule_file(path))))
    if not rows:
        raise ConfigurationError(f"Mapping file {path} is empty.")
    columns = resolve_columns(rows[0])

    definitions: dict[str, Definition] = {}
    match_rows: list[tuple[int, list[str]]] = []
    for line_number, row in enumerate(rows[1:], start=2):
        row_type = _cell(row, columns["type"]).strip().lower()
        if row_type == MATCH_ROW:
            match_rows.append((line_number, row))
        elif row_type == DEFINITION_ROW:
            definition = _parse_definition(row, columns)
            if not definition.name:
                _reject(path, line_number, "definition has no name", strict)
            elif definition.name in definitions:
                _reject(
                    path,
                    line_number,
                    f"duplicate definition '{definition.name}'",
                    strict,
                )
            else:
                definitions[definition.name] = definition

    invalid_match_count = 0
    for line_number, row in match_rows:
        name = _cell(row, columns["name"]).strip()
        definition = definitions.get(name)
        try:
            if definition is None:
                raise ConfigurationError(f"match references unknown definition '{name}'")
            match = Match(
                source=_cell(row, columns["cwe_or_source"]).strip(),
                vuln_id=parse_pattern(_cell(row, columns["score_or_pattern"])),
                ports=parse_ports(_cell(row, columns["port"])),
            )
        except ConfigurationError as e:
            _reject(path, line_number, str(e), strict)
            invalid_match_count += 1
            continue
        definition.add_match(match)

    logger.info(
        "Loaded %d definitions from %s. Processed %d match rows, %d invalid.",
        len(definitions),
        path,
        len(match_rows),
        invalid_match_count,
    )
    return LoadResult(
        definitions=tuple(definitions.values()),
        match_count=len(match_rows),
        invalid_match_count=invalid_match_count,
    )


def _parse_definition(row: list[str], columns: dict[str, int]) -> Definition:
    cwe = _cell(row, columns["cwe_or_source"]).strip()
    return Definition(
        name=_cell(row, columns["name"]).strip(),
        cwe=cwe or None,
        score=parse_score(_cell(row, columns["score_or_pattern"])),
        description=_cell(row, columns["description"]),
        recommendation=_cell(row, columns["remediation"]),
    )


def _reject(path: str, line_number: int, reason: str, strict: bool) -> None:
    if strict:
        raise ConfigurationError(f"Invalid row {line_number} in {path}: {reason}")
    logger.warning("Skipping invalid row %d in %s: %s", line_number, path, reason)


class RuleStore:
    """The parsed, read-only rule set of one mapping file."""

    def __init__(self, result: LoadResult):
        self._result = result

    @classmethod
    def load(cls, path: str, strict: bool = True) -> "RuleStore":
        return cls(load_rule_file(path, strict=strict))

    @property
    def definitions(self) -> tuple[Definition, ...]:
        return self._result.definitions

    @property
    def load_result(self) -> LoadResult:
        return self._result

    def matches_by_source(self) -> dict[str, list[str]]:
        """Group the match patterns of every definition by scanner source."""
        grouped: dict[str, list[str]] = defaultdict(list)
        for definition in self.definitions:
            for match in definition.matches:
                grouped[match.source].append(match.vuln_id.pattern)
        return dict(grouped)
