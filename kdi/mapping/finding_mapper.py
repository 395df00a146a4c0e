import csv
import logging
import os
from datetime import datetime
from enum import Enum
from typing import Any

from kdi.mapping.matcher import find_definition
from kdi.mapping.matcher import normalize_identifier
from kdi.mapping.model import ConfigurationError
from kdi.mapping.model import Definition
from kdi.mapping.store import rule_file_path
from kdi.mapping.store import RuleStore
from kdi.settings import check_module_settings
from kdi.settings import settings
from kdi.stats import get_stats_client

logger = logging.getLogger(__name__)

NORMALIZED_SOURCE_SUFFIX = "(Kenna Normalized)"
MISSING_MAPPINGS_FILENAME = "missing_mappings_{date}.csv"


class MapperState(str, Enum):
    """Lifecycle of a FindingMapper's rule store."""

    UNLOADED = "UNLOADED"
    """The rule file has not been parsed yet."""

    LOADED = "LOADED"
    """The rule file was parsed and is memoized for the life of the mapper."""

    FAILED = "FAILED"
    """Parsing failed. Every lookup re-raises the original error."""


def _join_text(canonical: str, specific: str) -> str:
    return f"{canonical or ''}\n\n {specific or ''}".strip()


def canonical_details(
    definition: Definition,
    source: str,
    identifier: str,
    description: str = "",
    remediation: str = "",
) -> dict[str, Any]:
    """
    Build the canonical vuln details for a matched finding.

    Finding-specific description and remediation text is appended to the
    definition's text. Empty text fields are left out.
    """
    details: dict[str, Any] = {
        "scanner_type": source,
        "scanner_identifier": identifier,
        "source": f"{source} {NORMALIZED_SOURCE_SUFFIX}",
        "scanner_score": int(definition.score / 10),
        "override_score": int(definition.score),
        "name": definition.name,
    }
    description = _join_text(definition.description, description)
    if description:
        details["description"] = description
    recommendation = _join_text(definition.recommendation, remediation)
    if recommendation:
        details["recommendation"] = recommendation
    return details


class FindingMapper:
    """
    Maps scanner-specific findings to canonical vulnerability definitions.

    The rule file location is validated on construction but parsed on first use.
    Identifiers without a matching rule are passed through, logged, and appended
    once each to a dated ``missing_mappings_<YYYY-MM-DD>.csv`` in the output
    directory.

    A mapper is meant to be used by a single connector run in a single thread.
    """

    def __init__(
        self,
        output_directory: str | None,
        input_directory: str | None,
        mapping_file: str | None,
        strict: bool = True,
    ):
        if not output_directory:
            raise ConfigurationError("A mapping output directory is required.")
        self.output_directory = output_directory
        self.mapping_path = rule_file_path(input_directory, mapping_file)
        self.strict = strict
        self._store: RuleStore | None = None
        self._load_error: Exception | None = None
        self._missing_mappings: set[tuple[str, str]] = set()
        self._stats = get_stats_client("mapping")

    @property
    def state(self) -> MapperState:
        if self._load_error is not None:
            return MapperState.FAILED
        if self._store is not None:
            return MapperState.LOADED
        return MapperState.UNLOADED

    @property
    def missing_mappings(self) -> frozenset[tuple[str, str]]:
        """The (scanner_identifier, scanner_source) pairs that could not be mapped so far."""
        return frozenset(self._missing_mappings)

    def ensure_loaded(self) -> RuleStore:
        """
        Parse the rule file if that has not happened yet, and return the rule store.

        Raises:
            ConfigurationError: If the rule file is invalid.
            FileNotFoundError: If the rule file disappeared since construction.
        """
        if self._load_error is not None:
            raise self._load_error
        if self._store is None:
            try:
                with self._stats.timer("load"):
                    self._store = RuleStore.load(self.mapping_path, strict=self.strict)
                self._stats.gauge("definitions", self._store.load_result.definition_count)
            except (ConfigurationError, OSError) as e:
                logger.error("Unable to load mapping file %s: %s", self.mapping_path, e)
                self._load_error = e
                raise
        return self._store

    def get_canonical_vuln_details(
        self,
        orig_source: str,
        specific_details: dict[str, Any],
        port: int | None = None,
        description: str = "",
        remediation: str = "",
    ) -> dict[str, Any]:
        """
        Map one finding to its canonical vuln details.

        Args:
            orig_source: The scanner the finding came from, e.g. "SecurityScorecard".
            specific_details: The scanner's vuln def. Must contain "scanner_identifier".
            port: Optional port the finding was reported on. Port-specific rules
                take precedence over generic ones.
            description: Finding-specific text appended to the canonical description.
            remediation: Finding-specific text appended to the canonical recommendation.

        Returns:
            The canonical details when a rule matches. Otherwise the caller's details
            with scanner_type, source and name filled in from the identifier.
        """
        store = self.ensure_loaded()
        vuln_id = normalize_identifier(specific_details["scanner_identifier"])
        definition = find_definition(store.definitions, orig_source, vuln_id, port)
        if definition is None:
            return self._unmapped(orig_source, vuln_id, specific_details)
        self._stats.incr("matched")
        return canonical_details(definition, orig_source, vuln_id, description, remediation)

    def missing_mappings_path(self) -> str:
        date = datetime.now().strftime("%Y-%m-%d")
        return os.path.join(
            self.output_directory, MISSING_MAPPINGS_FILENAME.format(date=date)
        )

    def _unmapped(
        self, source: str, vuln_id: str, specific_details: dict[str, Any]
    ) -> dict[str, Any]:
        logger.warning(
            "Unable to map canonical vuln for %s identifier '%s'.", source, vuln_id
        )
        self._stats.incr("unmapped")
        self._record_missing_mapping(vuln_id, source)
        details = {
            "scanner_type": source,
            "source": source,
            "name": vuln_id,
            **specific_details,
        }
        # Overrides the caller's scanner_identifier.
        details["scanner_identifier"] = vuln_id
        return details

    def _record_missing_mapping(self, vuln_id: str, source: str) -> None:
        entry = (vuln_id, source)
        if entry in self._missing_mappings:
            return
        os.makedirs(self.output_directory, exist_ok=True)
        with open(self.missing_mappings_path(), "a", newline="", encoding="utf-8") as fh:
            csv.writer(fh).writerow(entry)
        # Only misses that reached the file count as recorded.
        self._missing_mappings.add(entry)


def build_finding_mapper() -> FindingMapper | None:
    """
    Build a FindingMapper from the ``mapping`` settings section.

    Returns None when mapping is not configured, in which case connectors keep the
    scanner's own vuln defs.
    """
    if not check_module_settings(
        "Mapping", ["output_directory", "input_directory", "mapping_file"]
    ):
        return None
    return FindingMapper(
        settings.mapping.output_directory,
        settings.mapping.input_directory,
        settings.mapping.mapping_file,
        strict=settings.mapping.get("strict", True),
    )
