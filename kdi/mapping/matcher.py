import logging
from typing import Any
from typing import Iterable

from kdi.mapping.model import Definition

logger = logging.getLogger(__name__)


def normalize_identifier(identifier: Any) -> str:
    """
    Normalize a scanner identifier for matching.

    Lower-cases the identifier and replaces spaces and hyphens with underscores,
    so "UPnP Accessible", "upnp-accessible" and "upnp_accessible" are equivalent.
    """
    if identifier is None:
        return ""
    return str(identifier).lower().replace(" ", "_").replace("-", "_")


def coerce_port(port: Any) -> int | None:
    """
    Vendor payloads report ports as ints or numeric strings. Anything else is
    treated as no port at all.
    """
    if port is None or isinstance(port, bool):
        return None
    if isinstance(port, int):
        return port
    text = str(port).strip()
    if text.isascii() and text.isdigit():
        return int(text)
    logger.debug("Ignoring non-numeric port %r.", port)
    return None


def _first_definition(
    definitions: Iterable[Definition],
    source: str,
    identifier: str,
    port: int | None,
) -> Definition | None:
    for definition in definitions:
        for match in definition.matches:
            if not match.matches(source, identifier):
                continue
            if port is None or match.applies_to_port(port):
                return definition
    return None


def find_definition(
    definitions: Iterable[Definition],
    source: str,
    identifier: str,
    port: Any = None,
) -> Definition | None:
    """
    Resolve a normalized scanner identifier to its canonical definition.

    When a port is given, rules restricted to that port (or unrestricted rules)
    are searched first. If none applies, the search is repeated ignoring ports
    so a port-specific rule set never drops an otherwise valid mapping. In both
    passes the first definition in load order wins.

    Args:
        definitions: Definitions in load order.
        source: The scanner name, compared exactly against each match's source.
        identifier: An identifier already passed through normalize_identifier().
        port: Optional port the finding was reported on.

    Returns:
        The matching Definition, or None.
    """
    definitions = tuple(definitions)
    port = coerce_port(port)
    if port is not None:
        definition = _first_definition(definitions, source, identifier, port)
        if definition is not None:
            return definition
    return _first_definition(definitions, source, identifier, None)
