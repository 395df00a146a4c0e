from kdi.mapping.finding_mapper import build_finding_mapper
from kdi.mapping.finding_mapper import FindingMapper
from kdi.mapping.finding_mapper import MapperState
from kdi.mapping.matcher import normalize_identifier
from kdi.mapping.model import ConfigurationError
from kdi.mapping.model import Definition
from kdi.mapping.model import Match

__all__ = [
    "build_finding_mapper",
    "ConfigurationError",
    "Definition",
    "FindingMapper",
    "MapperState",
    "Match",
    "normalize_identifier",
]
