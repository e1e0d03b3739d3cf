"""
Abaqus Input File Driver
========================

Reads nodes and element connectivity from Abaqus input decks (.inp).

Grammar handled (case-insensitive, whitespace ignored):

    ** comment
    *NODE[, NSET=<name>]
    <id>, <x>[, <y>[, <z>]]
    *ELEMENT, TYPE=<code>[, ELSET=<name>]
    <id>, <n1>, <n2>, ...        (a row may wrap onto following lines)

All other keyword blocks are skipped. The spatial dimension is inferred from
the element families met, e.g. CPS4 implies 2D and C3D8 or S4R imply 3D.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .builders import NamedMarkers, NodeTableBuilder, ParseContext, parse_float, parse_int
from .errors import MalformedRecordError, UnsupportedElementTypeError, UnsupportedFeatureError
from .mesh import CanonicalMesh
from .taxonomy import MeshFormat, lookup

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_DIGITS = re.compile(r"\d+")

# Procedurally generated nodes/elements are never expanded
_GENERATION_KEYWORDS = ("NGEN", "ELGEN")


@dataclass
class KeywordRecord:
    """A keyword line with the data lines that follow it"""
    keyword: str
    parameters: Dict[str, str]
    line_number: int
    data: List[Tuple[int, List[str]]] = field(default_factory=list)

    @property
    def location(self) -> str:
        return f"line {self.line_number}"


def tokenize(text: str) -> List[KeywordRecord]:
    """Split an input deck into keyword records

    Lines are stripped of all whitespace and upper-cased. `**` lines are
    comments. Trailing empty fields (from wrapped rows ending in a comma) are
    dropped.
    """
    records: List[KeywordRecord] = []
    current: Optional[KeywordRecord] = None

    for line_number, line in enumerate(text.splitlines(), start=1):
        line = _WHITESPACE.sub("", line).upper()
        if not line or line.startswith("**"):
            continue

        if line.startswith("*"):
            parts = line[1:].split(",")
            parameters = {}
            for part in parts[1:]:
                if part:
                    key, _, value = part.partition("=")
                    parameters[key] = value
            current = KeywordRecord(parts[0], parameters, line_number)
            records.append(current)
            continue

        if current is None:
            raise MalformedRecordError(f"line {line_number}", "data line before the first keyword")
        fields = line.split(",")
        while fields and not fields[-1]:
            fields.pop()
        if fields:
            current.data.append((line_number, fields))

    return records


@dataclass(frozen=True)
class _PrefixRule:
    prefix: str
    shape: str
    dimension: int
    by_order: bool = False
    fixed_nodes: Optional[int] = None


# First match wins, so longer prefixes precede the shorter ones they extend
_TYPE_RULES = (
    _PrefixRule("DC3D", "solid", 3),
    _PrefixRule("DC2D", "surface", 2),
    _PrefixRule("DCAX", "surface", 2),
    _PrefixRule("DC1D", "line", 1),
    _PrefixRule("DS", "surface", 3),
    _PrefixRule("C3D", "solid", 3),
    _PrefixRule("CPEG", "surface", 2),
    _PrefixRule("CPE", "surface", 2),
    _PrefixRule("CPS", "surface", 2),
    _PrefixRule("CGAX", "surface", 2),
    _PrefixRule("CAX", "surface", 2),
    _PrefixRule("SC", "solid", 3),
    _PrefixRule("STRI65", "surface", 3, fixed_nodes=6),
    _PrefixRule("STRI", "surface", 3),
    _PrefixRule("SFM3D", "surface", 3),
    _PrefixRule("SAX", "line", 2, by_order=True),
    _PrefixRule("S", "surface", 3),
    _PrefixRule("M3D", "surface", 3),
    _PrefixRule("R3D", "surface", 3),
    _PrefixRule("R2D", "line", 2),
    _PrefixRule("RB3D", "line", 3),
    _PrefixRule("RB2D", "line", 2),
    _PrefixRule("T3D", "line", 3),
    _PrefixRule("T2D", "line", 2),
    _PrefixRule("B3", "line", 3, by_order=True),
    _PrefixRule("B2", "line", 2, by_order=True),
    _PrefixRule("PIPE3", "line", 3, by_order=True),
    _PrefixRule("PIPE2", "line", 2, by_order=True),
)

# Interpolation order digit -> node count (3 is cubic Hermite on two nodes)
_ORDER_NODES = {"1": 2, "2": 3, "3": 2}


@dataclass(frozen=True)
class DecodedType:
    """Abaqus element family decoded from its TYPE string"""
    shape: str
    dimension: int
    node_count: int


def decode_element_type(code: str) -> DecodedType:
    """Decode an Abaqus TYPE string

    The decoder matches a family prefix, reads the node-count digits, and
    ignores the trailing formulation letters (R, H, I, M, ...).

    Raises:
        UnsupportedElementTypeError: If no family matches or no count follows
    """
    for rule in _TYPE_RULES:
        if code.startswith(rule.prefix):
            break
    else:
        raise UnsupportedElementTypeError(code)

    if rule.fixed_nodes is not None:
        return DecodedType(rule.shape, rule.dimension, rule.fixed_nodes)

    digits = _DIGITS.match(code, len(rule.prefix))
    if digits is None:
        raise UnsupportedElementTypeError(code)

    if rule.by_order:
        node_count = _ORDER_NODES.get(digits.group())
        if node_count is None:
            raise UnsupportedElementTypeError(code)
    else:
        node_count = int(digits.group())

    return DecodedType(rule.shape, rule.dimension, node_count)


def _read_nodes(record: KeywordRecord, ctx: ParseContext) -> None:
    if "INPUT" in record.parameters:
        raise UnsupportedFeatureError(f"*NODE, INPUT= ({record.location})")

    for line_number, fields in record.data:
        location = f"line {line_number}"
        file_id = parse_int(fields[0], location, "node id")
        # Blank coordinate fields are zero in Abaqus
        coordinates = [parse_float(value, location) if value else 0.0 for value in fields[1:]]
        ctx.nodes.add(file_id, coordinates, location)


def _read_elements(record: KeywordRecord, ctx: ParseContext) -> None:
    if "INPUT" in record.parameters:
        raise UnsupportedFeatureError(f"*ELEMENT, INPUT= ({record.location})")
    code = record.parameters.get("TYPE")
    if not code:
        raise MalformedRecordError(record.location, "*ELEMENT without TYPE")

    decoded = decode_element_type(code)
    element_type = lookup(MeshFormat.ABAQUS, (decoded.shape, decoded.node_count), label=code)

    values = [parse_int(value, f"line {line_number}", "node id")
              for line_number, fields in record.data for value in fields]
    width = element_type.node_count + 1
    if len(values) % width:
        raise MalformedRecordError(
            record.location,
            f"{len(values)} fields do not form whole {code} elements of {width} fields")

    rows = np.array(values, dtype=np.int64).reshape(-1, width)
    elset = record.parameters.get("ELSET") or None
    count = ctx.elements.add(element_type, rows[:, 1:], record.location, markers=[elset] * len(rows))
    ctx.widen_dimension(decoded.dimension)
    logger.debug("*ELEMENT %s at %s: %d elements", code, record.location, count)


def parse(text: str, spatial_dimension: Optional[int] = None) -> CanonicalMesh:
    """Parse Abaqus input deck text into a canonical mesh

    Args:
        text: Full file content
        spatial_dimension: Override for the inferred spatial dimension

    Raises:
        UnsupportedFeatureError: On *NGEN, *ELGEN, *INCLUDE or INPUT= data
        UnsupportedElementTypeError: On element families outside the taxonomy
        MalformedRecordError: On bad fields, duplicate or unknown node ids
    """
    records = tokenize(text)
    for record in records:
        if record.keyword in _GENERATION_KEYWORDS:
            raise UnsupportedFeatureError(
                f"incremental generation (*{record.keyword} at {record.location})")

    ctx = ParseContext(MeshFormat.ABAQUS, spatial_dimension,
                       nodes=NodeTableBuilder(pad_short_rows=True))
    for record in records:
        if record.keyword == "NODE":
            _read_nodes(record, ctx)
        elif record.keyword == "ELEMENT":
            _read_elements(record, ctx)
        elif record.keyword == "INCLUDE":
            raise UnsupportedFeatureError(f"*INCLUDE ({record.location})")
        else:
            logger.debug("Skipping *%s at %s", record.keyword, record.location)

    return ctx.finish(NamedMarkers(ctx.elements.raw_markers()))
