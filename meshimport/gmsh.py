"""
Gmsh MSH Driver
===============

Reads legacy ASCII MSH 2.x files:

    $MeshFormat
    2.2 0 8
    $EndMeshFormat
    $PhysicalNames
    <count>
    <dim> <tag> "<name>"
    $EndPhysicalNames
    $Nodes
    <count>
    <id> <x> <y> <z>
    $EndNodes
    $Elements
    <count>
    <id> <type> <ntags> <tag>... <node>...
    $EndElements

Sections other than these are skipped.
"""

import logging
import re
import warnings
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .builders import NamedMarkers, ParseContext, parse_float, parse_int
from .errors import MalformedRecordError, ParseWarning, TruncatedError, UnsupportedFeatureError
from .mesh import CanonicalMesh
from .taxonomy import ElementType, MeshFormat, lookup

logger = logging.getLogger(__name__)

_READ_SECTIONS = ("MeshFormat", "PhysicalNames", "Nodes", "Elements")
_PHYSICAL_NAME = re.compile(r'^\s*(\d+)\s+(\d+)\s+"(.*)"\s*$')


@dataclass
class Section:
    """Lines between $Name and $EndName"""
    name: str
    line_number: int
    rows: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def location(self) -> str:
        return f"line {self.line_number}"


def tokenize(text: str) -> Dict[str, Section]:
    """Split MSH text into sections keyed by name

    A repeated section the driver reads is malformed; other repeats are skipped.
    """
    sections: Dict[str, Section] = {}
    current: Optional[Section] = None

    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            continue
        if current is None:
            if stripped.startswith("$"):
                current = Section(stripped[1:], line_number)
            else:
                logger.debug("Ignoring text outside sections at line %d", line_number)
            continue
        if stripped == f"$End{current.name}":
            if current.name in sections and current.name in _READ_SECTIONS:
                raise MalformedRecordError(
                    current.location,
                    f"repeated ${current.name} section (first at {sections[current.name].location})")
            if current.name in sections:
                logger.debug("Skipping repeated $%s at %s", current.name, current.location)
            else:
                sections[current.name] = current
            current = None
            continue
        current.rows.append((line_number, stripped))

    if current is not None:
        raise TruncatedError(current.location, f"${current.name} has no $End{current.name}")
    return sections


def _counted_rows(section: Section) -> List[Tuple[int, List[str]]]:
    """Return the data rows of a section that starts with a count line"""
    if not section.rows:
        raise TruncatedError(section.location, f"${section.name} has no count line")
    line_number, count_line = section.rows[0]
    count = parse_int(count_line.split()[0], f"line {line_number}", "count")
    rows = section.rows[1:]
    if len(rows) < count:
        raise TruncatedError(section.location, f"${section.name} declares {count} records, found {len(rows)}")
    if len(rows) > count:
        raise MalformedRecordError(section.location, f"${section.name} declares {count} records, found {len(rows)}")
    return [(number, text.split()) for number, text in rows]


def _check_format(sections: Dict[str, Section]) -> None:
    section = sections.get("MeshFormat")
    if section is None:
        logger.debug("No $MeshFormat section, assuming MSH 2")
        return
    if not section.rows:
        raise TruncatedError(section.location, "$MeshFormat is empty")
    line_number, text = section.rows[0]
    fields = text.split()
    location = f"line {line_number}"
    if len(fields) < 2:
        raise MalformedRecordError(location, "expected '<version> <file-type> <data-size>'")
    version = parse_float(fields[0], location, "version")
    if parse_int(fields[1], location, "file type") != 0:
        raise UnsupportedFeatureError("binary MSH files")
    if version >= 3:
        raise UnsupportedFeatureError(f"MSH version {fields[0]}")


def _read_physical_names(section: Section) -> Dict[Tuple[int, int], str]:
    if not section.rows:
        raise TruncatedError(section.location, "$PhysicalNames has no count line")
    line_number, count_line = section.rows[0]
    count = parse_int(count_line.split()[0], f"line {line_number}", "count")
    found = len(section.rows) - 1
    if found < count:
        raise TruncatedError(section.location, f"$PhysicalNames declares {count} names, found {found}")
    if found > count:
        raise MalformedRecordError(section.location, f"$PhysicalNames declares {count} names, found {found}")

    names = {}
    for line_number, text in section.rows[1:]:
        match = _PHYSICAL_NAME.match(text)
        if match is None:
            raise MalformedRecordError(f"line {line_number}", f"expected '<dim> <tag> \"<name>\"', got {text!r}")
        names[(int(match.group(1)), int(match.group(2)))] = match.group(3)
    return names


def _read_nodes(section: Section, ctx: ParseContext) -> None:
    for line_number, fields in _counted_rows(section):
        location = f"line {line_number}"
        if len(fields) != 4:
            raise MalformedRecordError(location, f"expected '<id> <x> <y> <z>', found {len(fields)} fields")
        ctx.nodes.add(parse_int(fields[0], location, "node id"),
                      [parse_float(value, location) for value in fields[1:]],
                      location)


def _read_elements(section: Section, ctx: ParseContext,
                   physical_names: Optional[Dict[Tuple[int, int], str]]) -> None:
    # Stable grouping by type code in first-seen order
    groups: "OrderedDict[int, Tuple[ElementType, List[int], List[Optional[str]], str]]" = OrderedDict()
    untagged = set()

    for line_number, fields in _counted_rows(section):
        location = f"line {line_number}"
        if len(fields) < 3:
            raise MalformedRecordError(location, "expected '<id> <type> <ntags> ...'")
        code = parse_int(fields[1], location, "element type")
        tag_count = parse_int(fields[2], location, "tag count")
        if tag_count < 0:
            raise MalformedRecordError(location, f"negative tag count {tag_count}")
        if code not in groups:
            groups[code] = (lookup(MeshFormat.GMSH, code), [], [], location)
        element_type, node_ids, markers, _ = groups[code]

        expected = 3 + tag_count + element_type.node_count
        if len(fields) != expected:
            raise MalformedRecordError(
                location, f"type {code} with {tag_count} tags needs {expected} fields, found {len(fields)}")
        tags = [parse_int(value, location, "tag") for value in fields[3:3 + tag_count]]
        node_ids.extend(parse_int(value, location, "node id") for value in fields[3 + tag_count:])

        name = None
        if physical_names is not None and tags and tags[0] != 0:
            key = (element_type.kind.dimension, tags[0])
            name = physical_names.get(key)
            if name is None:
                untagged.add(key)
        markers.append(name)

    for dimension, tag in sorted(untagged):
        warnings.warn(f"Physical tag {tag} (dimension {dimension}) has no $PhysicalNames entry; "
                      f"its elements are unmarked", ParseWarning)

    for code, (element_type, node_ids, markers, location) in groups.items():
        count = ctx.elements.add(element_type, node_ids, location, markers=markers)
        logger.debug("Element type %d: %d elements", code, count)


def _infer_dimension(coordinates: np.ndarray, highest_kind_dimension: int) -> int:
    """Drop trailing all-zero coordinate columns, keeping room for the elements"""
    dimension = coordinates.shape[1]
    while dimension > 1 and not np.any(coordinates[:, dimension - 1]):
        dimension -= 1
    return max(dimension, highest_kind_dimension, 1)


def parse(text: str, spatial_dimension: Optional[int] = None) -> CanonicalMesh:
    """Parse Gmsh MSH 2 text into a canonical mesh

    Markers come from $PhysicalNames: an element's first tag is looked up
    by (element dimension, tag) and names are numbered in sorted order.
    Without $PhysicalNames every element is unmarked.

    Raises:
        UnsupportedFeatureError: On binary files or MSH 3/4
        UnsupportedElementTypeError: On prisms, pyramids and other codes
        MalformedRecordError: On bad fields or unknown node ids
        TruncatedError: On unterminated sections or short counts
    """
    sections = tokenize(text)
    _check_format(sections)
    if "Nodes" not in sections:
        raise MalformedRecordError("<gmsh>", "no $Nodes section")

    ctx = ParseContext(MeshFormat.GMSH, spatial_dimension)
    physical_names = None
    if "PhysicalNames" in sections:
        physical_names = _read_physical_names(sections["PhysicalNames"])

    _read_nodes(sections["Nodes"], ctx)
    if "Elements" in sections:
        _read_elements(sections["Elements"], ctx, physical_names)
    for name in sections:
        if name not in _READ_SECTIONS:
            logger.debug("Skipping $%s", name)

    highest = max((kind.dimension for kind, _ in ctx.elements.kinds), default=0)
    ctx.spatial_dimension = _infer_dimension(ctx.nodes.build().coordinates, highest)
    return ctx.finish(NamedMarkers(ctx.elements.raw_markers()))
