"""
Comsol Mesh Text Driver
=======================

Reads the first mesh object of a Comsol text file (.mphtxt).

Values and section labels share lines; the label is the trailing comment:

    3 # sdim
    4 # number of mesh points
    0 # lowest mesh point index
    # Mesh point coordinates
    0 0 0
    ...
    3 tri # type name
    3 # number of nodes per element
    2 # number of elements
    # Elements
    0 1 2
    ...
    2 # number of domains
    # Domains
    1
    ...

Both the older "mesh point"/"Domains" labels and the newer "mesh
vertex"/"Geometric entity indices" labels are accepted.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .builders import IntegerMarkers, ParseContext, parse_float, parse_int
from .errors import MalformedRecordError, TruncatedError, UnsupportedFeatureError
from .mesh import CanonicalMesh
from .taxonomy import ElementType, MeshFormat, lookup

logger = logging.getLogger(__name__)

# Comment label -> canonical label
_LABELS = {
    "sdim": "sdim",
    "number of mesh points": "node count",
    "number of mesh vertices": "node count",
    "lowest mesh point index": "lowest index",
    "lowest mesh vertex index": "lowest index",
    "mesh point coordinates": "coordinates",
    "mesh vertex coordinates": "coordinates",
    "type name": "type name",
    "number of nodes per element": "nodes per element",
    "number of vertices per element": "nodes per element",
    "number of elements": "element count",
    "elements": "elements",
    "number of domains": "marker count",
    "number of geometric entity indices": "marker count",
    "domains": "markers",
    "geometric entity indices": "markers",
    "number of up/down pairs": "up/down count",
    "up/down": "up/down",
}


@dataclass
class LineRecord:
    """One non-blank line split into value tokens and a comment label"""
    line_number: int
    values: List[str]
    label: Optional[str]
    raw_label: Optional[str] = None

    @property
    def location(self) -> str:
        return f"line {self.line_number}"


def tokenize(text: str) -> List[LineRecord]:
    """Split Comsol text into line records"""
    records = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        value_part, hash_sign, comment = line.partition("#")
        values = value_part.split()
        raw_label = comment.strip() if hash_sign else None
        if not values and not raw_label:
            continue
        label = _LABELS.get(raw_label.lower()) if raw_label else None
        records.append(LineRecord(line_number, values, label, raw_label))
    return records


class _Cursor:
    """Position over the record list, local to one parse"""

    def __init__(self, records: List[LineRecord]):
        self.records = records
        self.index = 0

    def __iter__(self):
        return self

    def __next__(self) -> LineRecord:
        if self.index >= len(self.records):
            raise StopIteration
        record = self.records[self.index]
        self.index += 1
        return record

    def data_rows(self, count: int, header: LineRecord) -> List[LineRecord]:
        """Take exactly `count` comment-free data rows following a section header"""
        if count < 0:
            raise MalformedRecordError(header.location, f"'{header.raw_label}' declares {count} rows")
        rows = []
        while len(rows) < count:
            if self.index >= len(self.records) or self.records[self.index].raw_label is not None:
                raise TruncatedError(
                    header.location,
                    f"'{header.raw_label}' declares {count} rows, found {len(rows)}")
            rows.append(self.records[self.index])
            self.index += 1
        if self.index < len(self.records) and self.records[self.index].raw_label is None:
            raise MalformedRecordError(
                self.records[self.index].location,
                f"'{header.raw_label}' declares {count} rows, found more")
        return rows


@dataclass
class _TypeBlock:
    name: str
    record: LineRecord
    element_type: ElementType
    nodes_per_element: Optional[int] = None
    element_count: Optional[int] = None
    connectivity: Optional[List[int]] = None
    marker_count: Optional[int] = None
    markers: Optional[List[int]] = None
    marker_label: Optional[str] = None


def _single_int(record: LineRecord, field_name: str) -> int:
    if not record.values:
        raise MalformedRecordError(record.location, f"missing {field_name}")
    return parse_int(record.values[0], record.location, field_name)


def _count(record: LineRecord) -> int:
    value = _single_int(record, record.raw_label)
    if value < 0:
        raise MalformedRecordError(record.location, f"negative count {value} for '{record.raw_label}'")
    return value


def _require(value: Optional[int], record: LineRecord, label: str) -> int:
    if value is None:
        raise MalformedRecordError(record.location, f"'{record.raw_label}' before '{label}'")
    return value


def _flush(block: Optional[_TypeBlock], ctx: ParseContext) -> None:
    if block is None:
        return
    if block.connectivity is None:
        if block.element_count:
            raise TruncatedError(block.record.location, f"type '{block.name}' has no Elements section")
        return
    if block.markers is not None and len(block.markers) != block.element_count:
        raise MalformedRecordError(
            block.record.location,
            f"type '{block.name}' has {len(block.markers)} markers for {block.element_count} elements")
    count = ctx.elements.add(block.element_type, block.connectivity, block.record.location,
                             markers=block.markers)
    logger.debug("Type %s at %s: %d elements", block.name, block.record.location, count)


def _read_coordinates(cursor: _Cursor, header: LineRecord, state: Dict, ctx: ParseContext) -> None:
    count = _require(state.get("node count"), header, "number of mesh points")
    base = state.get("lowest index", 0)
    width = state.get("sdim")
    for position, row in enumerate(cursor.data_rows(count, header)):
        if width is None:
            width = len(row.values)
        if len(row.values) != width:
            raise MalformedRecordError(
                row.location, f"expected {width} coordinates, found {len(row.values)}")
        coordinates = [parse_float(value, row.location) for value in row.values]
        ctx.nodes.add(base + position, coordinates, row.location)


def _read_markers(cursor: _Cursor, header: LineRecord, block: _TypeBlock) -> None:
    if block.markers is not None:
        raise MalformedRecordError(
            header.location,
            f"type '{block.name}' has both '{block.marker_label}' and '{header.raw_label}' "
            "marker sections; precedence is ambiguous")
    count = _require(block.marker_count, header, "number of domains")
    block.markers = [_single_int(row, "marker") for row in cursor.data_rows(count, header)]
    block.marker_label = header.raw_label


def parse(text: str, spatial_dimension: Optional[int] = None) -> CanonicalMesh:
    """Parse Comsol mphtxt text into a canonical mesh

    Node ids in element blocks are file-local and based at the declared
    lowest mesh point index (0 when absent); the node map is keyed the same
    way, so no shift is applied.

    Raises:
        UnsupportedFeatureError: If the file holds more than one mesh object
        UnsupportedElementTypeError: On prism, pyramid or unknown types
        MalformedRecordError: On bad fields, inconsistent counts, ambiguous markers
        TruncatedError: When a declared count exceeds the rows present
    """
    ctx = ParseContext(MeshFormat.COMSOL, spatial_dimension)
    cursor = _Cursor(tokenize(text))
    state: Dict[str, int] = {}
    block: Optional[_TypeBlock] = None
    coordinates_read = False

    for record in cursor:
        label = record.label
        if label is None:
            continue

        if label in ("sdim", "node count") and label in state:
            raise UnsupportedFeatureError(f"multiple mesh objects ({record.location})")

        if label in ("node count", "up/down count"):
            state[label] = _count(record)
        elif label in ("sdim", "lowest index"):
            state[label] = _single_int(record, record.raw_label)
            if label == "sdim":
                ctx.spatial_dimension = state[label]
        elif label == "coordinates":
            _read_coordinates(cursor, record, state, ctx)
            coordinates_read = True
        elif label == "type name":
            _flush(block, ctx)
            if not record.values:
                raise MalformedRecordError(record.location, "missing type name")
            name = record.values[-1]
            block = _TypeBlock(name, record, lookup(MeshFormat.COMSOL, name))
        elif label == "up/down":
            cursor.data_rows(_require(state.get("up/down count"), record, "number of up/down pairs"), record)
        elif block is None:
            raise MalformedRecordError(record.location, f"'{record.raw_label}' outside an element type")
        elif label == "nodes per element":
            block.nodes_per_element = _count(record)
            if block.nodes_per_element != block.element_type.node_count:
                raise MalformedRecordError(
                    record.location,
                    f"type '{block.name}' declares {block.nodes_per_element} nodes per element, "
                    f"expected {block.element_type.node_count}")
        elif label == "element count":
            block.element_count = _count(record)
        elif label == "elements":
            count = _require(block.element_count, record, "number of elements")
            rows = cursor.data_rows(count, record)
            block.connectivity = []
            for row in rows:
                if len(row.values) != block.element_type.node_count:
                    raise MalformedRecordError(
                        row.location,
                        f"expected {block.element_type.node_count} node ids, found {len(row.values)}")
                block.connectivity.extend(parse_int(value, row.location, "node id") for value in row.values)
        elif label == "marker count":
            block.marker_count = _count(record)
        elif label == "markers":
            _read_markers(cursor, record, block)

    _flush(block, ctx)
    if not coordinates_read:
        raise MalformedRecordError("<comsol>", "no 'Mesh point coordinates' section")
    return ctx.finish(IntegerMarkers())
