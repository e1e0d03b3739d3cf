"""
Node, element and marker builders shared by all format drivers.

A driver owns one ParseContext per call; nothing here keeps state between
parses.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .errors import MalformedRecordError
from .mesh import CanonicalMesh, ElementBlock, NodeTable
from .taxonomy import ElementKind, ElementOrder, ElementType, MeshFormat

logger = logging.getLogger(__name__)


def parse_int(token: str, location: str, field_name: str = "integer") -> int:
    """Parse an integer field, failing with MalformedRecordError"""
    try:
        return int(token)
    except ValueError:
        raise MalformedRecordError(location, f"invalid {field_name}: {token!r}") from None


def parse_float(token: str, location: str, field_name: str = "coordinate") -> float:
    """Parse a float field, failing with MalformedRecordError"""
    try:
        return float(token)
    except ValueError:
        raise MalformedRecordError(location, f"invalid {field_name}: {token!r}") from None


class NodeTableBuilder:
    """Collects node records and assigns dense 0-based indices in file order

    Args:
        pad_short_rows: Accept rows with fewer coordinates than the widest
            row and fill the missing trailing columns with zeros
    """

    def __init__(self, pad_short_rows: bool = False):
        self.pad_short_rows = pad_short_rows
        self._ids: List[int] = []
        self._coords: List[Tuple[float, ...]] = []
        self._defined_at: Dict[int, str] = {}
        self._width: Optional[int] = None

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, file_id: int, coordinates: Sequence[float], location: str) -> int:
        """Add one node and return its dense index"""
        if not 1 <= len(coordinates) <= 3:
            raise MalformedRecordError(
                location, f"node {file_id} has {len(coordinates)} coordinates, expected 1 to 3")
        if file_id in self._defined_at:
            raise MalformedRecordError(
                location, f"duplicate node id {file_id} (first defined at {self._defined_at[file_id]})")
        if not self.pad_short_rows:
            if self._width is None:
                self._width = len(coordinates)
            elif len(coordinates) != self._width:
                raise MalformedRecordError(
                    location, f"expected {self._width} coordinates, found {len(coordinates)}")

        self._defined_at[file_id] = location
        self._ids.append(file_id)
        self._coords.append(tuple(coordinates))
        return len(self._ids) - 1

    def build(self) -> NodeTable:
        width = max((len(row) for row in self._coords), default=0)
        coordinates = np.zeros((len(self._coords), width), dtype=np.float64)
        for i, row in enumerate(self._coords):
            coordinates[i, :len(row)] = row
        return NodeTable(coordinates=coordinates, file_ids=np.array(self._ids, dtype=np.int64))


@dataclass
class _Chunk:
    connectivity: np.ndarray
    markers: List
    location: str


class ElementBlockBuilder:
    """Accumulates connectivity per canonical kind x order

    Connectivity is reordered to canonical node order on arrival but kept in
    file-local node ids until build(), so nodes may be defined after the
    elements that use them.
    """

    def __init__(self):
        self._groups: Dict[Tuple[ElementKind, ElementOrder], List[_Chunk]] = {}

    def __len__(self) -> int:
        return sum(len(chunk.connectivity) for chunks in self._groups.values() for chunk in chunks)

    @property
    def kinds(self) -> List[Tuple[ElementKind, ElementOrder]]:
        return list(self._groups)

    def add(self, element_type: ElementType, node_ids: Sequence[int], location: str,
            markers: Optional[Sequence] = None) -> int:
        """Add a flat run of file node ids holding whole elements

        Args:
            element_type: Resolved origin type
            node_ids: Flat node ids, node_count per element
            location: Record location for error messages
            markers: Raw marker per element (name, int or None)

        Returns:
            Number of elements added
        """
        flat = np.asarray(node_ids, dtype=np.int64).ravel()
        if flat.size % element_type.node_count:
            raise MalformedRecordError(
                location,
                f"{flat.size} node ids is not a multiple of {element_type.node_count} "
                f"({element_type.kind.value}/{element_type.order.name.lower()})")
        if flat.size == 0:
            return 0

        connectivity = element_type.reorder(flat.reshape(-1, element_type.node_count))
        if markers is None:
            markers = [None] * len(connectivity)
        elif len(markers) != len(connectivity):
            raise MalformedRecordError(
                location, f"{len(markers)} markers for {len(connectivity)} elements")

        key = (element_type.kind, element_type.order)
        self._groups.setdefault(key, []).append(_Chunk(connectivity, list(markers), location))
        return len(connectivity)

    def raw_markers(self) -> Iterator:
        for chunks in self._groups.values():
            for chunk in chunks:
                yield from chunk.markers

    def build(self, nodes: NodeTable, markers: "MarkerResolver") -> List[ElementBlock]:
        """Remap file node ids to dense indices and resolve markers"""
        blocks = []
        for (kind, order), chunks in self._groups.items():
            connectivity = np.concatenate(
                [nodes.index_of(chunk.connectivity, chunk.location) for chunk in chunks])
            marker_ids = np.concatenate([markers.resolve(chunk.markers) for chunk in chunks])
            blocks.append(ElementBlock(
                kind=kind,
                order=order,
                connectivity=connectivity.astype(np.int64),
                markers=marker_ids,
            ))
        return blocks


class MarkerResolver(ABC):
    """Maps raw per-element markers to dense MarkerIds"""

    @property
    @abstractmethod
    def names(self) -> Dict[int, str]:
        """Marker id -> region name"""

    @abstractmethod
    def resolve(self, raw: Sequence) -> np.ndarray:
        """Marker id per raw marker, 0 for missing ones"""


class IntegerMarkers(MarkerResolver):
    """Integer markers pass through unchanged; missing values become 0"""

    @property
    def names(self) -> Dict[int, str]:
        return {}

    def resolve(self, raw: Sequence) -> np.ndarray:
        return np.array([0 if value is None else int(value) for value in raw], dtype=np.int64)


class NamedMarkers(MarkerResolver):
    """Distinct region names get ids 1..k in sorted-name order; unnamed elements get 0"""

    def __init__(self, names: Iterable[Optional[str]]):
        distinct = sorted({name for name in names if name})
        self.ids: Dict[str, int] = {name: i for i, name in enumerate(distinct, start=1)}

    @property
    def names(self) -> Dict[int, str]:
        return {marker_id: name for name, marker_id in self.ids.items()}

    def resolve(self, raw: Sequence) -> np.ndarray:
        return np.array([self.ids[name] if name else 0 for name in raw], dtype=np.int64)


def fit_columns(coordinates: np.ndarray, dimension: int) -> np.ndarray:
    """Truncate or zero-pad coordinate columns to the spatial dimension"""
    width = coordinates.shape[1]
    if dimension <= width:
        return coordinates[:, :dimension].copy()
    fitted = np.zeros((len(coordinates), dimension), dtype=np.float64)
    fitted[:, :width] = coordinates
    return fitted


@dataclass
class ParseContext:
    """State for one parse call, passed explicitly between driver helpers

    Attributes:
        source: Format being parsed
        requested_dimension: Caller-supplied spatial dimension, overriding inference
        nodes: Node table builder
        elements: Element block builder
        spatial_dimension: Dimension declared by the file or inferred by the driver
    """
    source: MeshFormat
    requested_dimension: Optional[int] = None
    nodes: NodeTableBuilder = field(default_factory=NodeTableBuilder)
    elements: ElementBlockBuilder = field(default_factory=ElementBlockBuilder)
    spatial_dimension: Optional[int] = None

    def __post_init__(self):
        if self.requested_dimension is not None and self.requested_dimension not in (1, 2, 3):
            raise ValueError(f"spatial_dimension must be 1, 2 or 3, got {self.requested_dimension!r}")

    def widen_dimension(self, dimension: int) -> None:
        """Raise the inferred spatial dimension to at least `dimension`"""
        if self.spatial_dimension is None or dimension > self.spatial_dimension:
            self.spatial_dimension = dimension

    def finish(self, markers: Optional[MarkerResolver] = None) -> CanonicalMesh:
        """Assemble the canonical mesh from everything collected"""
        table = self.nodes.build()
        if len(table) == 0:
            raise MalformedRecordError(f"<{self.source.value}>", "no nodes defined")

        markers = markers or IntegerMarkers()
        blocks = self.elements.build(table, markers)

        dimension = self.requested_dimension or self.spatial_dimension or table.width
        highest = max((block.kind.dimension for block in blocks), default=0)

        mesh = CanonicalMesh(
            nodes=fit_columns(table.coordinates, dimension),
            blocks=blocks,
            spatial_dimension=dimension,
            boundary_only=highest < dimension,
            marker_names=markers.names,
            source_format=self.source,
        )
        logger.debug("%s: %d nodes, %d elements in %d blocks, dimension %d%s",
                     self.source.value, len(mesh.nodes), mesh.element_count, len(blocks),
                     dimension, " (boundary only)" if mesh.boundary_only else "")
        return mesh
