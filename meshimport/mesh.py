"""
Canonical Mesh Representation
=============================

The format-independent artifact every driver produces: a dense node table,
element blocks grouped by canonical kind and order, and region markers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .errors import MalformedRecordError
from .taxonomy import ElementKind, ElementOrder, MeshFormat

__all__ = ["MeshFormat", "NodeTable", "ElementBlock", "CanonicalMesh"]


@dataclass
class NodeTable:
    """Dense node table with the file-local ids it was built from"""
    coordinates: np.ndarray
    file_ids: np.ndarray

    def __len__(self) -> int:
        return len(self.file_ids)

    @property
    def width(self) -> int:
        return self.coordinates.shape[1]

    def index_of(self, file_ids: np.ndarray, location: str) -> np.ndarray:
        """Map file-local node ids to dense 0-based indices

        Args:
            file_ids: Integer array of any shape
            location: Record location reported on failure

        Returns:
            Array of the same shape holding dense indices

        Raises:
            MalformedRecordError: If any id is not in the table
        """
        query = np.asarray(file_ids, dtype=np.int64)
        if len(self.file_ids) == 0:
            if query.size:
                raise MalformedRecordError(location, f"unknown node id {int(query.flat[0])}")
            return query.copy()

        order = np.argsort(self.file_ids, kind="stable")
        sorted_ids = self.file_ids[order]
        pos = np.searchsorted(sorted_ids, query)
        pos = np.clip(pos, 0, len(sorted_ids) - 1)
        found = sorted_ids[pos] == query
        if not np.all(found):
            missing = query[~found]
            raise MalformedRecordError(location, f"unknown node id {int(missing.flat[0])}")
        return order[pos]


@dataclass
class ElementBlock:
    """Elements of one canonical kind and order

    Attributes:
        kind: Canonical element kind
        order: Canonical element order
        connectivity: (n_elements, node_count) dense node indices in canonical order
        markers: (n_elements,) marker ids, 0 meaning unmarked
    """
    kind: ElementKind
    order: ElementOrder
    connectivity: np.ndarray
    markers: np.ndarray

    def __len__(self) -> int:
        return len(self.connectivity)

    @property
    def node_count(self) -> int:
        return self.connectivity.shape[1]


@dataclass
class CanonicalMesh:
    """Format-independent mesh produced by one parse

    Attributes:
        nodes: (n_nodes, spatial_dimension) float coordinates
        blocks: Element blocks in first-seen order
        spatial_dimension: 1, 2 or 3
        boundary_only: True when no element reaches the spatial dimension,
            so consumers should build a boundary mesh rather than a full one
        marker_names: Marker id -> region name for named markers
        source_format: Format the mesh was read from
    """
    nodes: np.ndarray
    blocks: List[ElementBlock]
    spatial_dimension: int
    boundary_only: bool = False
    marker_names: Dict[int, str] = field(default_factory=dict)
    source_format: Optional[MeshFormat] = None

    @property
    def element_count(self) -> int:
        return sum(len(block) for block in self.blocks)

    def block(self, kind: ElementKind, order: ElementOrder = ElementOrder.LINEAR) -> Optional[ElementBlock]:
        """Return the block for kind x order, or None"""
        for candidate in self.blocks:
            if candidate.kind == kind and candidate.order == order:
                return candidate
        return None

    def summary(self) -> Dict[str, Any]:
        """Get a JSON-serialisable summary of the mesh"""
        return {
            'format': self.source_format.value if self.source_format else None,
            'spatial_dimension': self.spatial_dimension,
            'boundary_only': self.boundary_only,
            'nodes': len(self.nodes),
            'elements': self.element_count,
            'blocks': [
                {
                    'kind': block.kind.value,
                    'order': block.order.name.lower(),
                    'elements': len(block),
                    'nodes_per_element': block.node_count,
                    'markers': sorted(int(m) for m in np.unique(block.markers)),
                }
                for block in self.blocks
            ],
            'marker_names': {str(k): v for k, v in sorted(self.marker_names.items())},
        }
