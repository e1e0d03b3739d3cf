"""
Canonical Element Taxonomy
==========================

Shared vocabulary of element kinds and orders, plus one table per origin
format mapping native type codes to canonical element types.

Canonical node ordering (corners first, then mid-side nodes by edge):

    Line3   e0 e1 | m01
    Tri6    v0 v1 v2 | m01 m12 m20
    Quad8   v0 v1 v2 v3 | m01 m12 m23 m30
    Tet10   v0 v1 v2 v3 | m01 m12 m20 m03 m13 m23
    Hex20   v0 .. v7 | m01 m12 m23 m30 m45 m56 m67 m74 m04 m15 m26 m37

Every ElementType carries a permutation: for each canonical position, the
slot of the origin record it is read from. Origin types with extra face or
centre nodes (quad9, hex27) select a subset of their slots.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Hashable, Optional, Sequence, Tuple

import numpy as np

from .errors import UnsupportedElementTypeError


class MeshFormat(Enum):
    """Supported origin formats"""
    ABAQUS = "abaqus"
    COMSOL = "comsol"
    GMSH = "gmsh"
    ELFEN = "elfen"


class ElementKind(Enum):
    """Topological element families"""
    POINT = "Point"
    LINE = "Line"
    TRIANGLE = "Triangle"
    QUAD = "Quad"
    TETRAHEDRON = "Tetrahedron"
    HEXAHEDRON = "Hexahedron"

    @property
    def dimension(self) -> int:
        """Topological dimension of the kind"""
        return _KIND_DIMENSIONS[self]


class ElementOrder(Enum):
    """Interpolation order"""
    LINEAR = 1
    QUADRATIC = 2


_KIND_DIMENSIONS = {
    ElementKind.POINT: 0,
    ElementKind.LINE: 1,
    ElementKind.TRIANGLE: 2,
    ElementKind.QUAD: 2,
    ElementKind.TETRAHEDRON: 3,
    ElementKind.HEXAHEDRON: 3,
}

CANONICAL_NODE_COUNTS: Dict[Tuple[ElementKind, ElementOrder], int] = {
    (ElementKind.POINT, ElementOrder.LINEAR): 1,
    (ElementKind.LINE, ElementOrder.LINEAR): 2,
    (ElementKind.LINE, ElementOrder.QUADRATIC): 3,
    (ElementKind.TRIANGLE, ElementOrder.LINEAR): 3,
    (ElementKind.TRIANGLE, ElementOrder.QUADRATIC): 6,
    (ElementKind.QUAD, ElementOrder.LINEAR): 4,
    (ElementKind.QUAD, ElementOrder.QUADRATIC): 8,
    (ElementKind.TETRAHEDRON, ElementOrder.LINEAR): 4,
    (ElementKind.TETRAHEDRON, ElementOrder.QUADRATIC): 10,
    (ElementKind.HEXAHEDRON, ElementOrder.LINEAR): 8,
    (ElementKind.HEXAHEDRON, ElementOrder.QUADRATIC): 20,
}


def canonical_node_count(kind: ElementKind, order: ElementOrder) -> int:
    """Number of nodes a canonical element of kind x order carries"""
    try:
        return CANONICAL_NODE_COUNTS[(kind, order)]
    except KeyError:
        raise UnsupportedElementTypeError(f"{kind.value}/{order.name.lower()}") from None


@dataclass(frozen=True)
class ElementType:
    """Resolved origin element type

    Attributes:
        kind: Canonical element kind
        order: Canonical element order
        node_count: Number of node slots in one origin record
        permutation: Origin slot for each canonical node position
    """
    kind: ElementKind
    order: ElementOrder
    node_count: int
    permutation: Tuple[int, ...]

    def __post_init__(self):
        expected = canonical_node_count(self.kind, self.order)
        if len(self.permutation) != expected:
            raise ValueError(
                f"{self.kind.value}/{self.order.name} permutation has "
                f"{len(self.permutation)} entries, expected {expected}")
        if len(set(self.permutation)) != expected or max(self.permutation) >= self.node_count:
            raise ValueError(f"Invalid permutation {self.permutation} for {self.node_count} slots")

    @property
    def canonical_node_count(self) -> int:
        return len(self.permutation)

    def reorder(self, connectivity: np.ndarray) -> np.ndarray:
        """Reorder an (n_elements, node_count) array into canonical node order"""
        return connectivity[:, list(self.permutation)]


def _element(kind: ElementKind, order: ElementOrder,
             permutation: Optional[Sequence[int]] = None,
             node_count: Optional[int] = None) -> ElementType:
    if permutation is None:
        permutation = range(canonical_node_count(kind, order))
    permutation = tuple(permutation)
    return ElementType(kind, order, node_count or len(permutation), permutation)


_L, _Q = ElementOrder.LINEAR, ElementOrder.QUADRATIC
_POINT, _LINE = ElementKind.POINT, ElementKind.LINE
_TRI, _QUAD = ElementKind.TRIANGLE, ElementKind.QUAD
_TET, _HEX = ElementKind.TETRAHEDRON, ElementKind.HEXAHEDRON

# Gmsh stores hex20 edges as 01 03 04 12 15 23 26 37 45 47 56 67
_GMSH_HEX20 = (0, 1, 2, 3, 4, 5, 6, 7, 8, 11, 13, 9, 16, 18, 19, 17, 10, 12, 14, 15)

GMSH_ELEMENT_TYPES: Dict[int, ElementType] = {
    15: _element(_POINT, _L),
    1: _element(_LINE, _L),
    8: _element(_LINE, _Q),
    2: _element(_TRI, _L),
    9: _element(_TRI, _Q),
    3: _element(_QUAD, _L),
    16: _element(_QUAD, _Q),
    10: _element(_QUAD, _Q, node_count=9),
    4: _element(_TET, _L),
    11: _element(_TET, _Q, (0, 1, 2, 3, 4, 5, 6, 7, 9, 8)),
    5: _element(_HEX, _L),
    17: _element(_HEX, _Q, _GMSH_HEX20),
    12: _element(_HEX, _Q, _GMSH_HEX20, node_count=27),
}

# Comsol numbers Lagrange nodes lexicographically in local coordinates
COMSOL_ELEMENT_TYPES: Dict[str, ElementType] = {
    "vtx": _element(_POINT, _L),
    "edg": _element(_LINE, _L),
    "edg2": _element(_LINE, _Q, (0, 2, 1)),
    "tri": _element(_TRI, _L),
    "tri2": _element(_TRI, _Q, (0, 2, 5, 1, 4, 3)),
    "quad": _element(_QUAD, _L, (0, 1, 3, 2)),
    "quad2": _element(_QUAD, _Q, (0, 2, 8, 6, 1, 5, 7, 3), node_count=9),
    "tet": _element(_TET, _L),
    "tet2": _element(_TET, _Q, (0, 2, 5, 9, 1, 4, 3, 6, 7, 8)),
    "hex": _element(_HEX, _L, (0, 1, 3, 2, 4, 5, 7, 6)),
    "hex2": _element(_HEX, _Q, (0, 2, 8, 6, 18, 20, 26, 24,
                                1, 5, 7, 3, 19, 23, 25, 21,
                                9, 11, 17, 15), node_count=27),
}

# Elfen numbers quadratic nodes around the perimeter: corner, mid, corner, ...
ELFEN_ELEMENT_TYPES: Dict[int, ElementType] = {
    1: _element(_LINE, _L),
    2: _element(_LINE, _Q, (0, 2, 1)),
    3: _element(_TRI, _L),
    4: _element(_TRI, _Q, (0, 2, 4, 1, 3, 5)),
    5: _element(_QUAD, _L),
    6: _element(_QUAD, _Q, (0, 2, 4, 6, 1, 3, 5, 7)),
    7: _element(_TET, _L),
    9: _element(_HEX, _L),
}

# Keyed by the (shape, node count) pair decoded from the Abaqus TYPE string
ABAQUS_ELEMENT_TYPES: Dict[Tuple[str, int], ElementType] = {
    ("line", 2): _element(_LINE, _L),
    ("line", 3): _element(_LINE, _Q, (0, 2, 1)),
    ("surface", 3): _element(_TRI, _L),
    ("surface", 6): _element(_TRI, _Q),
    ("surface", 4): _element(_QUAD, _L),
    ("surface", 8): _element(_QUAD, _Q),
    ("surface", 9): _element(_QUAD, _Q, node_count=9),
    ("solid", 4): _element(_TET, _L),
    ("solid", 10): _element(_TET, _Q),
    ("solid", 8): _element(_HEX, _L),
    ("solid", 20): _element(_HEX, _Q),
    ("solid", 27): _element(_HEX, _Q, node_count=27),
}

ELEMENT_TYPES: Dict[MeshFormat, Dict] = {
    MeshFormat.ABAQUS: ABAQUS_ELEMENT_TYPES,
    MeshFormat.COMSOL: COMSOL_ELEMENT_TYPES,
    MeshFormat.GMSH: GMSH_ELEMENT_TYPES,
    MeshFormat.ELFEN: ELFEN_ELEMENT_TYPES,
}


def lookup(source: MeshFormat, code: Hashable, label: Optional[str] = None) -> ElementType:
    """Resolve an origin type code to its canonical element type

    Args:
        source: Origin format
        code: Native type code (int, name or decoded key)
        label: Code as written in the file, used in the error message

    Raises:
        UnsupportedElementTypeError: If the code has no table entry
    """
    try:
        return ELEMENT_TYPES[source][code]
    except KeyError:
        raise UnsupportedElementTypeError(label if label is not None else code) from None
