"""
Taxonomy tests: every table entry is a valid permutation, and the native
node orders of each format land on the same canonical geometry.
"""

import numpy as np
import pytest

from meshimport.errors import UnsupportedElementTypeError
from meshimport.taxonomy import (
    ELEMENT_TYPES,
    ElementKind,
    ElementOrder,
    ElementType,
    MeshFormat,
    canonical_node_count,
    lookup,
)

TRI_CORNERS = np.array([[0, 0], [1, 0], [0, 1]], dtype=float)
TRI_EDGES = [(0, 1), (1, 2), (2, 0)]

TET_CORNERS = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]], dtype=float)
TET_EDGES = [(0, 1), (1, 2), (2, 0), (0, 3), (1, 3), (2, 3)]

HEX_CORNERS = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
                        [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1]], dtype=float)
HEX_EDGES = [(0, 1), (1, 2), (2, 3), (3, 0), (4, 5), (5, 6), (6, 7), (7, 4),
             (0, 4), (1, 5), (2, 6), (3, 7)]


def quadratic(corners, edges):
    """Corners followed by edge midpoints"""
    mids = [(corners[a] + corners[b]) / 2 for a, b in edges]
    return np.vstack([corners, mids])


def lexicographic(dimension, simplex):
    """Comsol's second-order node grid, first local coordinate fastest"""
    steps = [0.0, 0.5, 1.0]
    points = []
    if dimension == 2:
        for y in steps:
            for x in steps:
                if not simplex or x + y <= 1:
                    points.append((x, y))
    else:
        for z in steps:
            for y in steps:
                for x in steps:
                    if not simplex or x + y + z <= 1:
                        points.append((x, y, z))
    return np.array(points)


def canonical_points(element_type: ElementType, native: np.ndarray) -> np.ndarray:
    slots = element_type.reorder(np.arange(element_type.node_count)[np.newaxis, :])[0]
    return native[slots]


def test_every_entry_is_a_valid_permutation():
    for table in ELEMENT_TYPES.values():
        for element_type in table.values():
            perm = element_type.permutation
            assert len(perm) == canonical_node_count(element_type.kind, element_type.order)
            assert len(set(perm)) == len(perm)
            assert max(perm) < element_type.node_count


def test_invalid_permutation_rejected():
    with pytest.raises(ValueError):
        ElementType(ElementKind.TRIANGLE, ElementOrder.LINEAR, 3, (0, 0, 1))
    with pytest.raises(ValueError):
        ElementType(ElementKind.TRIANGLE, ElementOrder.LINEAR, 3, (0, 1))


def test_kind_dimensions():
    assert ElementKind.POINT.dimension == 0
    assert ElementKind.LINE.dimension == 1
    assert ElementKind.QUAD.dimension == 2
    assert ElementKind.HEXAHEDRON.dimension == 3


def test_quadratic_triangle_same_geometry_in_every_format():
    expected = quadratic(TRI_CORNERS, TRI_EDGES)
    v, m = TRI_CORNERS, dict(zip(TRI_EDGES, expected[3:]))
    elfen_native = np.array([v[0], m[(0, 1)], v[1], m[(1, 2)], v[2], m[(2, 0)]])

    cases = [
        (lookup(MeshFormat.GMSH, 9), expected),
        (lookup(MeshFormat.ABAQUS, ("surface", 6)), expected),
        (lookup(MeshFormat.COMSOL, "tri2"), lexicographic(2, simplex=True)),
        (lookup(MeshFormat.ELFEN, 4), elfen_native),
    ]
    for element_type, native in cases:
        assert element_type.kind == ElementKind.TRIANGLE
        assert element_type.order == ElementOrder.QUADRATIC
        np.testing.assert_allclose(canonical_points(element_type, native), expected)


def test_quadratic_tetrahedron_same_geometry_in_every_format():
    expected = quadratic(TET_CORNERS, TET_EDGES)
    gmsh_edges = [(0, 1), (1, 2), (2, 0), (0, 3), (2, 3), (1, 3)]
    gmsh_native = quadratic(TET_CORNERS, gmsh_edges)

    cases = [
        (lookup(MeshFormat.GMSH, 11), gmsh_native),
        (lookup(MeshFormat.ABAQUS, ("solid", 10)), expected),
        (lookup(MeshFormat.COMSOL, "tet2"), lexicographic(3, simplex=True)),
    ]
    for element_type, native in cases:
        np.testing.assert_allclose(canonical_points(element_type, native), expected)


def test_quadratic_hexahedron_same_geometry_in_every_format():
    expected = quadratic(HEX_CORNERS, HEX_EDGES)
    gmsh_edges = [(0, 1), (0, 3), (0, 4), (1, 2), (1, 5), (2, 3),
                  (2, 6), (3, 7), (4, 5), (4, 7), (5, 6), (6, 7)]
    gmsh_native = quadratic(HEX_CORNERS, gmsh_edges)

    cases = [
        (lookup(MeshFormat.GMSH, 17), gmsh_native),
        (lookup(MeshFormat.ABAQUS, ("solid", 20)), expected),
        (lookup(MeshFormat.COMSOL, "hex2"), lexicographic(3, simplex=False)),
    ]
    for element_type, native in cases:
        np.testing.assert_allclose(canonical_points(element_type, native), expected)


def test_comsol_linear_quad_and_hex_are_reordered():
    quad = lookup(MeshFormat.COMSOL, "quad")
    native = np.array([[0, 0], [1, 0], [0, 1], [1, 1]], dtype=float)
    np.testing.assert_allclose(canonical_points(quad, native), HEX_CORNERS[:4, :2])

    hex8 = lookup(MeshFormat.COMSOL, "hex")
    native = np.array([[x, y, z] for z in (0, 1) for y in (0, 1) for x in (0, 1)], dtype=float)
    np.testing.assert_allclose(canonical_points(hex8, native), HEX_CORNERS)


def test_face_and_centre_nodes_are_dropped():
    quad9 = lookup(MeshFormat.GMSH, 10)
    assert quad9.node_count == 9
    assert quad9.canonical_node_count == 8
    assert 8 not in quad9.permutation

    hex27 = lookup(MeshFormat.GMSH, 12)
    assert hex27.node_count == 27
    assert hex27.canonical_node_count == 20


def test_unknown_codes_raise():
    with pytest.raises(UnsupportedElementTypeError):
        lookup(MeshFormat.GMSH, 6)          # prism
    with pytest.raises(UnsupportedElementTypeError):
        lookup(MeshFormat.COMSOL, "pyr")
    with pytest.raises(UnsupportedElementTypeError) as excinfo:
        lookup(MeshFormat.ABAQUS, ("solid", 6), label="C3D6")
    assert excinfo.value.code == "C3D6"
    with pytest.raises(UnsupportedElementTypeError):
        canonical_node_count(ElementKind.POINT, ElementOrder.QUADRATIC)
