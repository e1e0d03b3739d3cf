"""Tests for the Gmsh MSH 2 driver"""

import numpy as np
import pytest

from meshimport import gmsh
from meshimport.errors import (
    MalformedRecordError,
    ParseWarning,
    TruncatedError,
    UnsupportedElementTypeError,
    UnsupportedFeatureError,
)
from meshimport.taxonomy import ElementKind, ElementOrder

FORMAT = """\
$MeshFormat
2.2 0 8
$EndMeshFormat
"""

NAMES = """\
$PhysicalNames
2
2 1 "inlet"
2 2 "body"
$EndPhysicalNames
"""

SQUARE_NODES = """\
$Nodes
4
1 0 0 0
2 1 0 0
3 1 1 0
4 0 1 0
$EndNodes
"""

TWO_TRIANGLES = """\
$Elements
2
1 2 2 1 10 1 2 3
2 2 2 2 10 1 3 4
$EndElements
"""


def test_physical_names_give_two_distinct_markers():
    mesh = gmsh.parse(FORMAT + NAMES + SQUARE_NODES + TWO_TRIANGLES)
    block = mesh.block(ElementKind.TRIANGLE)
    np.testing.assert_array_equal(block.markers, [2, 1])
    assert mesh.marker_names == {1: "body", 2: "inlet"}
    assert len(set(block.markers.tolist()) - {0}) == 2


def test_without_physical_names_markers_are_zero():
    mesh = gmsh.parse(FORMAT + SQUARE_NODES + TWO_TRIANGLES)
    np.testing.assert_array_equal(mesh.block(ElementKind.TRIANGLE).markers, [0, 0])
    assert mesh.marker_names == {}


def test_zero_z_column_dropped():
    mesh = gmsh.parse(FORMAT + SQUARE_NODES + TWO_TRIANGLES)
    assert mesh.spatial_dimension == 2
    assert mesh.nodes.shape == (4, 2)
    assert not mesh.boundary_only
    np.testing.assert_array_equal(mesh.block(ElementKind.TRIANGLE).connectivity, [[0, 1, 2], [0, 2, 3]])


def test_dimension_never_below_element_dimension():
    nodes = """\
$Nodes
3
1 0 0 0
2 1 0 0
3 2 0 0
$EndNodes
"""
    elements = """\
$Elements
1
1 2 0 1 2 3
$EndElements
"""
    mesh = gmsh.parse(FORMAT + nodes + elements)
    assert mesh.spatial_dimension == 2


def test_line_mesh_is_one_dimensional():
    nodes = "$Nodes\n2\n1 0 0 0\n2 1 0 0\n$EndNodes\n"
    elements = "$Elements\n1\n1 1 0 1 2\n$EndElements\n"
    mesh = gmsh.parse(FORMAT + nodes + elements)
    assert mesh.spatial_dimension == 1
    np.testing.assert_array_equal(mesh.nodes, [[0.0], [1.0]])


def test_requested_dimension_overrides_inference():
    mesh = gmsh.parse(FORMAT + SQUARE_NODES + TWO_TRIANGLES, spatial_dimension=3)
    assert mesh.nodes.shape == (4, 3)
    assert mesh.boundary_only


def test_unnamed_physical_tag_warns():
    elements = """\
$Elements
2
1 2 2 1 10 1 2 3
2 2 2 7 10 1 3 4
$EndElements
"""
    with pytest.warns(ParseWarning):
        mesh = gmsh.parse(FORMAT + NAMES + SQUARE_NODES + elements)
    np.testing.assert_array_equal(mesh.block(ElementKind.TRIANGLE).markers, [1, 0])


def test_names_keyed_by_element_dimension():
    names = '$PhysicalNames\n2\n1 1 "edge"\n2 1 "face"\n$EndPhysicalNames\n'
    elements = """\
$Elements
2
1 1 2 1 1 1 2
2 2 2 1 1 1 2 3
$EndElements
"""
    mesh = gmsh.parse(FORMAT + names + SQUARE_NODES + elements)
    assert mesh.marker_names == {1: "edge", 2: "face"}
    np.testing.assert_array_equal(mesh.block(ElementKind.LINE).markers, [1])
    np.testing.assert_array_equal(mesh.block(ElementKind.TRIANGLE).markers, [2])


def test_grouping_keeps_first_seen_order():
    elements = """\
$Elements
3
1 1 0 1 2
2 2 0 1 2 3
3 1 0 3 4
$EndElements
"""
    mesh = gmsh.parse(FORMAT + SQUARE_NODES + elements)
    assert [block.kind for block in mesh.blocks] == [ElementKind.LINE, ElementKind.TRIANGLE]
    np.testing.assert_array_equal(mesh.blocks[0].connectivity, [[0, 1], [2, 3]])


def test_quadratic_tetrahedron_swaps_last_edges():
    node_lines = "\n".join(f"{i} {i} {i % 3} {i % 5}" for i in range(1, 11))
    nodes = f"$Nodes\n10\n{node_lines}\n$EndNodes\n"
    elements = "$Elements\n1\n1 11 2 0 0 1 2 3 4 5 6 7 8 9 10\n$EndElements\n"
    mesh = gmsh.parse(FORMAT + nodes + elements)
    block = mesh.block(ElementKind.TETRAHEDRON, ElementOrder.QUADRATIC)
    np.testing.assert_array_equal(block.connectivity, [[0, 1, 2, 3, 4, 5, 6, 7, 9, 8]])


def test_missing_mesh_format_accepted():
    mesh = gmsh.parse(SQUARE_NODES + TWO_TRIANGLES)
    assert mesh.element_count == 2


def test_unknown_sections_skipped():
    extra = "$Comments\nanything goes here\n$EndComments\n"
    mesh = gmsh.parse(FORMAT + extra + SQUARE_NODES + TWO_TRIANGLES)
    assert len(mesh.nodes) == 4


def test_binary_rejected():
    with pytest.raises(UnsupportedFeatureError):
        gmsh.parse("$MeshFormat\n2.2 1 8\n$EndMeshFormat\n" + SQUARE_NODES)


def test_version_4_rejected():
    with pytest.raises(UnsupportedFeatureError):
        gmsh.parse("$MeshFormat\n4.1 0 8\n$EndMeshFormat\n" + SQUARE_NODES)


def test_unterminated_section():
    with pytest.raises(TruncatedError):
        gmsh.parse(FORMAT + SQUARE_NODES.replace("$EndNodes\n", ""))


def test_node_count_too_high_is_truncated():
    with pytest.raises(TruncatedError):
        gmsh.parse(FORMAT + SQUARE_NODES.replace("$Nodes\n4", "$Nodes\n5"))


def test_node_count_too_low_is_malformed():
    with pytest.raises(MalformedRecordError):
        gmsh.parse(FORMAT + SQUARE_NODES.replace("$Nodes\n4", "$Nodes\n3"))


def test_element_field_count_checked():
    elements = "$Elements\n1\n1 2 2 1 10 1 2\n$EndElements\n"
    with pytest.raises(MalformedRecordError):
        gmsh.parse(FORMAT + SQUARE_NODES + elements)


def test_prism_unsupported():
    elements = "$Elements\n1\n1 6 0 1 2 3 4 1 2\n$EndElements\n"
    with pytest.raises(UnsupportedElementTypeError):
        gmsh.parse(FORMAT + SQUARE_NODES + elements)


def test_missing_nodes_section():
    with pytest.raises(MalformedRecordError):
        gmsh.parse(FORMAT + TWO_TRIANGLES)


@pytest.mark.parametrize("section", [NAMES, SQUARE_NODES, TWO_TRIANGLES])
def test_repeated_read_sections_are_malformed(section):
    with pytest.raises(MalformedRecordError) as excinfo:
        gmsh.parse(FORMAT + NAMES + SQUARE_NODES + TWO_TRIANGLES + section)
    assert "repeated" in excinfo.value.detail


def test_repeated_unknown_sections_skipped():
    extra = "$Comments\nfirst\n$EndComments\n$Comments\nsecond\n$EndComments\n"
    mesh = gmsh.parse(FORMAT + extra + SQUARE_NODES + TWO_TRIANGLES)
    assert mesh.element_count == 2


def test_negative_tag_count():
    elements = "$Elements\n1\n1 2 -1 1 2 3 4\n$EndElements\n"
    with pytest.raises(MalformedRecordError):
        gmsh.parse(FORMAT + SQUARE_NODES + elements)
