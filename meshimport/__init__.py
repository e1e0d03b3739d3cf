"""
Finite-element mesh importer for Abaqus, Comsol, Gmsh and Elfen text files.
"""

from .dispatch import EXTENSION_FORMATS, import_mesh, import_mesh_file, resolve_format
from .errors import (
    MalformedRecordError,
    MeshImportError,
    ParseWarning,
    TruncatedError,
    UnsupportedElementTypeError,
    UnsupportedFeatureError,
    UnsupportedFormatError,
)
from .mesh import CanonicalMesh, ElementBlock, NodeTable
from .taxonomy import ElementKind, ElementOrder, MeshFormat

__all__ = [
    "EXTENSION_FORMATS",
    "import_mesh",
    "import_mesh_file",
    "resolve_format",
    "CanonicalMesh",
    "ElementBlock",
    "NodeTable",
    "ElementKind",
    "ElementOrder",
    "MeshFormat",
    "MeshImportError",
    "UnsupportedFormatError",
    "UnsupportedElementTypeError",
    "UnsupportedFeatureError",
    "MalformedRecordError",
    "TruncatedError",
    "ParseWarning",
]
