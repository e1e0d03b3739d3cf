"""
Format dispatch: picks a driver by format or file extension and hands it
the already-read text. No parsing happens here.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from . import abaqus, comsol, elfen, gmsh
from .errors import MalformedRecordError, UnsupportedFormatError
from .mesh import CanonicalMesh
from .taxonomy import MeshFormat

logger = logging.getLogger(__name__)

EXTENSION_FORMATS: Dict[str, MeshFormat] = {
    ".inp": MeshFormat.ABAQUS,
    ".mphtxt": MeshFormat.COMSOL,
    ".msh": MeshFormat.GMSH,
    ".mes": MeshFormat.ELFEN,
}

DRIVERS: Dict[MeshFormat, Callable[..., CanonicalMesh]] = {
    MeshFormat.ABAQUS: abaqus.parse,
    MeshFormat.COMSOL: comsol.parse,
    MeshFormat.GMSH: gmsh.parse,
    MeshFormat.ELFEN: elfen.parse,
}


def resolve_format(source_format: Union[MeshFormat, str, Path]) -> MeshFormat:
    """Resolve a format enum, name, extension or filename

    Raises:
        UnsupportedFormatError: If nothing matches
    """
    if isinstance(source_format, MeshFormat):
        return source_format

    name = str(source_format).strip()
    lowered = name.lower()
    for candidate in MeshFormat:
        if lowered == candidate.value:
            return candidate
    if lowered in EXTENSION_FORMATS:
        return EXTENSION_FORMATS[lowered]

    suffix = Path(lowered).suffix
    if suffix in EXTENSION_FORMATS:
        return EXTENSION_FORMATS[suffix]
    raise UnsupportedFormatError(suffix or name)


def _read_text(content) -> str:
    if hasattr(content, "read"):
        content = content.read()
    if isinstance(content, (bytes, bytearray)):
        try:
            return bytes(content).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRecordError(f"byte {e.start}", "content is not valid UTF-8") from None
    if not isinstance(content, str):
        raise TypeError(f"Expected str, bytes or a readable object, got {type(content).__name__}")
    return content


def import_mesh(source_format: Union[MeshFormat, str], content,
                spatial_dimension: Optional[int] = None) -> CanonicalMesh:
    """Import mesh content into a canonical mesh

    Args:
        source_format: Format enum, name, extension or filename
        content: Text, UTF-8 bytes or a file-like object
        spatial_dimension: Force the spatial dimension (1, 2 or 3)

    Returns:
        The canonical mesh; no partial mesh is returned on failure

    Raises:
        MeshImportError: Any subclass, depending on the failure
    """
    mesh_format = resolve_format(source_format)
    text = _read_text(content)
    mesh = DRIVERS[mesh_format](text, spatial_dimension=spatial_dimension)
    logger.info("Imported %s mesh: %d nodes, %d elements in %d blocks",
                mesh_format.value, len(mesh.nodes), mesh.element_count, len(mesh.blocks))
    return mesh


def import_mesh_file(path: Union[str, Path], source_format: Optional[Union[MeshFormat, str]] = None,
                     spatial_dimension: Optional[int] = None,
                     encoding: str = "utf-8") -> CanonicalMesh:
    """Read a mesh file, inferring the format from its extension if not given"""
    path = Path(path)
    mesh_format = resolve_format(source_format if source_format is not None else path.name)
    try:
        with open(path, 'r', encoding=encoding) as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise MalformedRecordError(f"{path.name}, byte {e.start}", f"content is not valid {encoding}") from None
    return import_mesh(mesh_format, text, spatial_dimension=spatial_dimension)
