"""
Mesh Import Errors
==================

Every failure aborts the whole parse; callers never receive a partial mesh.
"""

from typing import Optional


class MeshImportError(Exception):
    """Base exception for mesh import errors"""
    pass


class UnsupportedFormatError(MeshImportError):
    """Exception for formats or extensions without a driver"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unsupported mesh format: {name!r}")


class UnsupportedElementTypeError(MeshImportError):
    """Exception for element type codes missing from the taxonomy"""

    def __init__(self, code):
        self.code = code
        super().__init__(f"Unsupported element type: {code!r}")


class UnsupportedFeatureError(MeshImportError):
    """Exception for file features the importer does not expand"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unsupported feature: {name}")


class MalformedRecordError(MeshImportError):
    """Exception for corrupted or malformed records"""

    def __init__(self, location: str, detail: str):
        self.location = location
        self.detail = detail
        super().__init__(f"{location}: {detail}")


class TruncatedError(MeshImportError):
    """Exception for declared counts that exceed the data available"""

    def __init__(self, location: str, detail: Optional[str] = None):
        self.location = location
        self.detail = detail or "unexpected end of data"
        super().__init__(f"{location}: {self.detail}")


class ParseWarning(UserWarning):
    """Warning for non-critical parsing issues"""
    pass
