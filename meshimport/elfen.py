"""
Elfen Mesh Driver
=================

Reads Elfen .mes files as a flat token stream. The characters # " { } *
and all whitespace separate tokens, so section keywords may sit inside
braces or quotes. Three keywords introduce data:

    coordinates <sdim> <n_nodes>              n_nodes * sdim floats
    element_type_numbers <n_types>            n_types integer type codes
    element_topology <n_elements> <n_nodes>   1-based node ids

The i-th element_topology section holds the elements of the i-th type code.
Word tokens outside a data run are titles or labels and are skipped; a number
outside a data run means a section holds more data than it declared.
"""

import logging
import re
from typing import List, Optional

from .builders import ParseContext
from .errors import MalformedRecordError, TruncatedError
from .mesh import CanonicalMesh
from .taxonomy import MeshFormat, lookup

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r'[#"{}*\s]+')
_NUMBER = re.compile(r'^[-+]?(\d+\.?\d*|\.\d+)(e[-+]?\d+)?$')


def tokenize(text: str) -> List[str]:
    """Split Elfen text into tokens"""
    return [token for token in _SEPARATORS.split(text) if token]


class TokenStream:
    """Read position over a token list, local to one parse

    Locations are reported as 1-based token numbers.
    """

    def __init__(self, tokens: List[str]):
        self.tokens = tokens
        self.index = 0

    @property
    def location(self) -> str:
        return f"token {self.index + 1}"

    def exhausted(self) -> bool:
        return self.index >= len(self.tokens)

    def next(self) -> str:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _take(self, section: str) -> str:
        if self.exhausted():
            raise TruncatedError(self.location, f"{section} ends before its declared data")
        return self.next()

    def take_ints(self, count: int, section: str) -> List[int]:
        values = []
        for _ in range(count):
            location = self.location
            token = self._take(section)
            try:
                values.append(int(token))
            except ValueError:
                raise MalformedRecordError(location, f"expected an integer in {section}, got {token!r}") from None
        return values

    def take_counts(self, count: int, section: str) -> List[int]:
        """Take declared sizes, which must not be negative"""
        location = self.location
        values = self.take_ints(count, section)
        for value in values:
            if value < 0:
                raise MalformedRecordError(location, f"negative count {value} in {section}")
        return values

    def take_floats(self, count: int, section: str) -> List[float]:
        values = []
        for _ in range(count):
            location = self.location
            token = self._take(section)
            try:
                values.append(float(token))
            except ValueError:
                raise MalformedRecordError(location, f"expected a number in {section}, got {token!r}") from None
        return values


def _read_coordinates(stream: TokenStream, ctx: ParseContext, location: str) -> None:
    dimension, count = stream.take_counts(2, "coordinates")
    if dimension not in (1, 2, 3):
        raise MalformedRecordError(location, f"coordinates declares dimension {dimension}")
    values = stream.take_floats(count * dimension, "coordinates")
    for i in range(count):
        ctx.nodes.add(i + 1, values[i * dimension:(i + 1) * dimension], location)
    ctx.spatial_dimension = dimension
    logger.debug("coordinates at %s: %d nodes in %dD", location, count, dimension)


def parse(text: str, spatial_dimension: Optional[int] = None) -> CanonicalMesh:
    """Parse Elfen mesh text into a canonical mesh

    Elfen files carry no region markers, so every element gets marker 0.

    Raises:
        UnsupportedElementTypeError: On type codes outside the Elfen subset
        MalformedRecordError: On non-numeric data, count or section mismatches
        TruncatedError: When data or topology sections run out
    """
    ctx = ParseContext(MeshFormat.ELFEN, spatial_dimension)
    stream = TokenStream(tokenize(text))
    type_codes: Optional[List[int]] = None
    coordinates_location = None
    topology_count = 0

    while not stream.exhausted():
        location = stream.location
        keyword = stream.next().lower()

        if keyword == "coordinates":
            if coordinates_location is not None:
                raise MalformedRecordError(
                    location, f"repeated coordinates section (first at {coordinates_location})")
            coordinates_location = location
            _read_coordinates(stream, ctx, location)

        elif keyword == "element_type_numbers":
            if type_codes is not None:
                raise MalformedRecordError(location, "repeated element_type_numbers section")
            (count,) = stream.take_counts(1, "element_type_numbers")
            type_codes = stream.take_ints(count, "element_type_numbers")

        elif keyword == "element_topology":
            if type_codes is None:
                raise MalformedRecordError(location, "element_topology before element_type_numbers")
            if topology_count >= len(type_codes):
                raise MalformedRecordError(
                    location, f"more element_topology sections than the {len(type_codes)} declared types")
            code = type_codes[topology_count]
            topology_count += 1

            element_type = lookup(MeshFormat.ELFEN, code)
            element_count, nodes_per_element = stream.take_counts(2, "element_topology")
            if nodes_per_element != element_type.node_count:
                raise MalformedRecordError(
                    location,
                    f"type {code} needs {element_type.node_count} nodes per element, "
                    f"section declares {nodes_per_element}")
            node_ids = stream.take_ints(element_count * nodes_per_element, "element_topology")
            ctx.elements.add(element_type, node_ids, location)
            logger.debug("element_topology at %s: %d elements of type %d", location, element_count, code)

        elif _NUMBER.match(keyword):
            raise MalformedRecordError(
                location, f"number {keyword!r} outside a data section; a declared count is too small")

    if coordinates_location is None:
        raise MalformedRecordError("<elfen>", "no coordinates section")
    if type_codes is not None and topology_count < len(type_codes):
        raise TruncatedError(
            "<elfen>", f"{len(type_codes)} element types declared, {topology_count} element_topology sections found")

    return ctx.finish()
