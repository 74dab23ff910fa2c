#!/usr/bin/env python3
"""
Runtime image (jimage) reader.

Modular JDKs store every class of every module in a single file,
``lib/modules``, exposed inside the JVM as the ``jrt:/`` filesystem. This
module reads that file directly so the classes of one module can be walked
without a JVM.

File layout (integers use the image byte order, detected from the magic):

    header      7 x u4   magic, version, flags, resource count,
                         table length, locations size, strings size
    redirect    table length x s4   (hash lookup, unused for enumeration)
    offsets     table length x u4   location offset of each resource
    locations   attribute streams describing each resource
    strings     NUL-terminated modified UTF-8 names
    resources   content, offsets relative to the end of the index

Only enumeration is needed, so the redirect table is never consulted: the
offsets table already lists every resource exactly once.

SPDX-License-Identifier: Apache-2.0
"""

from __future__ import annotations

import mmap
import os
import struct
import zlib
from pathlib import Path
from typing import Dict, Iterator, NamedTuple, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

IMAGE_MAGIC = 0xCAFEDADA
IMAGE_MAJOR_VERSION = 1
HEADER_SIZE = 7 * 4

COMPRESSED_MAGIC = 0xCAFEFAFA
# magic u4, compressed u8, uncompressed u8, name u4, config u4, terminal u1
COMPRESSED_HEADER_SIZE = 4 + 8 + 8 + 4 + 4 + 1

MODULES_IMAGE_PATH = "lib/modules"

# Retained for backward-compatible access to non-standard internals
# (sun.misc.Unsafe and friends), hidden from the oldest-release listing.
INTERNAL_API_MODULE = "jdk.unsupported"

ATTRIBUTE_END = 0
ATTRIBUTE_MODULE = 1
ATTRIBUTE_PARENT = 2
ATTRIBUTE_BASE = 3
ATTRIBUTE_EXTENSION = 4
ATTRIBUTE_OFFSET = 5
ATTRIBUTE_COMPRESSED = 6
ATTRIBUTE_UNCOMPRESSED = 7
ATTRIBUTE_COUNT = 8


class ImageFormatError(ValueError):
    """Raised when the runtime image cannot be decoded."""

    pass


# =============================================================================
# Data Types
# =============================================================================


class ImageHeader(NamedTuple):
    byte_order: str  # "<" or ">"
    major_version: int
    minor_version: int
    flags: int
    resource_count: int
    table_length: int
    locations_size: int
    strings_size: int

    @property
    def index_size(self) -> int:
        return (
            HEADER_SIZE
            + self.table_length * 4 * 2
            + self.locations_size
            + self.strings_size
        )


class ImageLocation(NamedTuple):
    """One resource of the image, with its name split jimage-style."""

    module: str
    parent: str  # Package directory, "/" separated, may be empty
    base: str
    extension: str
    content_offset: int  # Relative to the end of the index
    compressed_size: int  # 0 when stored uncompressed
    uncompressed_size: int

    @property
    def module_path(self) -> str:
        """Name relative to the module root, e.g. ``sun/misc/Unsafe.class``."""
        name = f"{self.parent}/{self.base}" if self.parent else self.base
        if self.extension:
            name = f"{name}.{self.extension}"
        return name

    @property
    def full_name(self) -> str:
        if self.module:
            return f"/{self.module}/{self.module_path}"
        return self.module_path


# =============================================================================
# Decoding Helpers
# =============================================================================


def read_header(data: bytes) -> ImageHeader:
    """
    Decode the fixed-size image header.

    Raises:
        ImageFormatError: On truncation, bad magic or unsupported version
    """
    if len(data) < HEADER_SIZE:
        raise ImageFormatError("Image too small for header")

    for byte_order in ("<", ">"):
        fields = struct.unpack_from(f"{byte_order}7I", data, 0)
        if fields[0] == IMAGE_MAGIC:
            break
    else:
        raise ImageFormatError(f"Bad image magic: {data[:4].hex()}")

    _, version, flags, resource_count, table_length, locations_size, strings_size = fields
    major, minor = version >> 16, version & 0xFFFF
    if major != IMAGE_MAJOR_VERSION:
        raise ImageFormatError(f"Unsupported image version: {major}.{minor}")

    return ImageHeader(
        byte_order=byte_order,
        major_version=major,
        minor_version=minor,
        flags=flags,
        resource_count=resource_count,
        table_length=table_length,
        locations_size=locations_size,
        strings_size=strings_size,
    )


def decode_attributes(locations: bytes, offset: int) -> Tuple[int, ...]:
    """
    Decode one location's attribute stream.

    Each attribute starts with a byte whose high five bits are the kind and
    low three bits the value length minus one; the value follows big-endian.
    """
    values = [0] * ATTRIBUTE_COUNT
    while True:
        if offset >= len(locations):
            raise ImageFormatError("Location attributes run past end of index")
        data = locations[offset]
        offset += 1
        kind = data >> 3
        if kind == ATTRIBUTE_END:
            break
        if kind >= ATTRIBUTE_COUNT:
            raise ImageFormatError(f"Invalid location attribute kind: {kind}")
        length = (data & 0x7) + 1
        if offset + length > len(locations):
            raise ImageFormatError("Location attribute value truncated")
        values[kind] = int.from_bytes(locations[offset : offset + length], "big")
        offset += length
    return tuple(values)


def decode_modified_utf8(raw: bytes) -> str:
    """
    Decode Java's modified UTF-8.

    NUL is encoded as ``C0 80`` and supplementary characters as two
    three-byte surrogates; both are folded back into ordinary code points.

    Raises:
        ImageFormatError: If the bytes are not valid modified UTF-8
    """
    try:
        text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
        return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")
    except UnicodeError as e:
        raise ImageFormatError(f"Invalid modified UTF-8 string: {raw!r}") from e


def read_string(strings: bytes, offset: int) -> str:
    end = strings.find(b"\x00", offset)
    if offset >= len(strings) or end == -1:
        raise ImageFormatError(f"String offset out of range: {offset}")
    return decode_modified_utf8(strings[offset:end])


# =============================================================================
# Reader
# =============================================================================


class ImageReader:
    """Read-only view over a jimage file, memory-mapped."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._file = open(self.path, "rb")
        try:
            if os.fstat(self._file.fileno()).st_size < HEADER_SIZE:
                raise ImageFormatError(f"Image too small for header: {self.path}")
            self._data = mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ)
        except Exception:
            self._file.close()
            raise
        try:
            self.header = read_header(self._data[:HEADER_SIZE])
            self._load_index()
        except Exception:
            self.close()
            raise

    def _load_index(self) -> None:
        header = self.header
        if len(self._data) < header.index_size:
            raise ImageFormatError("Image truncated inside index")
        offsets_start = HEADER_SIZE + header.table_length * 4
        locations_start = offsets_start + header.table_length * 4
        strings_start = locations_start + header.locations_size

        self._offsets = struct.unpack_from(
            f"{header.byte_order}{header.table_length}I", self._data, offsets_start
        )
        self._locations = self._data[locations_start:strings_start]
        self._strings = self._data[strings_start : header.index_size]

    def close(self) -> None:
        self._data.close()
        self._file.close()

    def __enter__(self) -> "ImageReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _location_at(self, offset: int) -> ImageLocation:
        values = decode_attributes(self._locations, offset)
        return ImageLocation(
            module=read_string(self._strings, values[ATTRIBUTE_MODULE]),
            parent=read_string(self._strings, values[ATTRIBUTE_PARENT]),
            base=read_string(self._strings, values[ATTRIBUTE_BASE]),
            extension=read_string(self._strings, values[ATTRIBUTE_EXTENSION]),
            content_offset=values[ATTRIBUTE_OFFSET],
            compressed_size=values[ATTRIBUTE_COMPRESSED],
            uncompressed_size=values[ATTRIBUTE_UNCOMPRESSED],
        )

    def locations(self) -> Iterator[ImageLocation]:
        """Yield every resource location in offsets-table order."""
        for offset in self._offsets:
            yield self._location_at(offset)

    def read(self, location: ImageLocation) -> bytes:
        """Return the resource content, decompressed."""
        start = self.header.index_size + location.content_offset
        size = location.compressed_size or location.uncompressed_size
        if start + size > len(self._data):
            raise ImageFormatError(f"Resource content out of range: {location.full_name}")
        content = self._data[start : start + size]
        if location.compressed_size:
            content = self._decompress(content)
        if len(content) != location.uncompressed_size:
            raise ImageFormatError(
                f"Size mismatch for {location.full_name}: "
                f"expected {location.uncompressed_size}, got {len(content)}"
            )
        return content

    def _decompress(self, content: bytes) -> bytes:
        header_format = f"{self.header.byte_order}IQQIIB"
        # Compressors may be stacked; each layer carries its own header.
        while len(content) >= COMPRESSED_HEADER_SIZE:
            magic, compressed, uncompressed, name_offset, _, _ = struct.unpack_from(
                header_format, content, 0
            )
            if magic != COMPRESSED_MAGIC:
                break
            payload = content[COMPRESSED_HEADER_SIZE : COMPRESSED_HEADER_SIZE + compressed]
            decompressor = read_string(self._strings, name_offset)
            if decompressor != "zip":
                raise ImageFormatError(f"Unsupported image decompressor: {decompressor}")
            try:
                content = zlib.decompress(payload)
            except zlib.error as e:
                raise ImageFormatError(f"Corrupt compressed resource: {e}") from e
            if len(content) != uncompressed:
                raise ImageFormatError("Decompressed size does not match header")
        return content

    def module_classes(self, module: str) -> Iterator[Tuple[str, bytes]]:
        """Yield ``(path relative to module root, bytes)`` for each class of ``module``."""
        for location in self.locations():
            if location.module != module or location.extension != "class":
                continue
            if location.base == "module-info":
                continue
            yield location.module_path, self.read(location)


# =============================================================================
# Collection
# =============================================================================


def find_modules_image(java_home: Path) -> Optional[Path]:
    image = Path(java_home) / MODULES_IMAGE_PATH
    return image if image.is_file() else None


def collect_module_classes(java_home: Path, module: str = INTERNAL_API_MODULE) -> Dict[str, bytes]:
    """
    Read every class of ``module`` from the JDK's runtime image.

    Raises:
        FileNotFoundError: If the JDK has no runtime image
        ImageFormatError: If the image cannot be decoded
    """
    image = find_modules_image(java_home)
    if image is None:
        raise FileNotFoundError(f"Runtime image not found: {Path(java_home) / MODULES_IMAGE_PATH}")

    with ImageReader(image) as reader:
        return dict(reader.module_classes(module))
