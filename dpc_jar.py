#!/usr/bin/env python3
"""Write collected platform classes to a deterministic jar.

Determinism settings:
  - All entries use a fixed timestamp (2010-01-01 00:00:00, DOS local time).
  - Entries are written in lexicographic order of their archive paths.
  - Permissions are fixed to 0644 and the creating system to FAT.
  - Entries use ZIP_STORED (no compression); size and CRC-32 are set from
    the content before each record header is finalized.
  - Local headers always carry CRC and sizes (no data descriptors).
  - The first record carries the jar marker extra field, as the JDK's own
    jar writer emits it.

Two runs over the same set of (path, bytes) pairs produce byte-identical
files, whatever order the pairs were collected in.
"""

from __future__ import annotations

import hashlib
import io
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import Mapping

FIXED_DATE_TIME = (2010, 1, 1, 0, 0, 0)

OUTPUT_BUFFER_SIZE = 65536

# Extra field id 0xCAFE with an empty payload.
JAR_MAGIC_EXTRA = b"\xfe\xca\x00\x00"


def make_entry_info(name: str, data: bytes, first: bool = False) -> zipfile.ZipInfo:
    zi = zipfile.ZipInfo(filename=name, date_time=FIXED_DATE_TIME)
    zi.compress_type = zipfile.ZIP_STORED
    zi.create_system = 0  # "FAT"; avoids platform-specific permission bits
    # Fixed permissions: -rw-r--r--
    zi.external_attr = (0o644 & 0xFFFF) << 16
    zi.file_size = len(data)
    zi.compress_size = len(data)
    zi.CRC = zlib.crc32(data) & 0xFFFFFFFF
    if first:
        zi.extra = JAR_MAGIC_EXTRA
    return zi


def write_jar(entries: Mapping[str, bytes], out_jar: Path) -> int:
    """
    Write ``entries`` to ``out_jar``, replacing any existing file.

    The archive is assembled in memory first: ``zipfile`` only rewrites local
    headers with CRC and sizes on a seekable stream, and falls back to data
    descriptors (rejected by JarInputStream for stored entries) otherwise.
    Pipes and FIFOs therefore receive the same bytes as a regular file.

    Returns:
        Number of records written
    """
    records = sorted(entries.items(), key=lambda t: t[0])

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as zf:
        for index, (name, data) in enumerate(records):
            zf.writestr(make_entry_info(name, data, first=index == 0), data)

    out_jar = Path(out_jar)
    out_jar.parent.mkdir(parents=True, exist_ok=True)

    buffer.seek(0)
    with open(out_jar, "wb", buffering=OUTPUT_BUFFER_SIZE) as fh:
        shutil.copyfileobj(buffer, fh, OUTPUT_BUFFER_SIZE)

    return len(records)


def digest_jar(jar_path: Path) -> tuple[str, int]:
    """Return ``(sha256 hex, size)`` of a written jar, for comparing runs."""
    hasher = hashlib.sha256()
    with open(jar_path, "rb") as f:
        for chunk in iter(lambda: f.read(OUTPUT_BUFFER_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest(), Path(jar_path).stat().st_size
