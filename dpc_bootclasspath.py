#!/usr/bin/env python3
"""Legacy (JDK 8 and older) bootclasspath discovery.

Pre-module JDKs ship the platform classes in a handful of jars under
``jre/lib``. Every entry of every jar present is copied, jars applied in
list order and entries in each jar's own order, so a duplicate name resolves
to the last occurrence.
"""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Dict, List, MutableMapping

BOOTCLASSPATH_JARS = ("rt.jar", "resources.jar", "jsse.jar", "jce.jar", "charsets.jar")

LEGACY_LIB_DIR = "jre/lib"


def find_bootclasspath_jars(java_home: Path) -> List[Path]:
    """Return the well-known jars that exist under ``java_home``, in list order."""
    lib_dir = Path(java_home) / LEGACY_LIB_DIR
    return [lib_dir / name for name in BOOTCLASSPATH_JARS if (lib_dir / name).is_file()]


# General purpose bit 11: name stored as UTF-8.
_UTF8_NAME_FLAG = 0x800


def entry_name(member: zipfile.ZipInfo) -> str:
    """
    Decode an entry name the way JarFile does: always as UTF-8.

    zipfile falls back to cp437 for names without the UTF-8 flag; the cp437
    round trip recovers the raw name bytes on every supported Python.

    Raises:
        zipfile.BadZipFile: If the raw name is not valid UTF-8
    """
    if member.flag_bits & _UTF8_NAME_FLAG:
        return member.orig_filename
    raw = member.orig_filename.encode("cp437")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise zipfile.BadZipFile(f"Entry name is not valid UTF-8: {raw!r}") from e


def read_jar_entries(jar_path: Path, entries: MutableMapping[str, bytes]) -> None:
    """Copy every entry of ``jar_path`` into ``entries`` (directories as empty bytes)."""
    with zipfile.ZipFile(jar_path, "r") as zf:
        for member in zf.infolist():
            entries[entry_name(member)] = zf.read(member)


def collect_bootclasspath(java_home: Path) -> Dict[str, bytes]:
    entries: Dict[str, bytes] = {}
    for jar_path in find_bootclasspath_jars(java_home):
        read_jar_entries(jar_path, entries)
    return entries
