#!/usr/bin/env python3
"""Release-restricted platform class listing backed by ``lib/ct.sym``.

``ct.sym`` is what ``javac --release N`` compiles against: a zip whose
top-level directories ("sections") are named after the releases their
contents apply to, one base-36 digit per release (8 -> ``8``, 10 -> ``A``).

Layout examples::

    87/java/lang/Object.sig            legacy section, packages at the top
    89ABC/java.base/java/lang/Math.sig modular section, nested under a module
    9-modules/java.base/module-info.sig module descriptors (never listed)

Listing the oldest release deliberately hides unsupported internals such as
``sun.misc.Unsafe``; those are added separately from the runtime image.
"""

from __future__ import annotations

import string
import zipfile
from pathlib import Path
from typing import Dict, Iterator, NamedTuple, Optional

OLDEST_RELEASE = 8

CT_SYM_PATH = "lib/ct.sym"

CLASS_SUFFIXES = (".sig", ".class")

_DIGITS = string.digits + string.ascii_uppercase


class PlatformClass(NamedTuple):
    """A class-kind file visible at the requested release."""

    entry_name: str  # Name of the file inside ct.sym
    binary_name: str  # Dotted binary name, e.g. java.util.Map$Entry


def release_code(release: int) -> str:
    """Encode a feature release as the single character used in section names."""
    if not 0 <= release < len(_DIGITS):
        raise ValueError(f"Release out of range: {release}")
    return _DIGITS[release]


def section_applies(section: str, release: int) -> bool:
    return "-" not in section and release_code(release) in section


def _class_relative_path(parts: list[str]) -> Optional[str]:
    """Strip the module directory of a modular section, if any."""
    # Package directories never contain dots; module directories usually do.
    if len(parts) > 1 and "." in parts[0]:
        parts = parts[1:]
    return "/".join(parts) if parts else None


def infer_binary_name(relative_path: str) -> Optional[str]:
    for suffix in CLASS_SUFFIXES:
        if relative_path.endswith(suffix):
            stem = relative_path[: -len(suffix)]
            if stem.rsplit("/", 1)[-1] == "module-info":
                return None
            return stem.replace("/", ".")
    return None


def class_path_for(binary_name: str) -> str:
    return binary_name.replace(".", "/") + ".class"


def list_platform_classes(
    zf: zipfile.ZipFile, release: int = OLDEST_RELEASE
) -> Iterator[PlatformClass]:
    """Yield every class-kind file of the sections applicable to ``release``."""
    for member in zf.infolist():
        if member.is_dir():
            continue
        section, _, rest = member.filename.partition("/")
        if not rest or not section_applies(section, release):
            continue
        relative = _class_relative_path(rest.split("/"))
        if relative is None:
            continue
        binary_name = infer_binary_name(relative)
        if binary_name is None:
            continue
        yield PlatformClass(entry_name=member.filename, binary_name=binary_name)


def collect_release_classes(java_home: Path, release: int = OLDEST_RELEASE) -> Dict[str, bytes]:
    """
    Read all classes visible at ``release`` keyed by archive path.

    Raises:
        FileNotFoundError: If the JDK has no ct.sym
    """
    ct_sym = Path(java_home) / CT_SYM_PATH
    if not ct_sym.is_file():
        raise FileNotFoundError(f"Symbol file not found: {ct_sym}")

    entries: Dict[str, bytes] = {}
    with zipfile.ZipFile(ct_sym, "r") as zf:
        for platform_class in list_platform_classes(zf, release):
            entries[class_path_for(platform_class.binary_name)] = zf.read(
                platform_class.entry_name
            )
    return entries
