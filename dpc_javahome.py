#!/usr/bin/env python3
"""Locate the JDK installation whose platform classes are dumped."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Mapping, Optional


class JavaHomeNotFoundError(FileNotFoundError):
    """Raised when no JDK installation can be located."""

    pass


def normalize_java_home(path: Path) -> Path:
    """Map a JDK 8 ``java.home`` (``<jdk>/jre``) onto the JDK root."""
    path = Path(path)
    if path.name == "jre":
        return path.parent
    return path


def _java_home_from_path(environ: Mapping[str, str]) -> Optional[Path]:
    java = shutil.which("java", path=environ.get("PATH"))
    if java is None:
        return None
    # <home>/bin/java, possibly behind /usr/bin/java -> alternatives symlinks
    return Path(java).resolve().parent.parent


def find_java_home(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Resolve the JDK root.

    ``JAVA_HOME`` wins when set; otherwise the ``java`` executable found on
    ``PATH`` is followed back to its installation.

    Raises:
        JavaHomeNotFoundError: If neither source yields an existing directory
    """
    if environ is None:
        environ = os.environ

    raw = environ.get("JAVA_HOME", "").strip()
    if raw:
        candidate: Optional[Path] = Path(raw)
        source = "JAVA_HOME"
    else:
        candidate = _java_home_from_path(environ)
        source = "PATH"

    if candidate is None:
        raise JavaHomeNotFoundError("No JDK found: set JAVA_HOME or put java on PATH")

    if not candidate.is_dir():
        raise JavaHomeNotFoundError(f"JDK root from {source} is not a directory: {candidate}")

    return normalize_java_home(candidate)
