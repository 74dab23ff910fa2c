#!/usr/bin/env python3
"""Discover the platform classes of a JDK.

Two strategies, tried in order:

  legacy   the well-known bootclasspath jars of a JDK 8 layout
  modular  the oldest-release view from ct.sym, plus the classes of the
           internal-APIs module read from the runtime image

The modular strategy runs only when the legacy one finds nothing. Every read
failure propagates; a partial snapshot is never returned.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, NamedTuple

from dpc_bootclasspath import collect_bootclasspath
from dpc_ctsym import OLDEST_RELEASE, collect_release_classes
from dpc_jimage import INTERNAL_API_MODULE, collect_module_classes


class Strategy(str, Enum):
    LEGACY = "legacy"
    MODULAR = "modular"


class CollectionResult(NamedTuple):
    strategy: Strategy
    entries: Dict[str, bytes]  # Archive path -> raw bytes


def collect_legacy(java_home: Path) -> Dict[str, bytes]:
    return collect_bootclasspath(java_home)


def collect_modular(java_home: Path) -> Dict[str, bytes]:
    entries = collect_release_classes(java_home, OLDEST_RELEASE)
    # The oldest-release view only exposes supported APIs, which leaves out
    # e.g. sun.misc.Unsafe.
    entries.update(collect_module_classes(java_home, INTERNAL_API_MODULE))
    return entries


def collect_platform_classes(java_home: Path) -> CollectionResult:
    entries = collect_legacy(java_home)
    if entries:
        return CollectionResult(Strategy.LEGACY, entries)
    return CollectionResult(Strategy.MODULAR, collect_modular(java_home))


def discover_platform_classes(java_home: Path) -> Dict[str, bytes]:
    """Return the complete archive path -> bytes mapping for ``java_home``."""
    return collect_platform_classes(java_home).entries
