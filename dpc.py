#!/usr/bin/env python3
"""Dump every class on the platform classpath of a JDK into one jar.

Usage: dpc <output jar>

The JDK is taken from JAVA_HOME, or from the ``java`` found on PATH. Set
DPC_VERBOSE=1 for a short report on stderr.
"""

from __future__ import annotations

import os
import sys
import zipfile
from pathlib import Path
from typing import List, Mapping, Optional

from dpc_collect import collect_platform_classes
from dpc_jar import write_jar
from dpc_javahome import find_java_home
from dpc_jimage import ImageFormatError

USAGE = "usage: dpc <output jar>"


def _verbose(environ: Mapping[str, str]) -> bool:
    return environ.get("DPC_VERBOSE", "").strip() not in {"", "0"}


def dump_platform_classpath(
    output: Path, environ: Optional[Mapping[str, str]] = None
) -> int:
    """Collect the platform classes of the located JDK and write them to ``output``."""
    if environ is None:
        environ = os.environ

    java_home = find_java_home(environ)
    result = collect_platform_classes(java_home)
    count = write_jar(result.entries, output)

    if _verbose(environ):
        print(f"JDK: {java_home}", file=sys.stderr)
        print(f"Strategy: {result.strategy.value}", file=sys.stderr)
        print(f"Wrote {count:,} entries to {output}", file=sys.stderr)

    return count


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if len(argv) != 1:
        print(USAGE, file=sys.stderr)
        return 1

    try:
        dump_platform_classpath(Path(argv[0]))
        return 0
    except (OSError, zipfile.BadZipFile, ImageFormatError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
