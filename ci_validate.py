#!/usr/bin/env python3
"""CI validation script for platform classpath dumps.

This script validates:
1. All Python tools compile successfully
2. Synthetic JDK 8 and modular layouts dump to byte-identical jars across runs
3. Every dumped jar is sorted, stored, fixed-timestamp and CRC-correct
4. Optionally, the same checks against the host JDK (--host-jdk)

Usage:
    python ci_validate.py                    # Run all validations
    python ci_validate.py --verbose          # Show detailed output
    python ci_validate.py --host-jdk         # Also dump the installed JDK

Exit codes:
    0 = All validations passed
    1 = One or more validations failed
    2 = Script error
"""

from __future__ import annotations

import argparse
import pathlib
import subprocess
import sys
import tempfile
import zipfile
import zlib
from dataclasses import dataclass
from typing import List, Optional

# =============================================================================
# Configuration
# =============================================================================

SCRIPT_DIR = pathlib.Path(__file__).parent.resolve()

PYTHON_TOOLS = [
    "dpc.py",
    "dpc_bootclasspath.py",
    "dpc_collect.py",
    "dpc_ctsym.py",
    "dpc_jar.py",
    "dpc_javahome.py",
    "dpc_jimage.py",
]


# =============================================================================
# Validation result tracking
# =============================================================================


@dataclass
class ValidationResult:
    name: str
    passed: bool
    message: str
    details: Optional[str] = None


class ValidationReport:
    def __init__(self):
        self.results: List[ValidationResult] = []

    def add(self, name: str, passed: bool, message: str, details: Optional[str] = None):
        self.results.append(ValidationResult(name, passed, message, details))

    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    def render(self, verbose: bool = False) -> str:
        """One line per failure (and per success when verbose), then a total."""
        lines = []
        for r in self.results:
            if r.passed and not verbose:
                continue
            lines.append(f"{'ok  ' if r.passed else 'FAIL'} {r.name}: {r.message}")
            if not r.passed and r.details:
                lines.extend(f"       {line}" for line in r.details.splitlines())
        failed = sum(1 for r in self.results if not r.passed)
        lines.append(f"{len(self.results) - failed}/{len(self.results)} validations passed")
        return "\n".join(lines)


# =============================================================================
# Validation functions
# =============================================================================


def validate_python_compilation(report: ValidationReport):
    """Validate all Python tools compile without syntax errors."""
    for tool in PYTHON_TOOLS:
        tool_path = SCRIPT_DIR / tool
        if not tool_path.exists():
            report.add(f"compile:{tool}", False, f"File not found: {tool}")
            continue

        result = subprocess.run(
            [sys.executable, "-m", "py_compile", str(tool_path)],
            capture_output=True,
            text=True,
        )

        if result.returncode == 0:
            report.add(f"compile:{tool}", True, "Compiles successfully")
        else:
            report.add(
                f"compile:{tool}",
                False,
                "Compilation failed",
                result.stderr.strip(),
            )


def check_jar_invariants(jar_path: pathlib.Path) -> List[str]:
    """Return a list of invariant violations found in ``jar_path`` (empty when clean)."""
    import dpc_jar

    problems: List[str] = []
    with zipfile.ZipFile(jar_path, "r") as zf:
        infos = zf.infolist()
        names = [info.filename for info in infos]
        if names != sorted(names):
            problems.append("entries are not in lexicographic order")
        if len(set(names)) != len(names):
            problems.append("duplicate entry names")
        for info in infos:
            if info.compress_type != zipfile.ZIP_STORED:
                problems.append(f"{info.filename}: not stored")
            if info.date_time != dpc_jar.FIXED_DATE_TIME:
                problems.append(f"{info.filename}: timestamp {info.date_time}")
            if info.compress_size != info.file_size:
                problems.append(f"{info.filename}: compressed size differs from size")
            if info.flag_bits & 0x8:
                problems.append(f"{info.filename}: sizes deferred to a data descriptor")
            data = zf.read(info)
            if info.CRC != zlib.crc32(data) & 0xFFFFFFFF:
                problems.append(f"{info.filename}: CRC mismatch")
        if infos and infos[0].extra != dpc_jar.JAR_MAGIC_EXTRA:
            problems.append("first entry lacks the jar marker")
    return problems


def validate_layout(
    report: ValidationReport, name: str, java_home: pathlib.Path, work_dir: pathlib.Path
):
    """Dump ``java_home`` twice and compare; then check the jar invariants."""
    import dpc_collect
    import dpc_jar

    try:
        result = dpc_collect.collect_platform_classes(java_home)
        first = work_dir / f"{name}-1.jar"
        second = work_dir / f"{name}-2.jar"
        dpc_jar.write_jar(result.entries, first)
        dpc_jar.write_jar(dpc_collect.discover_platform_classes(java_home), second)
    except Exception as e:
        report.add(f"dump:{name}", False, "Dump failed", str(e))
        return

    digest_a, size = dpc_jar.digest_jar(first)
    digest_b, _ = dpc_jar.digest_jar(second)
    if digest_a == digest_b:
        report.add(
            f"reproducible:{name}",
            True,
            f"{len(result.entries):,} entries via {result.strategy.value}, "
            f"sha256:{digest_a[:16]}... ({size:,} bytes)",
        )
    else:
        report.add(
            f"reproducible:{name}",
            False,
            "Two dumps differ",
            f"first:  sha256:{digest_a}\nsecond: sha256:{digest_b}",
        )

    problems = check_jar_invariants(first)
    if problems:
        report.add(f"invariants:{name}", False, "Jar invariants violated", "\n".join(problems[:20]))
    else:
        report.add(f"invariants:{name}", True, "Sorted, stored, fixed timestamp, CRC correct")


def validate_synthetic_layouts(report: ValidationReport):
    """
    Dump fake JDK 8 and modular installations built from the test fixtures.

    Raises:
        FileNotFoundError: If the fixture builders are missing from the checkout
    """
    fixtures = SCRIPT_DIR / "tests" / "jdk_layouts.py"
    if not fixtures.is_file():
        raise FileNotFoundError(f"Test fixtures not found: {fixtures}")
    sys.path.insert(0, str(fixtures.parent))
    import jdk_layouts

    with tempfile.TemporaryDirectory() as tmpdir:
        tmp = pathlib.Path(tmpdir)
        legacy = jdk_layouts.make_legacy_jdk(tmp / "jdk8")
        modular = jdk_layouts.make_modular_jdk(tmp / "jdk-modular")
        validate_layout(report, "synthetic-jdk8", legacy, tmp)
        validate_layout(report, "synthetic-modular", modular, tmp)


def validate_host_jdk(report: ValidationReport):
    """Dump the JDK found through JAVA_HOME or PATH."""
    import dpc_javahome

    try:
        java_home = dpc_javahome.find_java_home()
    except dpc_javahome.JavaHomeNotFoundError as e:
        report.add("host-jdk", False, "No host JDK", str(e))
        return

    with tempfile.TemporaryDirectory() as tmpdir:
        validate_layout(report, "host-jdk", java_home, pathlib.Path(tmpdir))


# =============================================================================
# Main
# =============================================================================


def main():
    parser = argparse.ArgumentParser(description="Validate platform classpath dumps")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show detailed output")
    parser.add_argument(
        "--host-jdk", action="store_true", help="Also dump and check the installed JDK"
    )
    args = parser.parse_args()

    sys.path.insert(0, str(SCRIPT_DIR))
    report = ValidationReport()

    try:
        validate_python_compilation(report)
        validate_synthetic_layouts(report)
        if args.host_jdk:
            validate_host_jdk(report)
    except Exception as e:
        print(f"Script error: {e}", file=sys.stderr)
        return 2

    print(report.render(verbose=args.verbose))
    return 0 if report.passed() else 1


if __name__ == "__main__":
    sys.exit(main())
