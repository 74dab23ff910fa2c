from __future__ import annotations

import struct
import zipfile
from pathlib import Path

import pytest

import dpc_bootclasspath
from jdk_layouts import JSSE_JAR_ENTRIES, RT_JAR_ENTRIES, fake_class, write_zip


def test_find_jars_in_list_order(legacy_jdk: Path) -> None:
    jars = dpc_bootclasspath.find_bootclasspath_jars(legacy_jdk)
    assert [jar.name for jar in jars] == ["rt.jar", "jsse.jar"]


def test_find_jars_none_present(tmp_path: Path) -> None:
    assert dpc_bootclasspath.find_bootclasspath_jars(tmp_path) == []
    assert dpc_bootclasspath.collect_bootclasspath(tmp_path) == {}


def test_collect_copies_every_entry(legacy_jdk: Path) -> None:
    entries = dpc_bootclasspath.collect_bootclasspath(legacy_jdk)

    expected_names = {name for name, _ in RT_JAR_ENTRIES} | {name for name, _ in JSSE_JAR_ENTRIES}
    assert set(entries) == expected_names
    assert entries["java/lang/Object.class"] == fake_class("java/lang/Object")
    assert entries["java/lang/"] == b""


def test_later_jar_wins_on_duplicate_name(legacy_jdk: Path) -> None:
    entries = dpc_bootclasspath.collect_bootclasspath(legacy_jdk)
    # Both rt.jar and jsse.jar carry a manifest; jsse.jar comes later in the list.
    assert entries["META-INF/MANIFEST.MF"] == dict(JSSE_JAR_ENTRIES)["META-INF/MANIFEST.MF"]


def test_later_entry_wins_within_one_jar(tmp_path: Path) -> None:
    jar = tmp_path / "dup.jar"
    with pytest.warns(UserWarning, match="Duplicate name"):
        write_zip(jar, [("a/A.class", b"first"), ("a/A.class", b"second")])

    entries: dict[str, bytes] = {}
    dpc_bootclasspath.read_jar_entries(jar, entries)
    assert entries == {"a/A.class": b"second"}


def test_unlisted_jars_are_ignored(tmp_path: Path) -> None:
    write_zip(tmp_path / "jre" / "lib" / "tools.jar", [("com/sun/Tool.class", b"x")])
    write_zip(tmp_path / "jre" / "lib" / "charsets.jar", [("sun/nio/cs/ext/Big5.class", b"y")])

    entries = dpc_bootclasspath.collect_bootclasspath(tmp_path)
    assert entries == {"sun/nio/cs/ext/Big5.class": b"y"}


def test_corrupt_jar_aborts(tmp_path: Path) -> None:
    rt_jar = tmp_path / "jre" / "lib" / "rt.jar"
    rt_jar.parent.mkdir(parents=True)
    rt_jar.write_bytes(b"not a zip")

    with pytest.raises(zipfile.BadZipFile):
        dpc_bootclasspath.collect_bootclasspath(tmp_path)


def _clear_utf8_flags(data: bytes) -> bytes:
    """Clear general purpose bit 11 in every local and central header."""
    patched = bytearray(data)
    for signature, flags_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = patched.find(signature)
        while start != -1:
            flags_at = start + flags_offset
            (flags,) = struct.unpack_from("<H", patched, flags_at)
            struct.pack_into("<H", patched, flags_at, flags & ~0x800)
            start = patched.find(signature, start + 4)
    return bytes(patched)


def _write_legacy_named_jar(jar: Path, name: str, replace: tuple = (b"", b"")) -> None:
    write_zip(jar, [(name, b"x")], deflate=False)
    data = jar.read_bytes()
    if replace[0]:
        data = data.replace(*replace)
    jar.write_bytes(_clear_utf8_flags(data))


def test_unflagged_names_decode_as_utf8(tmp_path: Path) -> None:
    jar = tmp_path / "rt.jar"
    _write_legacy_named_jar(jar, "a/é.class")

    with zipfile.ZipFile(jar) as zf:
        assert not zf.infolist()[0].flag_bits & 0x800

    entries: dict[str, bytes] = {}
    dpc_bootclasspath.read_jar_entries(jar, entries)
    assert entries == {"a/é.class": b"x"}


def test_invalid_utf8_name_aborts(tmp_path: Path) -> None:
    jar = tmp_path / "rt.jar"
    _write_legacy_named_jar(jar, "a/é.class", replace=(b"\xc3\xa9", b"\xff\xfe"))

    with pytest.raises(zipfile.BadZipFile, match="not valid UTF-8"):
        dpc_bootclasspath.read_jar_entries(jar, {})
