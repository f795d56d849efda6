import os

import pytest

from modorder import string_utils as su


@pytest.mark.parametrize(
    "path, dll, config",
    [
        ("mods\\a.dll", True, False),
        ("mods/A.DLL.disabled", True, False),
        ("cfg/b.ini", False, True),
        ("cfg/B.INI.DISABLED", False, True),
        ("notes.txt", False, False),
        ("archive.dll.bak", False, False),
    ],
)
def test_classification(path, dll, config):
    assert su.is_dll(path) is dll
    assert su.is_config(path) is config


def test_off_state():
    assert su.omit_off_state("a.dll.disabled") == "a.dll"
    assert su.omit_off_state("a.dll") == "a.dll"
    assert su.is_disabled("a.dll.DISABLED")
    assert not su.is_disabled("disabled.dll")


def test_elide():
    assert su.elide("Short") == "Short"
    assert su.elide("x" * 20) == "x" * 20
    long_name = "A very long mod name indeed"
    assert su.elide(long_name) == long_name[:17] + "..."
    assert len(su.elide(long_name)) == 20


def test_short_path(tmp_path):
    root = tmp_path / "Game"
    inside = root / "mods" / "a.dll"
    assert su.short_path(str(inside), str(root)) == os.path.join("mods", "a.dll")
    outside = tmp_path / "elsewhere" / "a.dll"
    assert su.short_path(str(outside), str(root)) == str(outside)
    assert su.short_path(str(outside), None) == str(outside)


def make_tree(base, paths):
    for rel in paths:
        path = base / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")


def test_scan_directory(tmp_path):
    mods = tmp_path / "mods"
    make_tree(
        mods,
        [
            "Alpha.dll",
            "Alpha/config/alpha.ini",
            "Alpha/config/deep/too_deep.ini",
            "Beta.dll.disabled",
            "Beta/beta.txt",
            "Lonely/skipped.dll",
        ],
    )
    candidates = su.scan_directory(str(mods), root=str(tmp_path))

    assert [c.name for c in candidates] == ["Alpha", "Beta"]
    alpha, beta = candidates
    assert alpha.enabled and not beta.enabled
    assert alpha.files == [
        os.path.join("mods", "Alpha.dll"),
        os.path.join("mods", "Alpha", "config", "alpha.ini"),
    ]
    assert beta.files == [os.path.join("mods", "Beta.dll.disabled"), os.path.join("mods", "Beta", "beta.txt")]


def test_scan_depth_can_be_raised(tmp_path):
    make_tree(tmp_path, ["Alpha.dll", "Alpha/a/b/c.ini"])
    shallow = su.scan_directory(str(tmp_path), root=str(tmp_path))
    deep = su.scan_directory(str(tmp_path), root=str(tmp_path), depth=4)
    assert len(shallow[0].files) == 1
    assert deep[0].files[-1] == os.path.join("Alpha", "a", "b", "c.ini")


def test_dedupe_keeps_first_order():
    assert su.dedupe(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


def test_extension_helpers():
    assert su.has_extension("mods\\a.dll")
    assert su.has_extension("b.ini.disabled")
    assert not su.has_extension("mods.d/README")
    assert su.toggle_off_state("a.dll") == "a.dll.disabled"
    assert su.toggle_off_state("a.dll.disabled") == "a.dll"
