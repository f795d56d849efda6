import os
from typing import Iterable, List, NamedTuple, Optional

from modorder import re_utils

OFF_STATE = ".disabled"
DLL_EXT = ".dll"
CONFIG_EXT = ".ini"
ELIDE_LEN = 20
# root + <mod dir>/<sub>/<sub>
SCAN_DEPTH = 3


class ScanCandidate(NamedTuple):
    name: str
    enabled: bool
    files: List[str]


def omit_off_state(file_name: str) -> str:
    return re_utils.OFF_STATE.sub("", file_name)


def is_disabled(file_name: str) -> bool:
    return bool(re_utils.OFF_STATE.search(file_name))


def file_name_from_str(path: str) -> str:
    return path.replace("\\", "/").rsplit("/", 1)[-1]


def extension(path: str) -> str:
    return os.path.splitext(omit_off_state(file_name_from_str(path)))[1].lower()


def has_extension(path: str) -> bool:
    return bool(os.path.splitext(file_name_from_str(path))[1])


def toggle_off_state(path: str) -> str:
    """Adds the ".disabled" suffix, or strips it when present."""
    if is_disabled(path):
        return omit_off_state(path)
    return path + OFF_STATE


def is_dll(path: str) -> bool:
    return extension(path) == DLL_EXT


def is_config(path: str) -> bool:
    return extension(path) == CONFIG_EXT


def dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def elide(name: str, max_len: int = ELIDE_LEN) -> str:
    if len(name) <= max_len:
        return name
    return name[: max_len - 3] + "..."


def short_path(path: str, root: Optional[str]) -> str:
    """`path` relative to `root` when it lives inside it, else absolute."""
    full = os.path.abspath(path)
    if root:
        root = os.path.abspath(root)
        try:
            if os.path.commonpath([full, root]) == root:
                return os.path.relpath(full, root)
        except ValueError:
            # different drives
            pass
    return full


def _walk_limited(directory: str, depth: int) -> List[str]:
    found: List[str] = []
    base_depth = directory.rstrip(os.sep).count(os.sep)
    for root, dirs, files in os.walk(directory):
        if root.rstrip(os.sep).count(os.sep) - base_depth >= depth - 1:
            dirs[:] = []
        dirs.sort()
        found.extend(os.path.join(root, f) for f in sorted(files))
    return found


def scan_directory(directory: str, root: Optional[str] = None, depth: int = SCAN_DEPTH) -> List[ScanCandidate]:
    """
    Each top level file of `directory` is a candidate mod named after the file
    (minus ".disabled" and its extension). A sibling folder with that name adds
    its files, walked to `depth` levels counting `directory` itself.
    """
    files: List[str] = []
    dirs: dict[str, str] = {}
    with os.scandir(directory) as entries:
        for entry in sorted(entries, key=lambda e: e.name):
            if entry.is_file():
                files.append(entry.path)
            elif entry.is_dir():
                dirs[entry.name] = entry.path

    candidates: List[ScanCandidate] = []
    for file in files:
        file_name = os.path.basename(file)
        name = os.path.splitext(omit_off_state(file_name))[0].strip()
        if not name:
            continue
        paths = [file]
        if name in dirs:
            paths.extend(_walk_limited(dirs[name], depth - 1))
        candidates.append(
            ScanCandidate(
                name=name,
                enabled=not is_disabled(file_name),
                files=dedupe(short_path(p, root) for p in paths),
            )
        )
    return candidates
