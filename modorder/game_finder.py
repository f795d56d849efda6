import os
import sys
from enum import Enum, auto
from typing import List, NamedTuple, Optional

# Conditional import for winreg (Windows only)
if sys.platform == "win32":
    import winreg

import modorder.ui_logger as logging
from modorder import re_utils

REQUIRED_GAME_FILES = ("eldenring.exe", "oo2core_6_win64.dll", "eossdk-win64-shipping.dll")
GAME_SUBDIR = os.path.join("common", "ELDEN RING", "Game")


class PathKind(Enum):
    FULL = auto()
    PARTIAL = auto()
    NONE = auto()


class PathResult(NamedTuple):
    kind: PathKind
    path: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.kind is PathKind.FULL


def missing_game_files(directory: str) -> List[str]:
    return [f for f in REQUIRED_GAME_FILES if not os.path.isfile(os.path.join(directory, f))]


def parse_steam_library_folders(vdf_path: str) -> List[str]:
    """
    Parses the libraryfolders.vdf file to extract additional Steam library paths.
    Only "path" values inside numbered blocks are read.
    """
    paths: List[str] = []
    try:
        with open(vdf_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        logging.error(f"Error reading VDF file '{vdf_path}': {e}")
        return paths

    for match in re_utils.VDF_LIBRARY_PATH.finditer(content):
        # VDF escapes backslashes
        paths.append(match["path"].replace("\\\\", os.sep))
    return paths


def _windows_steam_path() -> Optional[str]:
    try:
        # Try 64-bit registry first, then 32-bit
        try:
            key = winreg.OpenKey(winreg.HKEY_CURRENT_USER, r"SOFTWARE\WOW6432Node\Valve\Steam")
        except FileNotFoundError:
            key = winreg.OpenKey(winreg.HKEY_CURRENT_USER, r"SOFTWARE\Valve\Steam")
        steam_path = winreg.QueryValueEx(key, "SteamPath")[0]
        winreg.CloseKey(key)
    except OSError:
        logging.error("Couldn't find Steam path in Windows registry.")
        return None
    logging.info(f"Steam found via registry: {steam_path}")
    return steam_path


def default_steamapps_paths() -> List[str]:
    if sys.platform == "win32":
        steam_path = _windows_steam_path()
        return [os.path.join(steam_path, "steamapps")] if steam_path else []
    if sys.platform == "darwin":
        return [os.path.expanduser("~/Library/Application Support/Steam/steamapps")]
    return [
        os.path.expanduser("~/.steam/steam/steamapps"),
        os.path.expanduser("~/.local/share/Steam/steamapps"),
    ]


def get_steam_library_paths(roots: Optional[List[str]] = None) -> List[str]:
    """
    Returns every existing steamapps directory: the default ones for this OS
    (or `roots`) plus the libraries listed in their libraryfolders.vdf.
    """
    lib_paths: List[str] = []
    logging.info("Attempting to locate Steam installation...")

    for steamapps in roots if roots is not None else default_steamapps_paths():
        if not os.path.isdir(steamapps) or steamapps in lib_paths:
            continue
        lib_paths.append(steamapps)

        library_folders_vdf = os.path.join(steamapps, "libraryfolders.vdf")
        if not os.path.exists(library_folders_vdf):
            logging.warning(f"'{library_folders_vdf}' not found. No additional Steam libraries will be searched.")
            continue
        logging.info(f"Parsing '{library_folders_vdf}' for additional libraries...")
        for lib in parse_steam_library_folders(library_folders_vdf):
            steamapps_path = os.path.join(lib, "steamapps")
            if os.path.isdir(steamapps_path):
                if steamapps_path not in lib_paths:
                    lib_paths.append(steamapps_path)
                    logging.info(f"Added Steam library: {lib}")
            else:
                logging.warning(f"Skipping invalid Steam library path: {lib}")

    if not lib_paths:
        logging.warning("No Steam libraries found.")
    return lib_paths


def locate_game_dir(saved_dir: Optional[str] = None, steam_roots: Optional[List[str]] = None) -> PathResult:
    """
    Checks `saved_dir` first, then the game folder of every Steam library.
    A folder with all REQUIRED_GAME_FILES is FULL, one missing some is PARTIAL.
    """
    partial: Optional[str] = None
    if saved_dir and os.path.isdir(saved_dir):
        missing = missing_game_files(saved_dir)
        if not missing:
            return PathResult(PathKind.FULL, saved_dir)
        logging.warning(f"Saved game folder '{saved_dir}' is missing: {', '.join(missing)}")
        partial = saved_dir

    logging.info("Searching through the Steam libraries...")
    for lib_path in get_steam_library_paths(steam_roots):
        game_dir = os.path.join(lib_path, GAME_SUBDIR)
        logging.debug(f"Checking: {game_dir}")
        if not os.path.isdir(game_dir):
            continue
        missing = missing_game_files(game_dir)
        if not missing:
            logging.info(f"Game found: {game_dir}")
            return PathResult(PathKind.FULL, game_dir)
        logging.warning(f"Found '{game_dir}', but it is missing: {', '.join(missing)}")
        partial = partial or game_dir

    if partial:
        return PathResult(PathKind.PARTIAL, partial)
    logging.error("Game not found in Steam libraries.")
    return PathResult(PathKind.NONE)
