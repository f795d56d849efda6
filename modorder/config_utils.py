import configparser
import io
import os
from typing import Dict, List, Tuple

import modorder.ui_logger as logging
from modorder import re_utils
from modorder.utils import Utils

CONFIG_FILENAME = "ModOrderTool.ini"

SETTINGS_SECTION = "app-settings"
# no valid header can match this, keeps "[DEFAULT]" an ordinary section
_DEFAULT_SECTION = "[defaults]"

# app-settings keys
DARK_MODE = "dark_mode"
SHOW_TERMINAL = "show_terminal"
LOADER_DISABLED = "loader_disabled"
LOAD_DELAY = "load_delay"
SAVE_LOG = "save_log"
GAME_DIR = "game_dir"

DEFAULT_SETTINGS: Dict[str, str] = {
    DARK_MODE: "true",
    SHOW_TERMINAL: "false",
    LOADER_DISABLED: "false",
    LOAD_DELAY: "5000",
    SAVE_LOG: "true",
    GAME_DIR: "",
}

# mod section keys
ENABLED = "enabled"
FILES = "files"
CONFIG_FILES = "config_files"
DLL_FILES = "dll_files"
ORDER_SET = "order_set"
ORDER_FILE = "order_file"
ORDER_POSITION = "order_position"

MOD_KEYS = (ENABLED, FILES, CONFIG_FILES, DLL_FILES, ORDER_SET, ORDER_FILE, ORDER_POSITION)

# loader integer ceiling, shared by load_delay and order positions
MAX_DELAY = 2147483647

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}

ConfigData = Dict[str, Dict[str, str]]


class ParseError(ValueError):
    """A malformed line in the configuration file."""

    def __init__(self, path: str, line_no: int, line: str, reason: str):
        self.path = path
        self.line_no = line_no
        self.line = line
        self.reason = reason
        super().__init__(f"{path}:{line_no}: {reason}: {line!r}")


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def clamp_int(value: int, low: int = 0, high: int = MAX_DELAY) -> int:
    return max(low, min(value, high))


def split_list(value: str) -> List[str]:
    """Multi-line value -> list, one entry per non-empty line."""
    return [line.strip() for line in value.splitlines() if line.strip()]


def join_list(values: List[str]) -> str:
    return "\n".join(values)


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        # comments are dropped by clean_lines, values may start with ";" or "#"
        comment_prefixes=(),
        empty_lines_in_values=False,
        default_section=_DEFAULT_SECTION,
    )
    parser.optionxform = str  # type: ignore[assignment]  # keys are case-sensitive
    return parser


class ConfigStore:
    """
    Flat section/key-value file. Knows nothing about mods: load() returns
    {section: {key: value}} and save() writes the whole mapping back.
    """

    def __init__(self, path: str = CONFIG_FILENAME):
        self._path = path
        self.parse_errors: List[ParseError] = []

    @property
    def path(self) -> str:
        return self._path

    def exists(self) -> bool:
        return os.path.isfile(self._path)

    def clean_lines(self, text: str) -> Tuple[List[str], List[ParseError]]:
        """
        Drops every line the grammar can't place, returning the kept lines
        and one ParseError per dropped line. Comment lines are dropped silently.
        """
        kept: List[str] = []
        errors: List[ParseError] = []
        in_section = False
        can_continue = False

        for line_no, line in enumerate(text.splitlines(), start=1):
            if re_utils.BLANK.match(line):
                kept.append(line)
                can_continue = False
                continue
            # indented lines after a key are list entries, even "#x.dll"
            if can_continue and re_utils.CONTINUATION.match(line):
                kept.append(line)
                continue
            if re_utils.COMMENT.match(line):
                continue
            if re_utils.SECTION.match(line):
                kept.append(line)
                in_section = True
                can_continue = False
                continue
            if re_utils.CONTINUATION.match(line):
                errors.append(
                    ParseError(self._path, line_no, line, "continuation without a key")
                )
                continue
            if re_utils.OPTION.match(line):
                if in_section:
                    kept.append(line)
                    can_continue = True
                else:
                    errors.append(
                        ParseError(self._path, line_no, line, "key outside of any section")
                    )
                continue
            errors.append(ParseError(self._path, line_no, line, "unrecognized line"))
            can_continue = False

        return kept, errors

    def loads(self, text: str) -> ConfigData:
        kept, self.parse_errors = self.clean_lines(text)
        for err in self.parse_errors:
            logging.warning(f"Skipped malformed line {err.line_no} in '{err.path}': {err.reason}")

        parser = _new_parser()
        parser.read_string("\n".join(kept), source=self._path)
        return {section: dict(parser.items(section, raw=True)) for section in parser.sections()}

    def load(self) -> ConfigData:
        """Reads the file. A missing file is an empty mapping."""
        if not self.exists():
            logging.debug(f"'{self._path}' not found, starting empty")
            self.parse_errors = []
            return {}
        with open(self._path, "r", encoding="utf-8-sig", errors="replace") as f:
            text = f.read()
        return self.loads(text)

    @staticmethod
    def dumps(state: ConfigData) -> str:
        parser = _new_parser()
        for section, values in state.items():
            parser.add_section(section)
            for key, value in values.items():
                parser.set(section, key, value)
        buf = io.StringIO()
        parser.write(buf)
        return buf.getvalue()

    def save(self, state: ConfigData) -> bool:
        """
        Writes the full mapping atomically. Returns False when the file
        already had this content. OSError propagates to the caller.
        """
        written = Utils.atomic_write(self._path, self.dumps(state))
        if written:
            logging.debug(f"Saved {len(state)} section(s) to '{self._path}'")
        return written
