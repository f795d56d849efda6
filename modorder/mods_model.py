import copy
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

from modorder import config_utils as cfg
from modorder import string_utils


class ValidationError(ValueError):
    """Caller input rejected at the command boundary, nothing was changed."""


@dataclass
class OrderRecord:
    is_set: bool = False
    # index into dll_files, -1 when unset and not exactly one dll
    selected_index: int = -1
    # 1-based rank, 0 when not set
    position: int = 0

    @classmethod
    def unset(cls, dll_count: int) -> "OrderRecord":
        return cls(False, 0 if dll_count == 1 else -1, 0)


@dataclass
class ModEntry:
    name: str
    enabled: bool = True
    files: List[str] = field(default_factory=list)
    config_files: List[str] = field(default_factory=list)
    dll_files: List[str] = field(default_factory=list)
    order: OrderRecord = field(default_factory=OrderRecord)
    # unknown keys from the mod's section
    extra: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def new(cls, name: str, files: List[str], enabled: bool = True) -> "ModEntry":
        entry = cls(name=name, enabled=enabled)
        entry.set_files(files)
        entry.order = OrderRecord.unset(len(entry.dll_files))
        return entry

    @property
    def display_name(self) -> str:
        return string_utils.elide(self.name)

    @property
    def order_file(self) -> Optional[str]:
        if 0 <= self.order.selected_index < len(self.dll_files):
            return self.dll_files[self.order.selected_index]
        return None

    def set_files(self, files: List[str]) -> None:
        """Replaces the file list and re-derives the config/dll subsets."""
        selected = self.order_file
        self.files = string_utils.dedupe(files)
        self.config_files = [f for f in self.files if string_utils.is_config(f)]
        self.dll_files = [f for f in self.files if string_utils.is_dll(f)]
        if selected in self.dll_files:
            self.order.selected_index = self.dll_files.index(selected)
        elif not self.order.is_set:
            self.order.selected_index = 0 if len(self.dll_files) == 1 else -1

    def to_section(self) -> Dict[str, str]:
        section = {
            cfg.ENABLED: cfg.format_bool(self.enabled),
            cfg.FILES: cfg.join_list(self.files),
            cfg.CONFIG_FILES: cfg.join_list(self.config_files),
            cfg.DLL_FILES: cfg.join_list(self.dll_files),
            cfg.ORDER_SET: cfg.format_bool(self.order.is_set),
            cfg.ORDER_FILE: (self.order_file or "") if self.order.is_set else "",
            cfg.ORDER_POSITION: str(self.order.position),
        }
        section.update(self.extra)
        return section


@dataclass
class AppSettings:
    dark_mode: bool = True
    show_terminal: bool = False
    loader_disabled: bool = False
    load_delay: int = 5000
    save_log: bool = True
    game_dir: str = ""
    extra: Dict[str, str] = field(default_factory=dict)

    def to_section(self) -> Dict[str, str]:
        section = {
            cfg.DARK_MODE: cfg.format_bool(self.dark_mode),
            cfg.SHOW_TERMINAL: cfg.format_bool(self.show_terminal),
            cfg.LOADER_DISABLED: cfg.format_bool(self.loader_disabled),
            cfg.LOAD_DELAY: str(self.load_delay),
            cfg.SAVE_LOG: cfg.format_bool(self.save_log),
            cfg.GAME_DIR: self.game_dir,
        }
        section.update(self.extra)
        return section


class ModsModel:
    """
    Registered mods in display order. The front end re-renders from the
    queries when on_change fires, it never owns this state.
    """

    def __init__(self, data: Optional[List[ModEntry]] = None, on_change: Optional[Callable[[], None]] = None):
        self.data: List[ModEntry] = []
        self._by_name: Dict[str, ModEntry] = {}
        self.on_change = on_change  # callback to trigger UI update
        if data:
            self.replace(data)

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self) -> Iterator[ModEntry]:
        return iter(self.data)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def get(self, name: str) -> Optional[ModEntry]:
        return self._by_name.get(name)

    def require(self, name: str) -> ModEntry:
        entry = self._by_name.get(name)
        if entry is None:
            raise ValidationError(f"Mod '{name}' is not registered")
        return entry

    def owner_of(self, file: str) -> Optional[ModEntry]:
        for entry in self.data:
            if file in entry.files:
                return entry
        return None

    def all_files(self) -> set[str]:
        return {f for entry in self.data for f in entry.files}

    def add(self, entry: ModEntry) -> None:
        self.data.append(entry)
        self._by_name[entry.name] = entry

    def remove(self, name: str) -> ModEntry:
        entry = self.require(name)
        self.data.remove(entry)
        del self._by_name[name]
        return entry

    def replace(self, entries: List[ModEntry]) -> None:
        self.data = list(entries)
        self._by_name = {entry.name: entry for entry in self.data}

    def changed(self) -> None:
        if self.on_change:
            self.on_change()

    def snapshot(self) -> List[ModEntry]:
        return copy.deepcopy(self.data)
