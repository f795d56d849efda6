import os
from typing import Dict, List, NamedTuple, Optional, Tuple

import modorder.ui_logger as logging
from modorder import config_utils as cfg
from modorder import string_utils
from modorder.config_utils import ConfigData, ConfigStore
from modorder.mods_model import AppSettings, ModEntry, OrderRecord
from modorder.utils import Utils


class ReloadReport(NamedTuple):
    mods: int
    ordered: int
    repaired: bool
    warnings: List[str]


class LoadedState(NamedTuple):
    settings: AppSettings
    mods: List[ModEntry]
    foreign: Dict[str, Dict[str, str]]
    repaired: bool
    warnings: List[str]


def _read_bool(section: Dict[str, str], key: str, default: bool, where: str, warnings: List[str]) -> Tuple[bool, bool]:
    """Returns (value, repaired)."""
    raw = section.get(key)
    if raw is None:
        return default, key in cfg.DEFAULT_SETTINGS or key == cfg.ENABLED
    try:
        return cfg.parse_bool(raw), False
    except ValueError:
        warnings.append(f"Found an unexpected value {raw!r} for '{key}' in {where}, using {cfg.format_bool(default)}")
        return default, True


def parse_settings(section: Dict[str, str], warnings: List[str]) -> Tuple[AppSettings, bool]:
    defaults = AppSettings()
    repaired = False
    where = f"[{cfg.SETTINGS_SECTION}]"

    values = {}
    for key in (cfg.DARK_MODE, cfg.SHOW_TERMINAL, cfg.LOADER_DISABLED, cfg.SAVE_LOG):
        values[key], fixed = _read_bool(section, key, getattr(defaults, key), where, warnings)
        repaired |= fixed

    raw_delay = section.get(cfg.LOAD_DELAY)
    load_delay = defaults.load_delay
    if raw_delay is None:
        repaired = True
    else:
        try:
            load_delay = int(raw_delay.strip())
            if load_delay != cfg.clamp_int(load_delay):
                warnings.append(f"'{cfg.LOAD_DELAY}' {load_delay} is out of range, clamped")
                load_delay = cfg.clamp_int(load_delay)
                repaired = True
        except ValueError:
            warnings.append(f"Found an unexpected value {raw_delay!r} for '{cfg.LOAD_DELAY}' in {where}, using {load_delay}")
            repaired = True

    game_dir = section.get(cfg.GAME_DIR)
    if game_dir is None:
        game_dir = ""
        repaired = True

    extra = {k: v for k, v in section.items() if k not in cfg.DEFAULT_SETTINGS}
    settings = AppSettings(
        dark_mode=values[cfg.DARK_MODE],
        show_terminal=values[cfg.SHOW_TERMINAL],
        loader_disabled=values[cfg.LOADER_DISABLED],
        load_delay=load_delay,
        save_log=values[cfg.SAVE_LOG],
        game_dir=game_dir.strip(),
        extra=extra,
    )
    return settings, repaired


def parse_mod(name: str, section: Dict[str, str], taken: set, warnings: List[str]) -> Tuple[Optional[ModEntry], bool]:
    """
    Builds one entry from its section. Returns (None, True) when nothing valid
    is left. Subsets are re-derived from `files`, never trusted.
    """
    repaired = False
    where = f"[{name}]"
    enabled, fixed = _read_bool(section, cfg.ENABLED, True, where, warnings)
    repaired |= fixed

    files = []
    for file in cfg.split_list(section.get(cfg.FILES, "")):
        if file in taken:
            warnings.append(f"File '{file}' is already registered to another mod, removed it from '{name}'")
            repaired = True
            continue
        files.append(file)
    if not files:
        warnings.append(f"'{name}' has no registered files, mod was removed")
        return None, True

    entry = ModEntry.new(name, files, enabled)
    if len(entry.files) != len(files):
        repaired = True
    if (
        cfg.split_list(section.get(cfg.CONFIG_FILES, "")) != entry.config_files
        or cfg.split_list(section.get(cfg.DLL_FILES, "")) != entry.dll_files
    ):
        logging.debug(f"File subsets of '{name}' did not match its files, re-derived")
        repaired = True

    order_set, fixed = _read_bool(section, cfg.ORDER_SET, False, where, warnings)
    repaired |= fixed and cfg.ORDER_SET in section
    if order_set:
        order_file = section.get(cfg.ORDER_FILE, "").strip()
        raw_position = section.get(cfg.ORDER_POSITION, "").strip()
        position = int(raw_position) if raw_position.isdigit() else 0
        if order_file not in entry.dll_files:
            warnings.append(f"Load order of '{name}' points at '{order_file}' which is not one of its dll files, order removed")
            repaired = True
        elif position < 1:
            warnings.append(f"Load order of '{name}' has an invalid position {raw_position!r}, order removed")
            repaired = True
        else:
            entry.order = OrderRecord(True, entry.dll_files.index(order_file), position)

    entry.extra = {k: v for k, v in section.items() if k not in cfg.MOD_KEYS}
    return entry, repaired


def _on_disk(game_dir: str, file: str) -> bool:
    for candidate in (file, string_utils.toggle_off_state(file)):
        if os.path.exists(os.path.join(game_dir, candidate.replace("\\", os.sep))):
            return True
    return False


def verify_files(entry: ModEntry, game_dir: str, warnings: List[str]) -> Tuple[Optional[ModEntry], bool]:
    """
    Checks every registered file against `game_dir`. A missing dll removes the
    whole mod, any other missing or extensionless file is dropped from it.
    A file that only exists with ".disabled" toggled counts as present.
    """
    missing = [f for f in entry.dll_files if not _on_disk(game_dir, f)]
    if missing:
        warnings.append(f"'{entry.name}' was removed, dll file(s) not found in '{game_dir}': {', '.join(missing)}")
        return None, True

    kept = []
    for file in entry.files:
        if file in entry.dll_files:
            kept.append(file)
        elif not string_utils.has_extension(file):
            warnings.append(f"'{file}' does not have an extension and is no longer associated with '{entry.name}'")
        elif not _on_disk(game_dir, file):
            warnings.append(f"'{file}' was not found and is no longer associated with '{entry.name}'")
        else:
            kept.append(file)
    if len(kept) == len(entry.files):
        return entry, False
    if not kept:
        warnings.append(f"'{entry.name}' has no registered files, mod was removed")
        return None, True
    entry.set_files(kept)
    return entry, True


def normalize_order(mods: List[ModEntry]) -> bool:
    """
    Dense ranks 1..k by stored position. Equal positions only survive as a tie
    at the top, lower ties are split in file order. Returns True if anything moved.
    """
    ordered = [m for m in mods if m.order.is_set]
    if not ordered:
        return False
    # stable sort keeps file order for ties
    ordered.sort(key=lambda m: m.order.position)
    top = ordered[-1].order.position
    changed = False
    rank = 0
    previous = None
    for entry in ordered:
        if not (entry.order.position == previous and previous == top):
            rank += 1
        previous = entry.order.position
        if entry.order.position != rank:
            entry.order.position = rank
            changed = True
    return changed


class Reconciler:
    """The single recovery path: throw memory away and rebuild it from the file."""

    def __init__(self, store: ConfigStore):
        self.store = store

    def read(self) -> LoadedState:
        data: ConfigData = self.store.load()
        warnings: List[str] = [str(err) for err in self.store.parse_errors]
        repaired = bool(self.store.parse_errors)

        settings, fixed = parse_settings(data.get(cfg.SETTINGS_SECTION, {}), warnings)
        repaired |= fixed

        verify_dir = settings.game_dir if settings.game_dir and os.path.isdir(settings.game_dir) else None
        if settings.game_dir and verify_dir is None:
            logging.debug(f"'{settings.game_dir}' is not a directory, registered files were not checked")

        mods: List[ModEntry] = []
        foreign: Dict[str, Dict[str, str]] = {}
        taken: set = set()
        for name, section in data.items():
            if name == cfg.SETTINGS_SECTION:
                continue
            if cfg.FILES not in section:
                if cfg.ENABLED in section:
                    warnings.append(f"'{name}' has no registered files, mod was removed")
                    repaired = True
                else:
                    foreign[name] = section
                continue
            entry, fixed = parse_mod(name, section, taken, warnings)
            repaired |= fixed
            if entry is not None and verify_dir is not None:
                entry, fixed = verify_files(entry, verify_dir, warnings)
                repaired |= fixed
            if entry is not None:
                taken.update(entry.files)
                mods.append(entry)

        if normalize_order(mods):
            logging.debug("Load order values were not dense, re-ranked them")
            repaired = True

        # ordered mods first by rank, the rest keep file order
        mods.sort(key=lambda m: m.order.position if m.order.is_set else cfg.MAX_DELAY + 1)
        return LoadedState(settings, mods, foreign, repaired, warnings)

    @Utils.log_time("reload")
    def reload(self, registry) -> ReloadReport:
        """Replaces every piece of `registry` state with what the file holds."""
        state = self.read()
        for warning in state.warnings:
            logging.warning(warning)

        registry.app_settings = state.settings
        registry.foreign = state.foreign
        registry.model.replace(state.mods)
        registry.assigner.rebuild()

        if state.repaired:
            registry.write_state()
            logging.info(f"Repaired '{self.store.path}' while reloading")

        registry.model.changed()
        ordered = registry.assigner.max_position
        logging.info(f"Reloaded {len(state.mods)} mod(s), {ordered} with a load order")
        return ReloadReport(len(state.mods), ordered, state.repaired, state.warnings)
