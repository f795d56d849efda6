import copy
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

import modorder.ui_logger as logging
from modorder import config_utils as cfg
from modorder import re_utils, string_utils
from modorder.config_utils import ConfigData, ConfigStore
from modorder.mods_model import AppSettings, ModEntry, ModsModel, ValidationError
from modorder.order_utils import Err, OrderAssigner, OrderResult, parse_position
from modorder.reconciler import Reconciler, ReloadReport, parse_settings
from modorder.string_utils import ScanCandidate

RESERVED_NAMES = (cfg.SETTINGS_SECTION,)


class Snapshot(NamedTuple):
    mods: List[ModEntry]
    settings: AppSettings
    foreign: Dict[str, Dict[str, str]]


def check_name(name: str) -> str:
    if not isinstance(name, str):
        raise ValidationError(f"Mod name must be text, got {name!r}")
    name = name.strip()
    if not name:
        raise ValidationError("Mod name can't be empty")
    if name in RESERVED_NAMES:
        raise ValidationError(f"'{name}' is reserved")
    if any(c in name for c in "[]\r\n"):
        raise ValidationError(f"Mod name can't contain brackets or line breaks: {name!r}")
    return name


def check_files(files: Iterable[str]) -> List[str]:
    if isinstance(files, str):
        files = [files]
    cleaned = []
    for file in files:
        file = str(file).strip()
        if not file:
            continue
        if "\n" in file or "\r" in file:
            raise ValidationError(f"File path can't contain line breaks: {file!r}")
        if not string_utils.has_extension(file):
            raise ValidationError(f"'{string_utils.file_name_from_str(file)}' does not have an extension")
        cleaned.append(file)
    return string_utils.dedupe(cleaned)


class ModRegistry:
    """
    The only writer of mod and settings state. Every accepted mutation is
    saved before the call returns, a failed save puts memory back the way it was.
    """

    def __init__(self, store: ConfigStore, on_change: Optional[Callable[[], None]] = None):
        self.store = store
        self.model = ModsModel(on_change=on_change)
        self.assigner = OrderAssigner(self.model)
        self.app_settings = AppSettings()
        # sections that are neither settings nor mods, written back untouched
        self.foreign: Dict[str, Dict[str, str]] = {}
        self.reconciler = Reconciler(store)

    # region persistence

    def state(self) -> ConfigData:
        data: ConfigData = {cfg.SETTINGS_SECTION: self.app_settings.to_section()}
        for entry in self.model:
            data[entry.name] = entry.to_section()
        for name, section in self.foreign.items():
            data.setdefault(name, dict(section))
        return data

    def write_state(self) -> bool:
        return self.store.save(self.state())

    def _snapshot(self) -> Snapshot:
        return Snapshot(
            self.model.snapshot(),
            copy.deepcopy(self.app_settings),
            copy.deepcopy(self.foreign),
        )

    def _restore(self, snapshot: Snapshot) -> None:
        self.model.replace(snapshot.mods)
        self.app_settings = snapshot.settings
        self.foreign = snapshot.foreign
        self.assigner.rebuild()

    def _commit(self, snapshot: Snapshot) -> None:
        try:
            self.write_state()
        except OSError as err:
            logging.error(f"Failed to save '{self.store.path}': {err}")
            self._restore(snapshot)
            self.model.changed()
            raise
        self.model.changed()

    @contextmanager
    def _mutation(self):
        snapshot = self._snapshot()
        try:
            yield
        except BaseException:
            self._restore(snapshot)
            self.model.changed()
            raise
        self._commit(snapshot)

    def reload(self) -> ReloadReport:
        return self.reconciler.reload(self)

    force_reload = reload

    def _refresh_settings(self) -> None:
        """Re-reads the settings section so an edit made outside the tool is seen."""
        data = self.store.load()
        if cfg.SETTINGS_SECTION not in data:
            logging.warning(f"No [{cfg.SETTINGS_SECTION}] in '{self.store.path}', keeping the current settings")
            return
        warnings: List[str] = []
        settings, _ = parse_settings(data[cfg.SETTINGS_SECTION], warnings)
        for warning in warnings:
            logging.warning(warning)
        self.app_settings = settings

    # endregion

    # region queries

    def mods(self) -> List[ModEntry]:
        return self.model.snapshot()

    def settings(self) -> AppSettings:
        return copy.deepcopy(self.app_settings)

    @property
    def max_position(self) -> int:
        return self.assigner.max_position

    def get(self, name: str) -> Optional[ModEntry]:
        entry = self.model.get(name)
        return copy.deepcopy(entry) if entry is not None else None

    def global_order(self):
        return self.assigner.global_order()

    # endregion

    # region mods

    def _check_free_files(self, name: str, files: List[str]) -> None:
        for file in files:
            owner = self.model.owner_of(file)
            if owner is not None and owner.name != name:
                raise ValidationError(f"'{file}' is already registered to '{owner.name}'")

    def register(self, name: str, files: Iterable[str]) -> ModEntry:
        name = check_name(name)
        if name in self.model or name in self.foreign:
            raise ValidationError(f"A mod named '{name}' already exists")
        files = check_files(files)
        if not files:
            raise ValidationError(f"'{name}' needs at least one file")
        self._check_free_files(name, files)

        entry = ModEntry.new(name, files)
        with self._mutation():
            self.model.add(entry)
        logging.info(f"Registered '{name}' with {len(files)} file(s)")
        return copy.deepcopy(entry)

    def toggle(self, name: str, desired_enabled: bool) -> bool:
        entry = self.model.require(name)
        if self.app_settings.loader_disabled:
            logging.warning(f"Mod loading is disabled, '{name}' was not toggled")
            return entry.enabled
        if entry.enabled == desired_enabled:
            return entry.enabled
        with self._mutation():
            entry.enabled = desired_enabled
        logging.info(f"{'Enabled' if desired_enabled else 'Disabled'} '{name}'")
        return desired_enabled

    def add_files(self, name: str, new_files: Iterable[str]) -> int:
        entry = self.model.require(name)
        files = [f for f in check_files(new_files) if f not in entry.files]
        self._check_free_files(name, files)
        if not files:
            return 0
        with self._mutation():
            entry.set_files(entry.files + files)
        logging.info(f"Added {len(files)} file(s) to '{name}'")
        return len(files)

    def remove(self, name: str) -> int:
        """Returns the change in ordered mods, -1 when the mod had a load order."""
        entry = self.model.require(name)
        conflict: Optional[Err] = None
        delta = 0
        with self._mutation():
            entry.enabled = True
            self.model.changed()
            if entry.order.is_set:
                result = self.assigner.clear_ordered(entry)
                if isinstance(result, Err):
                    conflict = result
                else:
                    delta = result.delta
            self.model.remove(name)
        logging.info(f"Removed '{name}'")
        if conflict is not None:
            logging.warning(f"Load order of '{name}' was out of sync: {conflict.reason}")
            self.reload()
        return delta

    def scan_and_import(self, directory: str) -> int:
        candidates = string_utils.scan_directory(directory, self.app_settings.game_dir or None)
        return self.import_candidates(candidates)

    def import_candidates(self, candidates: Iterable[ScanCandidate]) -> int:
        tracked = self.model.all_files()
        added: List[ModEntry] = []
        for candidate in candidates:
            try:
                name = check_name(candidate.name)
            except ValidationError as err:
                logging.warning(f"Skipped '{candidate.name}': {err}")
                continue
            if name in self.model or name in self.foreign or any(a.name == name for a in added):
                logging.debug(f"Skipped '{name}', already registered")
                continue
            files = [f for f in candidate.files if string_utils.has_extension(f)]
            if not files:
                logging.debug(f"Skipped '{name}', none of its files have an extension")
                continue
            if any(f in tracked for f in files):
                logging.debug(f"Skipped '{name}', some of its files are already tracked")
                continue
            entry = ModEntry.new(name, files, candidate.enabled)
            tracked.update(entry.files)
            added.append(entry)

        if not added:
            return 0
        with self._mutation():
            for entry in added:
                self.model.add(entry)
        logging.info(f"Imported {len(added)} mod(s)")
        return len(added)

    # endregion

    # region load order

    def _apply_order(self, name: str, operation: Callable[[], OrderResult]) -> OrderResult:
        snapshot = self._snapshot()
        result = operation()
        if isinstance(result, Err):
            logging.warning(f"Load order of '{name}' rejected ({result.conflict.name}): {result.reason}")
            self.reload()
            return result
        self._commit(snapshot)
        return result

    def set_order(
        self,
        name: str,
        dll_file: str,
        enable: bool,
        position=0,
        duplicate_high_order: bool = False,
    ) -> OrderResult:
        entry = self.model.require(name)
        if enable:
            desired = parse_position(position)
            return self._apply_order(
                name,
                lambda: self.assigner.set_ordered(entry, dll_file, desired, duplicate_high_order),
            )
        return self._apply_order(name, lambda: self.assigner.clear_ordered(entry))

    def move_order(self, name: str, from_dll: str, to_dll: str, from_position, to_position) -> OrderResult:
        entry = self.model.require(name)
        old_position = parse_position(from_position)
        new_position = parse_position(to_position)
        return self._apply_order(
            name,
            lambda: self.assigner.move(entry, from_dll, to_dll, old_position, new_position),
        )

    # endregion

    # region settings

    def _set_setting(self, key: str, value) -> bool:
        if getattr(self.app_settings, key) == value:
            return False
        with self._mutation():
            setattr(self.app_settings, key, value)
        logging.info(f"Set '{key}' to {value!r}")
        return True

    def toggle_all(self, desired_disabled: bool) -> bool:
        self._refresh_settings()
        self._set_setting(cfg.LOADER_DISABLED, bool(desired_disabled))
        return self.app_settings.loader_disabled

    def toggle_terminal_visibility(self, desired: bool) -> bool:
        self._refresh_settings()
        self._set_setting(cfg.SHOW_TERMINAL, bool(desired))
        return self.app_settings.show_terminal

    def set_load_delay(self, value) -> int:
        match = re_utils.DELAY_INPUT.match(str(value))
        if not match:
            raise ValidationError(f"Load delay must be a number of milliseconds, got {value!r}")
        delay = int(match["digits"])
        if delay < 0:
            raise ValidationError(f"Load delay can't be negative, got {delay}")
        delay = cfg.clamp_int(delay)
        self._set_setting(cfg.LOAD_DELAY, delay)
        return delay

    def set_game_dir(self, path: str) -> str:
        path = (path or "").strip()
        if "\n" in path or "\r" in path:
            raise ValidationError(f"Game directory can't contain line breaks: {path!r}")
        self._set_setting(cfg.GAME_DIR, path)
        return path

    def set_dark_mode(self, value: bool) -> bool:
        self._set_setting(cfg.DARK_MODE, bool(value))
        return self.app_settings.dark_mode

    def set_save_log(self, value: bool) -> bool:
        self._set_setting(cfg.SAVE_LOG, bool(value))
        return self.app_settings.save_log

    # endregion
