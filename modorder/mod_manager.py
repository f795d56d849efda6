import copy
from concurrent.futures import Future
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple

import modorder.ui_logger as logging
from modorder import string_utils
from modorder.config_utils import CONFIG_FILENAME, ConfigStore
from modorder.game_finder import PathResult, locate_game_dir
from modorder.mod_utils import ModRegistry
from modorder.mods_model import AppSettings, ModEntry
from modorder.order_utils import Err, OrderResult
from modorder.task_queue import DEFAULT_WORKERS, CommandQueue, WorkerPool


class RegistryView(NamedTuple):
    """Copy of the registry taken on the owner thread, read by the queries."""

    mods: List[ModEntry]
    settings: AppSettings
    max_position: int
    order: List[Tuple[str, str, int]]


class ModManager:
    """
    Command surface for a front end. Every command is queued on the owner
    thread and returns a Future. Queries read the last published view, so
    they never wait on a command or on disk.

    `notify(message)` receives blocking notices: failed saves and the reload
    that follows a load order conflict. `on_change()` fires after every change
    so the front end can re-render from the queries.
    """

    def __init__(
        self,
        config_path: str = CONFIG_FILENAME,
        notify: Optional[Callable[[str], None]] = None,
        on_change: Optional[Callable[[], None]] = None,
        workers: int = DEFAULT_WORKERS,
    ):
        self.notify = notify
        self.on_change = on_change
        self.registry = ModRegistry(ConfigStore(config_path), self._changed)
        self.queue = CommandQueue()
        self.pool = WorkerPool(workers)
        self._view = self._take_view()
        self.ready: Future = self.force_reload()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        self.pool.shutdown(wait=wait)
        self.queue.shutdown(wait=wait)

    def _notify(self, message: str) -> None:
        if self.notify:
            self.notify(message)

    def _take_view(self) -> RegistryView:
        registry = self.registry
        return RegistryView(registry.mods(), registry.settings(), registry.max_position, registry.global_order())

    def _publish(self) -> None:
        # single reference swap, readers see the old view or the new one
        self._view = self._take_view()

    def _changed(self) -> None:
        self._publish()
        if self.on_change:
            self.on_change()

    def _run(self, fn: Callable, *args, echo: Optional[Callable] = None):
        """Owner thread side of every command."""
        try:
            return fn(*args)
        except OSError as err:
            logging.error(f"Could not save '{self.registry.store.path}': {err}")
            self._notify(f"Could not save the configuration file:\n{err}")
            if echo is not None:
                return echo()
            raise
        finally:
            self._publish()

    def _submit(self, fn: Callable, *args, echo: Optional[Callable] = None) -> Future:
        return self.queue.submit(self._run, fn, *args, echo=echo)

    def drop_pending(self) -> int:
        return self.queue.drop_pending()

    # region commands

    def toggle_mod(self, name: str, state: Optional[bool] = None) -> Future:
        def toggle():
            entry = self.registry.model.require(name)
            desired = (not entry.enabled) if state is None else bool(state)
            return self.registry.toggle(name, desired)

        return self._submit(toggle, echo=lambda: self.registry.model.require(name).enabled)

    def register_mod(self, name: str, file_paths: Iterable[str]) -> Future:
        return self._submit(self.registry.register, name, list(file_paths))

    def add_files(self, name: str, file_paths: Iterable[str]) -> Future:
        return self._submit(self.registry.add_files, name, list(file_paths))

    def remove_mod(self, name: str) -> Future:
        return self._submit(self.registry.remove, name)

    def _order_command(self, operation: Callable[[], OrderResult]) -> OrderResult:
        result = operation()
        if isinstance(result, Err):
            self._notify(f"Load order was out of sync and has been reloaded from file.\n{result.reason}")
        return result

    def set_order(
        self,
        mod: str,
        dll_file: str,
        enable: bool,
        position=0,
        duplicate_high_order: bool = False,
    ) -> Future:
        return self._submit(
            self._order_command,
            lambda: self.registry.set_order(mod, dll_file, enable, position, duplicate_high_order),
        )

    def move_order(self, mod: str, from_dll: str, to_dll: str, from_position, to_position) -> Future:
        return self._submit(
            self._order_command,
            lambda: self.registry.move_order(mod, from_dll, to_dll, from_position, to_position),
        )

    def force_reload(self) -> Future:
        return self._submit(self.registry.force_reload)

    def _game_dir(self) -> Optional[str]:
        return self.registry.app_settings.game_dir or None

    def scan_directory(self, path: str) -> Future:
        """
        Walks `path` on the worker pool, then imports the result on the owner
        thread. `game_dir` is read on the owner thread when the command's turn comes.
        """
        return self.pool.then(
            string_utils.scan_directory,
            lambda candidates: self._run(self.registry.import_candidates, candidates),
            self.queue,
            prepare=lambda: (path, self._game_dir()),
        )

    def set_load_delay(self, value: str) -> Future:
        return self._submit(self.registry.set_load_delay, value)

    def toggle_loader_disabled(self, disabled: bool) -> Future:
        return self._submit(
            self.registry.toggle_all,
            disabled,
            echo=lambda: self.registry.app_settings.loader_disabled,
        )

    def toggle_show_terminal(self, visible: bool) -> Future:
        return self._submit(
            self.registry.toggle_terminal_visibility,
            visible,
            echo=lambda: self.registry.app_settings.show_terminal,
        )

    def set_dark_mode(self, value: bool) -> Future:
        return self._submit(self.registry.set_dark_mode, value, echo=lambda: self.registry.app_settings.dark_mode)

    def set_save_log(self, value: bool) -> Future:
        return self._submit(self.registry.set_save_log, value, echo=lambda: self.registry.app_settings.save_log)

    def set_game_dir(self, path: str) -> Future:
        return self._submit(self.registry.set_game_dir, path)

    def locate_game(self) -> Future:
        """Probes for the game on the worker pool, a FULL match becomes `game_dir`."""

        def apply(result: PathResult) -> PathResult:
            if result.found and result.path != self.registry.app_settings.game_dir:
                self._run(self.registry.set_game_dir, result.path)
            return result

        return self.pool.then(locate_game_dir, apply, self.queue, prepare=lambda: (self._game_dir(),))

    # endregion

    # region queries

    def mods(self) -> List[ModEntry]:
        return copy.deepcopy(self._view.mods)

    def settings(self) -> AppSettings:
        return copy.deepcopy(self._view.settings)

    def max_position(self) -> int:
        return self._view.max_position

    def get(self, name: str) -> Optional[ModEntry]:
        for entry in self._view.mods:
            if entry.name == name:
                return copy.deepcopy(entry)
        return None

    def global_order(self) -> List[Tuple[str, str, int]]:
        return list(self._view.order)

    # endregion
