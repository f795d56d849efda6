"""
Command line front end for the mod registry:
  python ModOrderTool.py list                          # registered mods and their load order
  python ModOrderTool.py register Foo mods/foo.dll     # register a mod
  python ModOrderTool.py order Foo mods/foo.dll 1      # give one of its dlls a load order
  python ModOrderTool.py scan path/to/mods             # import every mod found in a folder
  python ModOrderTool.py --config other.ini settings   # use another configuration file
"""

import argparse
import os
import sys
from typing import List, Optional

import modorder.ui_logger as logging
from modorder.config_utils import CONFIG_FILENAME
from modorder.game_finder import PathKind
from modorder.mod_manager import ModManager
from modorder.mods_model import ModEntry, ValidationError
from modorder.order_utils import Err


def _on_off(value: str) -> bool:
    lowered = value.lower()
    if lowered not in ("on", "off"):
        raise argparse.ArgumentTypeError(f"expected 'on' or 'off', got {value!r}")
    return lowered == "on"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="ModOrderTool",
        description="Register mods, toggle them and keep a consistent load order for their dlls.",
    )
    ap.add_argument("--config", default=CONFIG_FILENAME, help=f"Configuration file (default: {CONFIG_FILENAME})")
    ap.add_argument("--log-file", help="Write the log to this file (default: next to the configuration file when save_log is on)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Show debug messages")

    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List registered mods")
    sub.add_parser("settings", help="Show the application settings")

    p = sub.add_parser("register", help="Register a new mod")
    p.add_argument("name")
    p.add_argument("files", nargs="+")

    p = sub.add_parser("add-files", help="Add files to a registered mod")
    p.add_argument("name")
    p.add_argument("files", nargs="+")

    p = sub.add_parser("remove", help="Remove a registered mod")
    p.add_argument("name")

    p = sub.add_parser("toggle", help="Enable or disable a mod (flips it without --on/--off)")
    p.add_argument("name")
    state = p.add_mutually_exclusive_group()
    state.add_argument("--on", dest="state", action="store_const", const=True)
    state.add_argument("--off", dest="state", action="store_const", const=False)

    p = sub.add_parser("order", help="Give a dll of a mod a load order position")
    p.add_argument("name")
    p.add_argument("dll")
    p.add_argument("position")
    p.add_argument("--dup", action="store_true", help="Share the highest position instead of appending")

    p = sub.add_parser("unorder", help="Remove the load order of a mod")
    p.add_argument("name")

    p = sub.add_parser("move", help="Change the ordered dll or position of a mod")
    p.add_argument("name")
    p.add_argument("from_dll")
    p.add_argument("to_dll")
    p.add_argument("from_pos")
    p.add_argument("to_pos")

    p = sub.add_parser("scan", help="Import every mod found in a folder")
    p.add_argument("directory")

    sub.add_parser("reload", help="Reload and repair the configuration file")

    p = sub.add_parser("delay", help="Set the loader delay in milliseconds")
    p.add_argument("value")

    p = sub.add_parser("loader", help="Disable or enable mod loading")
    p.add_argument("state", type=_on_off)

    p = sub.add_parser("terminal", help="Show or hide the loader terminal")
    p.add_argument("state", type=_on_off)

    sub.add_parser("locate", help="Find the game folder in the Steam libraries")
    return ap


def format_mod(entry: ModEntry) -> str:
    mark = "x" if entry.enabled else " "
    line = f"[{mark}] {entry.display_name}"
    if entry.order.is_set:
        line += f"  #{entry.order.position} {entry.order_file}"
    line += f"  ({len(entry.files)} file(s), {len(entry.dll_files)} dll(s))"
    return line


def _print_notice(message: str) -> None:
    print(message, file=sys.stderr)


def _run_command(manager: ModManager, args: argparse.Namespace) -> int:
    command = args.command

    if command == "list":
        mods = manager.mods()
        if not mods:
            print("No mods registered.")
        for entry in mods:
            print(format_mod(entry))
        return 0
    if command == "settings":
        settings = manager.settings()
        for key, value in settings.to_section().items():
            print(f"{key} = {value}")
        return 0
    if command == "register":
        entry = manager.register_mod(args.name, args.files).result()
        print(f"Registered '{entry.name}' ({len(entry.files)} file(s)).")
        return 0
    if command == "add-files":
        added = manager.add_files(args.name, args.files).result()
        print(f"Added {added} file(s) to '{args.name}'.")
        return 0
    if command == "remove":
        manager.remove_mod(args.name).result()
        print(f"Removed '{args.name}'.")
        return 0
    if command == "toggle":
        enabled = manager.toggle_mod(args.name, args.state).result()
        print(f"'{args.name}' is {'enabled' if enabled else 'disabled'}.")
        return 0
    if command in ("order", "unorder", "move"):
        if command == "order":
            future = manager.set_order(args.name, args.dll, True, args.position, args.dup)
        elif command == "unorder":
            entry = manager.get(args.name)
            dll = entry.order_file if entry is not None else ""
            future = manager.set_order(args.name, dll or "", False)
        else:
            future = manager.move_order(args.name, args.from_dll, args.to_dll, args.from_pos, args.to_pos)
        result = future.result()
        if isinstance(result, Err):
            print(f"Load order not changed: {result.reason}", file=sys.stderr)
            return 1
        for name, dll, position in manager.global_order():
            print(f"{position:>4} {name} ({dll})")
        return 0
    if command == "scan":
        added = manager.scan_directory(args.directory).result()
        print(f"Imported {added} mod(s).")
        return 0
    if command == "reload":
        report = manager.force_reload().result()
        state = "repaired" if report.repaired else "clean"
        print(f"{report.mods} mod(s), {report.ordered} ordered, {state}.")
        return 0
    if command == "delay":
        print(f"load_delay = {manager.set_load_delay(args.value).result()}")
        return 0
    if command == "loader":
        disabled = manager.toggle_loader_disabled(not args.state).result()
        print(f"Mod loading is {'disabled' if disabled else 'enabled'}.")
        return 0
    if command == "terminal":
        visible = manager.toggle_show_terminal(args.state).result()
        print(f"Terminal is {'shown' if visible else 'hidden'}.")
        return 0
    if command == "locate":
        result = manager.locate_game().result()
        if result.kind is PathKind.NONE:
            print("Game not found.", file=sys.stderr)
            return 1
        print(f"{result.kind.name}: {result.path}")
        return 0 if result.found else 1
    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    with ModManager(args.config, notify=_print_notice) as manager:
        try:
            manager.ready.result()
            if args.log_file or manager.settings().save_log:
                log_file = args.log_file or os.path.splitext(args.config)[0] + ".log"
                logging.setup_file_logging(log_file)
            return _run_command(manager, args)
        except ValidationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        except OSError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        finally:
            logging.stop_file_logging()


if __name__ == "__main__":
    sys.exit(main())
