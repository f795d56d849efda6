from enum import Enum
from typing import Dict, List, NamedTuple, Tuple, Union

import modorder.ui_logger as logging
from modorder.config_utils import MAX_DELAY, clamp_int
from modorder.mods_model import ModEntry, ModsModel, OrderRecord, ValidationError


class OrderConflict(Enum):
    """Why an order operation was refused. Values are out of band for any delta."""

    SET_FAILED = -42069
    MOVE_FAILED = -42070


class Ok(NamedTuple):
    delta: int

    @property
    def value(self) -> int:
        return self.delta


class Err(NamedTuple):
    conflict: OrderConflict
    reason: str

    @property
    def value(self) -> int:
        return self.conflict.value


OrderResult = Union[Ok, Err]


def parse_position(value) -> int:
    """Non-negative integer input, clamped to the loader's integer ceiling."""
    if isinstance(value, bool):
        raise ValidationError(f"Position must be a number, got {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value.lstrip("+").isdigit():
            raise ValidationError(f"Position must be a non-negative number, got {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"Position must be a number, got {value!r}")
    if value < 0:
        raise ValidationError(f"Position must be a non-negative number, got {value}")
    return clamp_int(value, 0, MAX_DELAY)


class OrderAssigner:
    """
    Keeps the load order of every ordered mod collision-free.

    Edits only touch the positions they displace: inserting cascades the
    occupied run above the insert point, removing leaves a gap that the next
    reload closes. `max_position` counts ordered mods and bounds user input.
    """

    def __init__(self, model: ModsModel):
        self.model = model
        self.max_position = 0
        # position -> mod names, insertion order breaks ties
        self._positions: Dict[int, List[str]] = {}
        self._top = 0

    @property
    def top_position(self) -> int:
        return self._top

    @property
    def duplicate_high_order(self) -> bool:
        return len(self._positions.get(self._top, ())) > 1

    def rebuild(self) -> None:
        self._positions = {}
        self.max_position = 0
        self._top = 0
        for entry in self.model:
            if entry.order.is_set:
                self._place(entry.name, entry.order.position)
                self.max_position += 1

    def global_order(self) -> List[Tuple[str, str, int]]:
        result = []
        for position in sorted(self._positions):
            for name in self._positions[position]:
                entry = self.model.get(name)
                if entry is not None:
                    result.append((name, entry.order_file or "", position))
        return result

    def validate(self) -> List[str]:
        """Returns a description of every broken invariant, empty when consistent."""
        problems: List[str] = []
        ordered = [e for e in self.model if e.order.is_set]
        if len(ordered) != self.max_position:
            problems.append(f"max_position {self.max_position} != {len(ordered)} ordered mods")
        for entry in ordered:
            if entry.name not in self._positions.get(entry.order.position, ()):
                problems.append(f"'{entry.name}' not indexed at {entry.order.position}")
            if entry.order_file is None:
                problems.append(f"'{entry.name}' has no selected dll")
            if entry.order.position < 1:
                problems.append(f"'{entry.name}' has position {entry.order.position}")
        indexed = sum(len(names) for names in self._positions.values())
        if indexed != len(ordered):
            problems.append(f"{indexed} indexed entries for {len(ordered)} ordered mods")
        for position, names in self._positions.items():
            if len(names) > 1 and position != self._top:
                problems.append(f"position {position} shared by {', '.join(names)}")
        return problems

    def set_ordered(
        self,
        mod: ModEntry,
        dll_file: str,
        desired_position: int,
        duplicate_high_order: bool = False,
    ) -> OrderResult:
        if not mod.dll_files:
            return Err(OrderConflict.SET_FAILED, f"'{mod.name}' has no dll files")
        if dll_file not in mod.dll_files:
            return Err(OrderConflict.SET_FAILED, f"'{dll_file}' is not a dll of '{mod.name}'")
        if mod.order.is_set:
            return Err(OrderConflict.SET_FAILED, f"'{mod.name}' already has a load order")

        desired = clamp_int(desired_position)
        if self.max_position == 0:
            position = 1
        elif desired >= self.max_position and duplicate_high_order:
            position = self._top
        elif 1 <= desired < self.max_position:
            if desired > self._top:
                self._split_top_tie()
            self._cascade_up(desired)
            position = desired
        else:
            # a tie only lives at the top
            self._split_top_tie()
            position = max(self.max_position, self._top) + 1

        mod.order = OrderRecord(True, mod.dll_files.index(dll_file), position)
        self._place(mod.name, position)
        self.max_position += 1
        logging.debug(f"Load order set to {position}, for {mod.name}")
        return Ok(1)

    def clear_ordered(self, mod: ModEntry) -> OrderResult:
        if not mod.order.is_set:
            return Err(OrderConflict.SET_FAILED, f"'{mod.name}' has no load order to remove")
        if not self._detach(mod.name, mod.order.position):
            return Err(OrderConflict.SET_FAILED, f"'{mod.name}' missing from position {mod.order.position}")

        selected = mod.order.selected_index if len(mod.dll_files) == 1 else -1
        mod.order = OrderRecord(False, selected, 0)
        self.max_position -= 1
        logging.debug(f"Load order removed for {mod.name}")
        return Ok(-1)

    def move(
        self,
        mod: ModEntry,
        old_dll_file: str,
        new_dll_file: str,
        old_position: int,
        new_position: int,
    ) -> OrderResult:
        if new_dll_file not in mod.dll_files:
            return Err(OrderConflict.MOVE_FAILED, f"'{new_dll_file}' is not a dll of '{mod.name}'")

        if not mod.order.is_set:
            if old_position != 0:
                return Err(OrderConflict.MOVE_FAILED, f"'{mod.name}' has no load order to move")
            if new_position == 0:
                mod.order.selected_index = mod.dll_files.index(new_dll_file)
                return Ok(0)
            result = self.set_ordered(mod, new_dll_file, new_position)
            if isinstance(result, Err):
                return Err(OrderConflict.MOVE_FAILED, result.reason)
            return result

        if mod.order_file != old_dll_file or mod.order.position != old_position:
            return Err(
                OrderConflict.MOVE_FAILED,
                f"'{mod.name}' is ordered as {mod.order_file}@{mod.order.position}, "
                f"caller expected {old_dll_file}@{old_position}",
            )
        if new_dll_file == old_dll_file and new_position == old_position:
            return Ok(0)
        if not 1 <= new_position <= self.max_position:
            return Err(
                OrderConflict.MOVE_FAILED,
                f"position {new_position} is outside 1..{self.max_position}",
            )

        mod.order.selected_index = mod.dll_files.index(new_dll_file)
        if new_position != old_position:
            self._detach(mod.name, old_position)
            if self.duplicate_high_order and new_position >= self._top:
                self._split_top_tie()
            if new_position > old_position and old_position not in self._positions:
                self._shift_down(old_position + 1, new_position)
            else:
                self._cascade_up(new_position)
            self._place(mod.name, new_position)
            mod.order.position = new_position
        logging.debug(f"Load order set to {new_position}, for {mod.name} ({new_dll_file})")
        return Ok(0)

    def _place(self, name: str, position: int) -> None:
        self._positions.setdefault(position, []).append(name)
        if position > self._top:
            self._top = position

    def _detach(self, name: str, position: int) -> bool:
        names = self._positions.get(position)
        if not names or name not in names:
            return False
        names.remove(name)
        if not names:
            del self._positions[position]
            if position == self._top:
                self._top = max(self._positions, default=0)
        return True

    def _set_position(self, position: int, names: List[str]) -> None:
        self._positions[position] = names
        for name in names:
            entry = self.model.get(name)
            if entry is not None:
                entry.order.position = position

    def _cascade_up(self, start: int) -> None:
        """Shifts the occupied run beginning at `start` up by one."""
        end = start
        while end in self._positions:
            end += 1
        for position in range(end - 1, start - 1, -1):
            self._set_position(position + 1, self._positions.pop(position))
        if end > start and end > self._top:
            self._top = end

    def _shift_down(self, low: int, high: int) -> None:
        """Moves every occupied position in [low, high] down by one. low - 1 must be free."""
        for position in range(low, high + 1):
            if position in self._positions:
                self._set_position(position - 1, self._positions.pop(position))
        if low <= self._top <= high:
            self._top -= 1

    def _split_top_tie(self) -> None:
        """Gives every mod sharing the top position its own rank, first inserted stays."""
        names = self._positions.get(self._top, [])
        if len(names) < 2:
            return
        top = self._top
        self._positions[top] = names[:1]
        for offset, name in enumerate(names[1:], start=1):
            self._set_position(top + offset, [name])
        self._top = top + len(names) - 1
