import random

import pytest

from modorder.mods_model import ModEntry, ModsModel, ValidationError
from modorder.order_utils import Err, Ok, OrderAssigner, OrderConflict, parse_position


def make(*names):
    model = ModsModel([ModEntry.new(name, [f"{name}.dll"]) for name in names])
    return model, OrderAssigner(model)


def positions(model):
    return {e.name: e.order.position for e in model if e.order.is_set}


def order(assigner, model, *names):
    for name in names:
        entry = model.get(name)
        assert assigner.set_ordered(entry, entry.dll_files[0], 99) == Ok(1)


def test_first_order_gets_position_one():
    model, assigner = make("A")
    result = assigner.set_ordered(model.get("A"), "A.dll", 7)
    assert result == Ok(1)
    assert result.value == 1
    assert positions(model) == {"A": 1}
    assert assigner.max_position == 1
    assert model.get("A").order_file == "A.dll"


def test_out_of_range_desired_appends():
    model, assigner = make("A", "B", "C")
    order(assigner, model, "A")
    assigner.set_ordered(model.get("B"), "B.dll", 10)
    assigner.set_ordered(model.get("C"), "C.dll", 0)
    assert positions(model) == {"A": 1, "B": 2, "C": 3}


def test_insert_cascades_the_run_above():
    model, assigner = make("A", "B", "C", "D")
    order(assigner, model, "A", "B", "C")
    assigner.set_ordered(model.get("D"), "D.dll", 2)
    assert positions(model) == {"A": 1, "D": 2, "B": 3, "C": 4}
    assert assigner.max_position == 4
    assert assigner.validate() == []


def test_insert_stops_at_gap():
    model, assigner = make("A", "B", "C", "D")
    order(assigner, model, "A", "B", "C")
    assert assigner.clear_ordered(model.get("B")) == Ok(-1)
    assert positions(model) == {"A": 1, "C": 3}

    assigner.set_ordered(model.get("D"), "D.dll", 1)
    assert positions(model) == {"D": 1, "A": 2, "C": 3}


def test_duplicate_high_order_shares_top():
    model, assigner = make("A", "B", "C", "D")
    order(assigner, model, "A", "B")
    assert assigner.set_ordered(model.get("C"), "C.dll", 5, duplicate_high_order=True) == Ok(1)
    assert positions(model) == {"A": 1, "B": 2, "C": 2}
    assert assigner.duplicate_high_order
    assert assigner.max_position == 3
    assert assigner.validate() == []

    # appending above a tie gives the tied mods their own rank, first one stays
    assigner.set_ordered(model.get("D"), "D.dll", 9)
    assert positions(model) == {"A": 1, "B": 2, "C": 3, "D": 4}
    assert not assigner.duplicate_high_order


def test_global_order_lists_ties_in_insertion_order():
    model, assigner = make("A", "B", "C")
    order(assigner, model, "A", "C")
    assigner.set_ordered(model.get("B"), "B.dll", 2, duplicate_high_order=True)
    assert assigner.global_order() == [("A", "A.dll", 1), ("C", "C.dll", 2), ("B", "B.dll", 2)]


def test_set_ordered_failures_use_out_of_band_value():
    model, assigner = make("A")
    readme = ModEntry.new("Readme", ["readme.txt"])
    model.add(readme)

    result = assigner.set_ordered(readme, "readme.txt", 1)
    assert isinstance(result, Err)
    assert result.conflict is OrderConflict.SET_FAILED
    assert result.value == -42069

    assert isinstance(assigner.set_ordered(model.get("A"), "other.dll", 1), Err)
    order(assigner, model, "A")
    assert assigner.set_ordered(model.get("A"), "A.dll", 1).conflict is OrderConflict.SET_FAILED
    assert assigner.max_position == 1


def test_clear_unordered_is_not_confused_with_removal():
    model, assigner = make("A")
    removal = Ok(-1)
    failure = assigner.clear_ordered(model.get("A"))
    assert isinstance(failure, Err)
    assert failure.value != removal.value


def test_clear_keeps_single_dll_selection():
    model, assigner = make("A")
    order(assigner, model, "A")
    assigner.clear_ordered(model.get("A"))
    entry = model.get("A")
    assert not entry.order.is_set
    assert entry.order.selected_index == 0
    assert entry.order.position == 0
    assert assigner.max_position == 0


def test_move_down():
    model, assigner = make("A", "B", "C")
    order(assigner, model, "A", "B", "C")
    assert assigner.move(model.get("A"), "A.dll", "A.dll", 1, 3) == Ok(0)
    assert positions(model) == {"B": 1, "C": 2, "A": 3}
    assert assigner.validate() == []


def test_move_up():
    model, assigner = make("A", "B", "C")
    order(assigner, model, "A", "B", "C")
    assert assigner.move(model.get("C"), "C.dll", "C.dll", 3, 1) == Ok(0)
    assert positions(model) == {"C": 1, "A": 2, "B": 3}


def test_move_down_into_a_tie_splits_it():
    model, assigner = make("A", "B", "C")
    order(assigner, model, "A", "B")
    assigner.set_ordered(model.get("C"), "C.dll", 2, duplicate_high_order=True)
    assigner.move(model.get("A"), "A.dll", "A.dll", 1, 3)
    assert positions(model) == {"B": 1, "C": 2, "A": 3}
    assert assigner.validate() == []


def test_move_same_place_is_noop():
    model, assigner = make("A", "B")
    order(assigner, model, "A", "B")
    assert assigner.move(model.get("B"), "B.dll", "B.dll", 2, 2) == Ok(0)
    assert positions(model) == {"A": 1, "B": 2}


def test_move_changes_selected_dll():
    model = ModsModel([ModEntry.new("Multi", ["a.dll", "b.dll"])])
    assigner = OrderAssigner(model)
    entry = model.get("Multi")
    assert entry.order.selected_index == -1

    assigner.set_ordered(entry, "a.dll", 1)
    assert assigner.move(entry, "a.dll", "b.dll", 1, 1) == Ok(0)
    assert entry.order_file == "b.dll"
    assert entry.order.position == 1


def test_move_unordered_only_repoints_selection():
    model = ModsModel([ModEntry.new("Multi", ["a.dll", "b.dll"])])
    assigner = OrderAssigner(model)
    entry = model.get("Multi")

    assert assigner.move(entry, "", "b.dll", 0, 0) == Ok(0)
    assert entry.order_file == "b.dll"
    assert not entry.order.is_set
    assert assigner.max_position == 0

    assert assigner.move(entry, "b.dll", "b.dll", 0, 1) == Ok(1)
    assert entry.order.is_set
    assert assigner.max_position == 1


@pytest.mark.parametrize(
    "args",
    [
        ("A.dll", "missing.dll", 1, 2),  # not a dll of the mod
        ("A.dll", "A.dll", 2, 1),  # stale position
        ("B.dll", "A.dll", 1, 2),  # stale file
        ("A.dll", "A.dll", 1, 4),  # beyond max_position
        ("A.dll", "A.dll", 1, 0),
    ],
)
def test_move_failures(args):
    model, assigner = make("A", "B", "C")
    order(assigner, model, "A", "B", "C")
    result = assigner.move(model.get("A"), *args)
    assert isinstance(result, Err)
    assert result.conflict is OrderConflict.MOVE_FAILED
    assert result.value == -42070
    assert positions(model) == {"A": 1, "B": 2, "C": 3}


def test_random_edits_keep_positions_distinct():
    rng = random.Random(1234)
    names = [f"M{i}" for i in range(12)]
    model, assigner = make(*names)

    for _ in range(400):
        entry = model.get(rng.choice(names))
        if not entry.order.is_set:
            desired = rng.randint(0, assigner.max_position + 2)
            result = assigner.set_ordered(entry, entry.dll_files[0], desired, rng.random() < 0.2)
            assert result == Ok(1)
        elif rng.random() < 0.3:
            assert assigner.clear_ordered(entry) == Ok(-1)
        else:
            target = rng.randint(1, assigner.max_position)
            result = assigner.move(entry, entry.order_file, entry.order_file, entry.order.position, target)
            assert result == Ok(0)

        assert assigner.validate() == []
        assert assigner.max_position == sum(1 for e in model if e.order.is_set)
        top = assigner.top_position
        taken = [e.order.position for e in model if e.order.is_set and e.order.position != top]
        assert len(taken) == len(set(taken))


@pytest.mark.parametrize("value, expected", [("5", 5), (" 7 ", 7), (3, 3), ("9999999999", 2147483647), (0, 0)])
def test_parse_position(value, expected):
    assert parse_position(value) == expected


@pytest.mark.parametrize("value", [-1, "-1", "abc", "", True, 2.5, None])
def test_parse_position_rejects(value):
    with pytest.raises(ValidationError):
        parse_position(value)
