from boardsync.domains.boards.ordering import clamp_index, insertion_index, place, positions


def test_move_down_within_same_list_lands_on_final_index():
    assert place(["A", "B", "C", "D"], "A", 2) == ["B", "C", "A", "D"]


def test_drop_slot_is_decremented_when_moving_down_in_same_list():
    ids = ["A", "B", "C", "D"]
    # A брошена перед D: слот 3 до удаления A
    index = insertion_index(0, 3, same_container=True)
    assert index == 2
    assert place(ids, "A", index) == ["B", "C", "A", "D"]


def test_drop_slot_not_adjusted_when_moving_up():
    ids = ["A", "B", "C", "D"]
    index = insertion_index(3, 1, same_container=True)
    assert index == 1
    assert place(ids, "D", index) == ["A", "D", "B", "C"]


def test_drop_slot_not_adjusted_across_lists():
    assert insertion_index(0, 3, same_container=False) == 3
    assert insertion_index(None, 2, same_container=True) == 2


def test_drop_at_end_of_own_list():
    ids = ["A", "B", "C"]
    index = insertion_index(0, len(ids), same_container=True)
    assert place(ids, "A", index) == ["B", "C", "A"]


def test_insert_new_item_clamps_index():
    assert place(["A", "B"], "X", None) == ["A", "B", "X"]
    assert place(["A", "B"], "X", 99) == ["A", "B", "X"]
    assert place(["A", "B"], "X", -5) == ["X", "A", "B"]


def test_clamp_index():
    assert clamp_index(None, 4) == 4
    assert clamp_index(2, 4) == 2
    assert clamp_index(7, 4) == 4
    assert clamp_index(-1, 4) == 0


def test_place_does_not_mutate_input():
    ids = ["A", "B", "C"]
    place(ids, "C", 0)
    assert ids == ["A", "B", "C"]


def test_positions_are_dense():
    assert positions(["B", "C", "A"]) == {"B": 0, "C": 1, "A": 2}
