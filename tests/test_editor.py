from types import SimpleNamespace

import pytest

from easyworkout.editor import (
    CollapseState,
    Day,
    Exercise,
    Move,
    ProgramEditor,
    Week,
    days_container,
)


class Recorder:
    def __init__(self):
        self.calls: list[list[Week]] = []

    def __call__(self, weeks):
        self.calls.append(weeks)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


def _seeded(recorder: Recorder) -> ProgramEditor:
    weeks = [Week(id="w1", name="Week 1", days=[
        Day(id="d1", exercises=[Exercise(id="e1", name="Squat")]),
        Day(id="d2"),
    ])]
    return ProgramEditor(weeks, on_change=recorder)


def test_add_week_numbers_sequentially(recorder):
    editor = ProgramEditor([], on_change=recorder)

    first = editor.add_week()
    second = editor.add_week()

    assert (first.name, first.number) == ("Week 1", 1)
    assert (second.name, second.number) == ("Week 2", 2)
    assert len(recorder.calls) == 2
    assert recorder.calls[-1] is editor.weeks


def test_every_mutation_notifies_once_with_new_list(recorder):
    editor = _seeded(recorder)
    before = editor.weeks

    day = editor.add_day("w1")

    assert day is not None and day.name == "New Day"
    assert len(recorder.calls) == 1
    assert recorder.calls[0] is not before
    assert [d.id for d in before[0].days] == ["d1", "d2"]


def test_unknown_ids_change_nothing(recorder):
    editor = _seeded(recorder)
    weeks = editor.weeks

    assert editor.add_day("nope") is None
    assert editor.update_week("nope", name="x") is False
    assert editor.remove_week("nope") is False
    assert editor.update_day("w1", "nope", name="x") is False
    assert editor.remove_day("w1", "nope") is False
    assert editor.add_exercise("w1", "nope") is None
    assert editor.update_exercise("w1", "d1", "nope", reps="5") is False
    assert editor.remove_exercise("w1", "d2", "e1") is False
    assert editor.weeks is weeks
    assert recorder.calls == []


def test_add_exercise_defaults(recorder):
    editor = _seeded(recorder)

    exercise = editor.add_exercise("w1", "d2")

    assert (exercise.sets, exercise.reps, exercise.rest) == ("3", "10", "60")
    assert editor.weeks[0].days[1].exercises == [exercise]


def test_glossary_exercise_keeps_snapshot(recorder):
    editor = _seeded(recorder)
    entry = SimpleNamespace(id="g1", name="Deadlift", description="Hinge at the hips", images=["img-a"])

    exercise = editor.add_glossary_exercise("w1", "d1", entry)
    entry.description = "changed later"
    entry.images.append("img-b")

    assert exercise.name == "Deadlift"
    assert exercise.glossary_id == "g1"
    assert exercise.glossary_content.description == "Hinge at the hips"
    assert exercise.glossary_content.images == ["img-a"]


def test_update_exercise_replaces_fields(recorder):
    editor = _seeded(recorder)

    assert editor.update_exercise("w1", "d1", "e1", reps="8-12", notes="slow eccentric")

    exercise = editor.weeks[0].days[0].exercises[0]
    assert (exercise.reps, exercise.notes, exercise.name) == ("8-12", "slow eccentric", "Squat")


def test_update_rejects_unknown_and_structural_fields(recorder):
    editor = _seeded(recorder)

    with pytest.raises(ValueError):
        editor.update_week("w1", colour="red")
    with pytest.raises(ValueError):
        editor.update_day("w1", "d1", exercises=[])
    with pytest.raises(ValueError):
        editor.update_exercise("w1", "d1", "e1", id="other")
    assert recorder.calls == []


def test_remove_prunes_collapse_state(recorder):
    collapsed = CollapseState()
    editor = ProgramEditor(_seeded(recorder).weeks, on_change=recorder, collapsed=collapsed)
    collapsed.toggle_week("w1")
    collapsed.toggle_day("d1")
    collapsed.toggle_day("d2")

    assert editor.remove_day("w1", "d1")
    assert collapsed.days == {"d2": True}

    assert editor.remove_week("w1")
    assert collapsed.weeks == {} and collapsed.days == {}


def test_collapse_state_follows_ids_across_moves(recorder):
    editor = _seeded(recorder)
    editor.collapsed.toggle_day("d2")

    moved = editor.move(Move(level="day", source_container=days_container("w1"), source_index=1,
                             destination_container=days_container("w1"), destination_index=0))

    assert moved
    assert editor.weeks[0].days[0].id == "d2"
    assert editor.collapsed.is_day_collapsed("d2")
    assert not editor.collapsed.is_day_collapsed("d1")


def test_cancelled_move_does_not_notify(recorder):
    editor = _seeded(recorder)

    assert editor.move(None) is False
    assert editor.move(Move(level="day", source_container=days_container("w1"), source_index=0)) is False
    assert recorder.calls == []
