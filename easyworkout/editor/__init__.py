from easyworkout.editor.editor import CollapseState, ProgramEditor
from easyworkout.editor.reorder import (
    WEEKS_CONTAINER,
    Move,
    apply_move,
    days_container,
    exercises_container,
)
from easyworkout.editor.tree import Day, Exercise, GlossarySnapshot, Week, dump_weeks, load_weeks, new_id


__all__ = [
    "CollapseState",
    "ProgramEditor",
    "WEEKS_CONTAINER",
    "Move",
    "apply_move",
    "days_container",
    "exercises_container",
    "Day",
    "Exercise",
    "GlossarySnapshot",
    "Week",
    "dump_weeks",
    "load_weeks",
    "new_id",
]
