import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Protocol

from easyworkout.editor.reorder import Move, apply_move
from easyworkout.editor.tree import Day, Exercise, GlossarySnapshot, Week

logger = logging.getLogger(__name__)

WeeksListener = Callable[[List[Week]], None]

_STRUCTURAL_FIELDS = {"id", "days", "exercises"}


class GlossaryEntryLike(Protocol):
    id: str
    name: str
    description: str | None
    images: list[str] | None


@dataclass
class CollapseState:
    """Collapsed/expanded flags keyed by entity id so they follow items across moves."""

    weeks: dict[str, bool] = field(default_factory=dict)
    days: dict[str, bool] = field(default_factory=dict)

    def toggle_week(self, week_id: str) -> bool:
        self.weeks[week_id] = not self.weeks.get(week_id, False)
        return self.weeks[week_id]

    def toggle_day(self, day_id: str) -> bool:
        self.days[day_id] = not self.days.get(day_id, False)
        return self.days[day_id]

    def is_week_collapsed(self, week_id: str) -> bool:
        return self.weeks.get(week_id, False)

    def is_day_collapsed(self, day_id: str) -> bool:
        return self.days.get(day_id, False)

    def prune(self, weeks: List[Week]) -> None:
        week_ids = {week.id for week in weeks}
        day_ids = {day.id for week in weeks for day in week.days}
        self.weeks = {key: value for key, value in self.weeks.items() if key in week_ids}
        self.days = {key: value for key, value in self.days.items() if key in day_ids}


def _checked_fields(model: type, fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(model.model_fields)
    blocked = set(fields) & _STRUCTURAL_FIELDS
    if unknown or blocked:
        raise ValueError(f"Cannot update {model.__name__} fields: {sorted(unknown | blocked)}")
    return fields


class ProgramEditor:
    """Holds a program's week list and replaces it wholesale on every change.

    Each effective mutation builds a new list and hands it to ``on_change``
    exactly once; operations on unknown ids change nothing and notify nobody.
    """

    def __init__(self, weeks: List[Week], on_change: WeeksListener | None = None,
                 collapsed: CollapseState | None = None):
        self.weeks = list(weeks)
        self.on_change = on_change
        self.collapsed = collapsed or CollapseState()

    def _commit(self, weeks: List[Week]) -> bool:
        if weeks is self.weeks:
            return False
        self.weeks = weeks
        if self.on_change is not None:
            self.on_change(weeks)
        return True

    def _map_week(self, week_id: str, change: Callable[[Week], Week]) -> bool:
        if not any(week.id == week_id for week in self.weeks):
            logger.debug("Week %s not found; edit skipped", week_id)
            return False
        return self._commit([change(week) if week.id == week_id else week for week in self.weeks])

    def _map_day(self, week_id: str, day_id: str, change: Callable[[Day], Day]) -> bool:
        week = next((week for week in self.weeks if week.id == week_id), None)
        if week is None or not any(day.id == day_id for day in week.days):
            logger.debug("Day %s/%s not found; edit skipped", week_id, day_id)
            return False
        days = [change(day) if day.id == day_id else day for day in week.days]
        return self._map_week(week_id, lambda w: w.model_copy(update={"days": days}))

    # weeks

    def add_week(self) -> Week:
        number = len(self.weeks) + 1
        week = Week(name=f"Week {number}", number=number)
        self._commit([*self.weeks, week])
        return week

    def update_week(self, week_id: str, **fields: Any) -> bool:
        changes = _checked_fields(Week, fields)
        return self._map_week(week_id, lambda week: week.model_copy(update=changes))

    def remove_week(self, week_id: str) -> bool:
        remaining = [week for week in self.weeks if week.id != week_id]
        if len(remaining) == len(self.weeks):
            return False
        self._commit(remaining)
        self.collapsed.prune(remaining)
        return True

    # days

    def add_day(self, week_id: str) -> Day | None:
        day = Day()
        added = self._map_week(week_id, lambda week: week.model_copy(update={"days": [*week.days, day]}))
        return day if added else None

    def update_day(self, week_id: str, day_id: str, **fields: Any) -> bool:
        changes = _checked_fields(Day, fields)
        return self._map_day(week_id, day_id, lambda day: day.model_copy(update=changes))

    def remove_day(self, week_id: str, day_id: str) -> bool:
        week = next((week for week in self.weeks if week.id == week_id), None)
        if week is None or not any(day.id == day_id for day in week.days):
            return False
        days = [day for day in week.days if day.id != day_id]
        self._map_week(week_id, lambda w: w.model_copy(update={"days": days}))
        self.collapsed.prune(self.weeks)
        return True

    # exercises

    def _append_exercise(self, week_id: str, day_id: str, exercise: Exercise) -> Exercise | None:
        added = self._map_day(
            week_id, day_id, lambda day: day.model_copy(update={"exercises": [*day.exercises, exercise]})
        )
        return exercise if added else None

    def add_exercise(self, week_id: str, day_id: str) -> Exercise | None:
        return self._append_exercise(week_id, day_id, Exercise())

    def add_glossary_exercise(self, week_id: str, day_id: str, entry: GlossaryEntryLike) -> Exercise | None:
        exercise = Exercise(
            name=entry.name,
            glossary_id=entry.id,
            glossary_content=GlossarySnapshot(
                description=entry.description or "",
                images=list(entry.images or []),
            ),
        )
        return self._append_exercise(week_id, day_id, exercise)

    def update_exercise(self, week_id: str, day_id: str, exercise_id: str, **fields: Any) -> bool:
        changes = _checked_fields(Exercise, fields)

        def change(day: Day) -> Day:
            exercises = [
                exercise.model_copy(update=changes) if exercise.id == exercise_id else exercise
                for exercise in day.exercises
            ]
            return day.model_copy(update={"exercises": exercises})

        if not self.has_exercise(week_id, day_id, exercise_id):
            return False
        return self._map_day(week_id, day_id, change)

    def remove_exercise(self, week_id: str, day_id: str, exercise_id: str) -> bool:
        if not self.has_exercise(week_id, day_id, exercise_id):
            return False
        return self._map_day(
            week_id,
            day_id,
            lambda day: day.model_copy(
                update={"exercises": [e for e in day.exercises if e.id != exercise_id]}
            ),
        )

    def has_exercise(self, week_id: str, day_id: str, exercise_id: str) -> bool:
        for week in self.weeks:
            if week.id != week_id:
                continue
            for day in week.days:
                if day.id == day_id:
                    return any(exercise.id == exercise_id for exercise in day.exercises)
        return False

    # drag and drop

    def move(self, move: Move | None) -> bool:
        return self._commit(apply_move(self.weeks, move))
