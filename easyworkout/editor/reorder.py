"""Drag-and-drop moves over the week → day → exercise tree.

A move names its source and destination containers by key:

* ``weeks``: the program's single week sequence (level ``week``)
* ``days::<weekId>``: the days of one week (level ``day``)
* ``exercises::<weekId>::<dayId>``: the exercises of one day (level ``exercise``)

``apply_move`` never raises. Anything it cannot resolve (cancelled drag,
malformed key, stale identifier, index out of range) leaves the tree as it
was and the caller gets back the very list it passed in.
"""
import logging
from typing import List, Literal, Sequence

from easyworkout.editor.tree import Day, Exercise, TreeModel, Week

logger = logging.getLogger(__name__)

MoveLevel = Literal["week", "day", "exercise"]
ContainerPath = tuple[str, ...]

WEEKS_CONTAINER = "weeks"
KEY_SEPARATOR = "::"


class Move(TreeModel):
    level: str
    source_container: str
    source_index: int
    destination_container: str | None = None
    destination_index: int | None = None


def days_container(week_id: str) -> str:
    return f"days{KEY_SEPARATOR}{week_id}"


def exercises_container(week_id: str, day_id: str) -> str:
    return f"exercises{KEY_SEPARATOR}{week_id}{KEY_SEPARATOR}{day_id}"


def parse_container(key: str, level: str) -> ContainerPath | None:
    """Turn a container key into the id path of its owner, or None if it does not fit the level."""
    if level == "week":
        return () if key == WEEKS_CONTAINER else None
    parts = key.split(KEY_SEPARATOR)
    if level == "day" and len(parts) == 2 and parts[0] == "days" and parts[1]:
        return (parts[1],)
    if level == "exercise" and len(parts) == 3 and parts[0] == "exercises" and parts[1] and parts[2]:
        return (parts[1], parts[2])
    return None


def _index_of(items: Sequence[Week | Day], item_id: str) -> int:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    return -1


def _children(weeks: List[Week], path: ContainerPath) -> list | None:
    if not path:
        return weeks
    week_index = _index_of(weeks, path[0])
    if week_index == -1:
        return None
    week = weeks[week_index]
    if len(path) == 1:
        return week.days
    day_index = _index_of(week.days, path[1])
    if day_index == -1:
        return None
    return week.days[day_index].exercises


def _with_children(weeks: List[Week], path: ContainerPath, children: list) -> List[Week]:
    # Copy-on-write from the container up to the root; siblings are reused as-is.
    if not path:
        return children
    week_index = _index_of(weeks, path[0])
    week = weeks[week_index]
    if len(path) == 1:
        rebuilt = week.model_copy(update={"days": children})
    else:
        days = list(week.days)
        day_index = _index_of(days, path[1])
        days[day_index] = days[day_index].model_copy(update={"exercises": children})
        rebuilt = week.model_copy(update={"days": days})
    updated = list(weeks)
    updated[week_index] = rebuilt
    return updated


def apply_move(weeks: List[Week], move: Move | None) -> List[Week]:
    if move is None or move.destination_container is None or move.destination_index is None:
        return weeks
    if (
        move.source_container == move.destination_container
        and move.source_index == move.destination_index
    ):
        return weeks

    source_path = parse_container(move.source_container, move.level)
    destination_path = parse_container(move.destination_container, move.level)
    if source_path is None or destination_path is None:
        logger.debug("Ignoring %s move with unusable containers %r -> %r",
                     move.level, move.source_container, move.destination_container)
        return weeks

    source_items = _children(weeks, source_path)
    if source_items is None or not 0 <= move.source_index < len(source_items):
        logger.debug("Ignoring %s move from stale source %r[%s]",
                     move.level, move.source_container, move.source_index)
        return weeks

    if source_path == destination_path:
        items = list(source_items)
        moved = items.pop(move.source_index)
        if not 0 <= move.destination_index <= len(items):
            return weeks
        items.insert(move.destination_index, moved)
        return _with_children(weeks, source_path, items)

    destination_items = _children(weeks, destination_path)
    if destination_items is None or not 0 <= move.destination_index <= len(destination_items):
        logger.debug("Ignoring %s move to stale destination %r[%s]",
                     move.level, move.destination_container, move.destination_index)
        return weeks

    remaining = list(source_items)
    moved: Week | Day | Exercise = remaining.pop(move.source_index)
    shifted = _with_children(weeks, source_path, remaining)
    target = list(_children(shifted, destination_path) or [])
    target.insert(move.destination_index, moved)
    return _with_children(shifted, destination_path, target)
