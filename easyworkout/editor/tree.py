import uuid
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return uuid.uuid4().hex


class TreeModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GlossarySnapshot(TreeModel):
    """Glossary content copied when the exercise was picked; never refreshed."""

    description: str = ""
    images: List[str] = Field(default_factory=list)


class Exercise(TreeModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    sets: str = "3"
    reps: str = "10"
    rest: str = "60"
    notes: str = ""
    order: int = 0
    glossary_id: str | None = None
    glossary_content: GlossarySnapshot | None = None


class Day(TreeModel):
    id: str = Field(default_factory=new_id)
    name: str = "New Day"
    notes: str = ""
    exercises: List[Exercise] = Field(default_factory=list)


class Week(TreeModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    number: int = 1
    notes: str = ""
    days: List[Day] = Field(default_factory=list)


def dump_weeks(weeks: List[Week]) -> list[dict]:
    return [week.model_dump(by_alias=True) for week in weeks]


def load_weeks(raw: list | None) -> List[Week]:
    return [Week.model_validate(item) for item in raw or []]
