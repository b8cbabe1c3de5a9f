from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from easyworkout.editor.tree import Week

HEX_COLOR_PATTERN = r"^#?[0-9a-fA-F]{6}$"


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# --- Workouts ---
class WorkoutBase(ApiModel):
    client_name: str = Field(min_length=1)
    coach_name: Optional[str] = None
    workout_type: Optional[str] = None
    description: Optional[str] = None
    client_comment: Optional[str] = None
    weeks: List[Week] = Field(default_factory=list)

class WorkoutCreate(WorkoutBase):
    id: Optional[str] = None

class WorkoutUpdate(ApiModel):
    client_name: Optional[str] = Field(default=None, min_length=1)
    coach_name: Optional[str] = None
    workout_type: Optional[str] = None
    description: Optional[str] = None
    client_comment: Optional[str] = None
    weeks: Optional[List[Week]] = None

class WorkoutResponse(WorkoutBase):
    id: str
    coach_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# --- Clients ---
class ClientBase(ApiModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("email", "phone", mode="before")
    @classmethod
    def empty_contact_is_missing(cls, value):
        return _blank_to_none(value)

class ClientCreate(ClientBase):
    id: Optional[str] = None

class ClientUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("email", "phone", mode="before")
    @classmethod
    def empty_contact_is_missing(cls, value):
        return _blank_to_none(value)

class ClientResponse(ClientBase):
    id: str
    created_at: datetime


# --- Coach profile ---
class CoachProfileBase(ApiModel):
    name: Optional[str] = None
    logo: Optional[str] = None
    pdf_text_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    pdf_line_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    email: Optional[str] = None
    phone: Optional[str] = None
    instagram: Optional[str] = None
    website: Optional[str] = None
    show_watermark: bool = True

    @field_validator("pdf_text_color", "pdf_line_color", "logo", mode="before")
    @classmethod
    def blank_is_missing(cls, value):
        return _blank_to_none(value)

class CoachProfileCreate(CoachProfileBase):
    id: Optional[str] = None

class CoachProfileUpdate(ApiModel):
    name: Optional[str] = None
    logo: Optional[str] = None
    pdf_text_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    pdf_line_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    email: Optional[str] = None
    phone: Optional[str] = None
    instagram: Optional[str] = None
    website: Optional[str] = None
    show_watermark: Optional[bool] = None

class CoachProfileResponse(CoachProfileBase):
    id: str
    is_default: bool = False


# --- Exercise glossary ---
class GlossaryEntryBase(ApiModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)

class GlossaryEntryCreate(GlossaryEntryBase):
    pass

class GlossaryEntryUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    images: Optional[List[str]] = None

class GlossaryEntryResponse(GlossaryEntryBase):
    id: str
    created_at: datetime
    updated_at: datetime
