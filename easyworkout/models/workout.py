from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from easyworkout.database import Base
from easyworkout.editor.tree import new_id

class Workout(Base):
    __tablename__ = "workouts"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    coach_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True) # identity-provider user id
    client_name: Mapped[str] = mapped_column(String, index=True, nullable=False)
    coach_name: Mapped[str | None] = mapped_column(String, nullable=True)
    workout_type: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    weeks: Mapped[list] = mapped_column(JSON, nullable=False, default=list) # serialized Week tree, camelCase keys
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
