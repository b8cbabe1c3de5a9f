from sqlalchemy import String, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from easyworkout.database import Base
from easyworkout.editor.tree import new_id

class CoachProfile(Base):
    __tablename__ = "coach_profiles"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    logo: Mapped[str | None] = mapped_column(Text, nullable=True) # data URL
    pdf_text_color: Mapped[str | None] = mapped_column(String, nullable=True)
    pdf_line_color: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    instagram: Mapped[str | None] = mapped_column(String, nullable=True)
    website: Mapped[str | None] = mapped_column(String, nullable=True)
    show_watermark: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
