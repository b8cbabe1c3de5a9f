import base64
import binascii
import io
import logging
import re
import unicodedata
from typing import Iterable, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from easyworkout.core.exceptions import DocumentRenderError
from easyworkout.models import CoachProfile, GlossaryEntry
from easyworkout.schemas import WorkoutResponse

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 40
TOP = PAGE_HEIGHT - 50
BOTTOM = 60  # keep clear of the footer
DEFAULT_TEXT_COLOR = "#4F46E5"
DEFAULT_LINE_COLOR = "#000000"
WATERMARK = "Generated with EasyWorkout Planner"
GREY = colors.HexColor("#646464")

EXERCISE_COLUMNS = (("Exercise", 150), ("Sets", 45), ("Reps", 65), ("Rest", 55), ("Notes", 200))
IMAGE_SIZE = 110
_DATA_URL = re.compile(r"^data:[^;,]*(;base64)?,", re.IGNORECASE)


def hex_color(value: str | None, fallback: str) -> colors.Color:
    candidate = (value or fallback).strip()
    if not candidate.startswith("#"):
        candidate = f"#{candidate}"
    if not re.fullmatch(r"#[0-9a-fA-F]{6}", candidate):
        candidate = fallback
    return colors.HexColor(candidate)


def decode_image(data: str | None) -> ImageReader | None:
    """Decode an inline (data URL or bare base64) image; None when it cannot be read."""
    if not data:
        return None
    try:
        raw = base64.b64decode(_DATA_URL.sub("", data.strip()), validate=True)
        reader = ImageReader(io.BytesIO(raw))
        reader.getSize()
    except (binascii.Error, ValueError, OSError) as exc:
        logger.warning("Skipping unreadable embedded image: %s", exc)
        return None
    except Exception as exc:
        logger.warning("Skipping embedded image reportlab could not load: %s", exc)
        return None
    return reader


def contact_line(profile: CoachProfile | None) -> str:
    if profile is None:
        return ""
    parts: list[str] = []
    if profile.email:
        parts.append(f"Email: {profile.email}")
    if profile.phone:
        parts.append(f"Tel: {profile.phone}")
    if profile.instagram:
        handle = profile.instagram
        if not handle.startswith(("@", "http")):
            handle = f"@{handle}"
        parts.append(f"Instagram: {handle}")
    if profile.website:
        website = profile.website if profile.website.startswith("http") else f"https://{profile.website}"
        parts.append(f"Web: {website}")
    return " | ".join(parts)


def slugify(value: str) -> str:
    ascii_value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_value.lower()).strip("-")
    return slug or "program"


class _PdfWriter:
    def __init__(self, profile: CoachProfile | None):
        self.profile = profile
        self.text_color = hex_color(profile.pdf_text_color if profile else None, DEFAULT_TEXT_COLOR)
        self.line_color = hex_color(profile.pdf_line_color if profile else None, DEFAULT_LINE_COLOR)
        self.buffer = io.BytesIO()
        self.pdf = canvas.Canvas(self.buffer, pagesize=A4)
        self.y = TOP

    def _footer(self) -> None:
        contact = contact_line(self.profile)
        if contact:
            self.pdf.setFont("Helvetica", 8)
            self.pdf.setFillColor(GREY)
            self.pdf.drawCentredString(PAGE_WIDTH / 2, 34, contact)
        if self.profile is None or self.profile.show_watermark is not False:
            self.pdf.setFont("Helvetica-Oblique", 12)
            self.pdf.setFillColor(colors.HexColor("#969696"))
            self.pdf.drawCentredString(PAGE_WIDTH / 2, 16, WATERMARK)

    def new_page(self) -> None:
        self._footer()
        self.pdf.showPage()
        self.y = TOP

    def ensure_space(self, height: float) -> None:
        if self.y - height < BOTTOM:
            self.new_page()

    def paragraph(self, text: str, *, font: str = "Helvetica", size: int = 10,
                  color: colors.Color = colors.black, centered: bool = False, gap: float = 4) -> None:
        leading = size + 4
        for line in simpleSplit(text, font, size, PAGE_WIDTH - 2 * MARGIN) or [""]:
            self.ensure_space(leading)
            self.pdf.setFont(font, size)
            self.pdf.setFillColor(color)
            if centered:
                self.pdf.drawCentredString(PAGE_WIDTH / 2, self.y, line)
            else:
                self.pdf.drawString(MARGIN, self.y, line)
            self.y -= leading
        self.y -= gap

    def logo(self) -> None:
        reader = decode_image(self.profile.logo if self.profile else None)
        if reader is None:
            return
        size = 80
        self.pdf.drawImage(reader, (PAGE_WIDTH - size) / 2, self.y - size, size, size,
                           preserveAspectRatio=True, mask="auto")
        self.y -= size + 20

    def images(self, sources: Iterable[str]) -> None:
        x = MARGIN
        drawn = False
        for source in sources:
            reader = decode_image(source)
            if reader is None:
                continue
            if x + IMAGE_SIZE > PAGE_WIDTH - MARGIN:
                x = MARGIN
                self.y -= IMAGE_SIZE + 10
            self.ensure_space(IMAGE_SIZE)
            self.pdf.drawImage(reader, x, self.y - IMAGE_SIZE, IMAGE_SIZE, IMAGE_SIZE,
                               preserveAspectRatio=True, mask="auto")
            x += IMAGE_SIZE + 10
            drawn = True
        if drawn:
            self.y -= IMAGE_SIZE + 15

    def table(self, columns: Sequence[tuple[str, float]], rows: Sequence[Sequence[str]]) -> None:
        leading = 12
        self.ensure_space(leading * 3)
        self._table_header(columns, leading)
        for row in rows:
            cells = [simpleSplit(value or "-", "Helvetica", 9, width - 6) or ["-"]
                     for value, (_, width) in zip(row, columns)]
            height = max(len(lines) for lines in cells) * leading + 6
            if self.y - height < BOTTOM:
                self.new_page()
                self._table_header(columns, leading)
            x = MARGIN
            self.pdf.setFont("Helvetica", 9)
            self.pdf.setFillColor(colors.black)
            for lines, (_, width) in zip(cells, columns):
                for offset, line in enumerate(lines):
                    self.pdf.drawString(x + 3, self.y - leading * (offset + 1) + 2, line)
                x += width
            self.y -= height
            self.pdf.setStrokeColor(self.line_color)
            self.pdf.setLineWidth(0.5)
            self.pdf.line(MARGIN, self.y, MARGIN + sum(w for _, w in columns), self.y)
        self.y -= 12

    def _table_header(self, columns: Sequence[tuple[str, float]], leading: float) -> None:
        total = sum(width for _, width in columns)
        self.pdf.setFillColor(self.line_color)
        self.pdf.rect(MARGIN, self.y - leading - 4, total, leading + 4, stroke=0, fill=1)
        self.pdf.setFillColor(colors.white)
        self.pdf.setFont("Helvetica-Bold", 9)
        x = MARGIN
        for title, width in columns:
            self.pdf.drawString(x + 3, self.y - leading + 1, title)
            x += width
        self.y -= leading + 4

    def glossary_block(self, name: str, description: str | None, images: Sequence[str]) -> None:
        self.ensure_space(60)
        self.paragraph(name, font="Helvetica-Bold", size=12, color=self.text_color, gap=2)
        self.paragraph(description or "No description", size=10)
        self.images(images)

    def finish(self) -> bytes:
        self._footer()
        self.pdf.save()
        content = self.buffer.getvalue()
        self.buffer.close()
        return content


def render_workout_pdf(
    workout: WorkoutResponse,
    coach_profile: CoachProfile | None,
    extra_glossary: Sequence[GlossaryEntry] = (),
) -> bytes:
    try:
        writer = _PdfWriter(coach_profile)
        writer.logo()
        writer.paragraph(workout.client_name, font="Helvetica-Bold", size=20,
                         color=writer.text_color, centered=True, gap=8)
        coach_name = workout.coach_name or (coach_profile.name if coach_profile else None)
        if coach_name:
            writer.paragraph(f"Coach: {coach_name}", color=GREY, centered=True)
        if workout.workout_type:
            writer.paragraph(workout.workout_type, color=GREY, centered=True)
        if workout.description:
            writer.paragraph(workout.description, gap=10)

        for week in workout.weeks:
            writer.ensure_space(80)
            writer.paragraph(week.name or f"Week {week.number}", font="Helvetica-Bold", size=15,
                             color=writer.text_color, gap=2)
            if week.notes:
                writer.paragraph(week.notes, font="Helvetica-Oblique", size=9)
            if not week.days:
                writer.paragraph("No days added", color=GREY)
            for day in week.days:
                writer.paragraph(day.name, font="Helvetica-Bold", size=12, gap=2)
                if day.notes:
                    writer.paragraph(day.notes, font="Helvetica-Oblique", size=9)
                if not day.exercises:
                    writer.paragraph("No exercises added", color=GREY)
                    continue
                writer.table(EXERCISE_COLUMNS, [
                    (exercise.name or "Unnamed exercise", exercise.sets, exercise.reps,
                     f"{exercise.rest}s" if exercise.rest.isdigit() else exercise.rest, exercise.notes)
                    for exercise in day.exercises
                ])

        shown: set[str] = set()
        snapshots = [
            exercise
            for week in workout.weeks
            for day in week.days
            for exercise in day.exercises
            if exercise.glossary_content is not None
        ]
        if snapshots or extra_glossary:
            writer.new_page()
            writer.paragraph("EXERCISE GLOSSARY", font="Helvetica-Bold", size=18,
                             color=writer.text_color, centered=True, gap=12)
        for exercise in snapshots:
            key = exercise.glossary_id or exercise.id
            if key in shown:
                continue
            shown.add(key)
            writer.glossary_block(exercise.name, exercise.glossary_content.description,
                                  exercise.glossary_content.images)
        for entry in extra_glossary:
            if entry.id in shown:
                continue
            shown.add(entry.id)
            writer.glossary_block(entry.name, entry.description, entry.images or [])
        return writer.finish()
    except Exception as exc:
        logger.exception("Rendering program %s failed", workout.id)
        raise DocumentRenderError(str(exc)) from exc


def render_glossary_pdf(entries: Sequence[GlossaryEntry], coach_profile: CoachProfile | None) -> bytes:
    try:
        writer = _PdfWriter(coach_profile)
        writer.logo()
        writer.paragraph("EXERCISE GLOSSARY", font="Helvetica-Bold", size=22,
                         color=writer.text_color, centered=True, gap=6)
        if coach_profile and coach_profile.name:
            writer.paragraph(coach_profile.name, size=12, color=GREY, centered=True, gap=12)
        for entry in entries:
            writer.glossary_block(entry.name, entry.description, entry.images or [])
        return writer.finish()
    except Exception as exc:
        logger.exception("Rendering exercise glossary failed")
        raise DocumentRenderError(str(exc)) from exc
