from easyworkout.models.backup import CloudBackup
from easyworkout.models.client import Client
from easyworkout.models.coach_profile import CoachProfile
from easyworkout.models.glossary import GlossaryEntry
from easyworkout.models.workout import Workout


__all__ = [
    "CloudBackup",
    "Client",
    "CoachProfile",
    "GlossaryEntry",
    "Workout",
]
