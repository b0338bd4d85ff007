"""Persistence layer: one store per table, all sharing an injected session factory."""

from .profiles import ProfileStore
from .patients import PatientStore
from .visits import VisitStore
from .transcripts import TranscriptStore
from .notes import NoteStore
from .usage import UsageStore
