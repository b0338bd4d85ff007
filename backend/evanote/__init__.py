"""EVA Note backend: clinical SOAP notes from consultation transcripts."""

__version__ = "0.1.0"
