"""
Domain exceptions for the EVA Note backend.

Every exception carries a short user-facing message (safe to return to the
caller) and an internal context dict that only ends up in the logs.
"""
from typing import Any, Dict, Optional


class EvaNoteError(Exception):
    """Base class for all domain errors."""

    code = "internal_error"
    default_message = "Une erreur inattendue s'est produite."

    def __init__(self, message: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.user_message = message or self.default_message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.user_message} [{context_str}]"
        return self.user_message


class ConfigurationError(EvaNoteError):
    """Invalid or missing configuration, raised at startup."""

    code = "configuration_error"
    default_message = "Configuration invalide."


class Unauthenticated(EvaNoteError):
    code = "unauthenticated"
    default_message = "Non authentifié. Veuillez vous connecter."


class NotFoundOrForbidden(EvaNoteError):
    """Entity missing or owned by someone else. Both cases look the same to the caller."""

    code = "not_found"
    default_message = "Ressource introuvable ou accès refusé."


class ValidationError(EvaNoteError):
    """Caller input failed a schema or length check. Never retried."""

    code = "validation_error"
    default_message = "Données invalides."


class InvalidStatusTransition(ValidationError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            "Statut invalide.",
            context={"current": current, "target": target},
        )


class GenerationFailure(EvaNoteError):
    """
    The generative backend failed.

    Attributes:
        cause: The underlying exception, kept for logging
        attempts: Number of attempts made before giving up (set by the retry controller)
    """

    code = "generation_failed"
    default_message = "Erreur lors de la génération de la note SOAP."

    def __init__(
        self,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
        attempts: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.cause = cause
        self.attempts = attempts
        context = dict(context or {})
        if cause is not None:
            context["cause"] = repr(cause)
        if attempts is not None:
            context["attempts"] = attempts
        super().__init__(message, context=context)


class SchemaViolation(GenerationFailure):
    """A SOAP payload did not match the four-field schema."""

    code = "schema_violation"
    default_message = "La note SOAP générée est invalide."

    def __init__(self, message: str, field: Optional[str] = None, raw: Any = None):
        self.field = field
        self.raw = raw
        super().__init__(message, context={"field": field} if field else None)


class TranscriptionError(EvaNoteError):
    """The speech-to-text provider failed."""

    code = "transcription_failed"
    default_message = "Erreur lors de la transcription audio."


class PersistenceError(EvaNoteError):
    code = "persistence_error"
    default_message = "Erreur lors de l'accès aux données."


class VersionConflict(PersistenceError):
    """Another writer already stored this (visit, version) pair."""

    def __init__(self, visit_id: Any, version: int):
        self.visit_id = visit_id
        self.version = version
        super().__init__(
            "Conflit de version lors de la sauvegarde de la note.",
            context={"visit_id": visit_id, "version": version},
        )
