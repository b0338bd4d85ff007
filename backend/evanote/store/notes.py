from typing import Any, Dict, List, Optional
import uuid
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from loguru import logger

from ..exceptions import NotFoundOrForbidden, PersistenceError, VersionConflict
from ..models import Note, Visit


class NoteStore:
    """
    Versioned SOAP notes.

    Versions per visit start at 1 and are contiguous. Uniqueness of
    (visit_id, version) is enforced by the database; append_next resolves
    collisions between concurrent writers by re-reading and retrying.
    """

    def __init__(self, session_factory: async_sessionmaker, max_append_retries: int = 5):
        self.session_factory = session_factory
        self.max_append_retries = max_append_retries

    async def next_version(self, visit_id: uuid.UUID) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(sa.func.max(Note.version)).where(Note.visit_id == visit_id)
            )
            current = result.scalar()
        return (current or 0) + 1

    async def append(
        self,
        visit_id: uuid.UUID,
        soap: Dict[str, Any],
        model: str,
        version: int,
    ) -> Note:
        """
        Insert a note at an explicit version.

        Raises:
            VersionConflict: If (visit_id, version) already exists
            PersistenceError: On any other database error
        """
        try:
            async with self.session_factory() as session:
                note = Note(
                    visit_id=visit_id,
                    soap=soap,
                    model=model,
                    version=version,
                    is_final=False,
                )
                session.add(note)
                await session.commit()
                return note
        except IntegrityError as e:
            raise VersionConflict(visit_id, version) from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving note for visit {visit_id}: {type(e).__name__}")
            raise PersistenceError(
                "Erreur lors de la sauvegarde de la note.",
                context={"visit_id": visit_id},
            ) from e

    async def append_next(self, visit_id: uuid.UUID, soap: Dict[str, Any], model: str) -> Note:
        """
        Insert a note at the next free version.

        Raises:
            PersistenceError: If every retry collided or the insert failed
        """
        last_conflict: Optional[VersionConflict] = None
        for attempt in range(self.max_append_retries):
            version = await self.next_version(visit_id)
            try:
                return await self.append(visit_id, soap, model, version)
            except VersionConflict as e:
                last_conflict = e
                logger.warning(
                    f"Version {version} of visit {visit_id} taken by a concurrent writer "
                    f"(attempt {attempt + 1}/{self.max_append_retries})"
                )
        raise PersistenceError(
            "Erreur lors de la sauvegarde de la note.",
            context={"visit_id": visit_id, "reason": "version_conflict"},
        ) from last_conflict

    async def latest(self, visit_id: uuid.UUID) -> Optional[Note]:
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Note)
                .where(Note.visit_id == visit_id)
                .order_by(Note.version.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def list_versions(self, visit_id: uuid.UUID) -> List[Note]:
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Note)
                .where(Note.visit_id == visit_id)
                .order_by(Note.version.desc())
            )
            return list(result.scalars().all())

    async def get_owned(self, note_id: uuid.UUID, owner_id: uuid.UUID) -> Note:
        """Load a note whose parent visit belongs to owner_id."""
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Note)
                .join(Visit, Visit.id == Note.visit_id)
                .where(Note.id == note_id, Visit.provider_id == owner_id)
            )
            note = result.scalar_one_or_none()
        if note is None:
            raise NotFoundOrForbidden(context={"note_id": note_id})
        return note

    async def update_soap(self, note_id: uuid.UUID, soap: Dict[str, Any]) -> Note:
        return await self._update(note_id, soap=soap)

    async def mark_final(self, note_id: uuid.UUID) -> Note:
        return await self._update(note_id, is_final=True)

    async def _update(self, note_id: uuid.UUID, **values) -> Note:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(sa.select(Note).where(Note.id == note_id))
                    note = result.scalar_one_or_none()
                    if note is None:
                        raise NotFoundOrForbidden(context={"note_id": note_id})
                    for column, value in values.items():
                        setattr(note, column, value)
                return note
        except SQLAlchemyError as e:
            logger.error(f"Error updating note {note_id}: {type(e).__name__}")
            raise PersistenceError(context={"note_id": note_id}) from e
