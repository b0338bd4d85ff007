from datetime import datetime
from typing import List, Optional
import uuid
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from loguru import logger

from ..exceptions import NotFoundOrForbidden, PersistenceError
from ..models import Visit
from ..visit_state import VisitStatus, transition


class VisitStore:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def find_owned(self, visit_id: uuid.UUID, owner_id: uuid.UUID) -> Visit:
        """
        Load a visit owned by owner_id.

        A missing visit and a visit owned by someone else raise the same
        NotFoundOrForbidden, so callers cannot probe for foreign ids.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Visit).where(
                    Visit.id == visit_id,
                    Visit.provider_id == owner_id,
                )
            )
            visit = result.scalar_one_or_none()
        if visit is None:
            raise NotFoundOrForbidden(context={"visit_id": visit_id})
        return visit

    async def list_for_patient(self, patient_id: uuid.UUID, owner_id: uuid.UUID) -> List[Visit]:
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Visit)
                .where(Visit.patient_id == patient_id, Visit.provider_id == owner_id)
                .order_by(Visit.created_at.desc())
            )
            return list(result.scalars().all())

    async def create(
        self,
        patient_id: uuid.UUID,
        provider_id: uuid.UUID,
        language_pref: str = "de",
    ) -> Visit:
        try:
            async with self.session_factory() as session:
                visit = Visit(
                    patient_id=patient_id,
                    provider_id=provider_id,
                    language_pref=language_pref,
                    status=VisitStatus.DRAFT.value,
                )
                session.add(visit)
                await session.commit()
                return visit
        except SQLAlchemyError as e:
            logger.error(f"Error creating visit: {type(e).__name__}")
            raise PersistenceError() from e

    async def apply_transition(
        self,
        visit_id: uuid.UUID,
        target: VisitStatus,
        now: Optional[datetime] = None,
        settle: bool = False,
    ) -> Visit:
        """
        Move a visit to target through the state machine and persist it.

        settle is passed to visit_state.transition for the final status of a
        generation run.

        Raises:
            InvalidStatusTransition: If the move is not allowed
            NotFoundOrForbidden: If the visit vanished
            PersistenceError: If the update could not be written
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(sa.select(Visit).where(Visit.id == visit_id))
                    visit = result.scalar_one_or_none()
                    if visit is None:
                        raise NotFoundOrForbidden(context={"visit_id": visit_id})

                    step = transition(visit.status, target, visit.started_at, now=now, settle=settle)
                    if step.next.value == visit.status and not step.timestamp_patch:
                        return visit

                    visit.status = step.next.value
                    for column, value in step.timestamp_patch.items():
                        setattr(visit, column, value)
                    visit.updated_at = now or datetime.utcnow()
                return visit
        except SQLAlchemyError as e:
            logger.error(f"Error updating status of visit {visit_id}: {type(e).__name__}")
            raise PersistenceError(context={"visit_id": visit_id}) from e
