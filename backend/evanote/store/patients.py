from typing import List
import uuid
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from loguru import logger

from ..exceptions import NotFoundOrForbidden, PersistenceError
from ..models import Patient


class PatientStore:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create(self, provider_id: uuid.UUID, first_name: str, last_name: str) -> Patient:
        try:
            async with self.session_factory() as session:
                patient = Patient(
                    provider_id=provider_id,
                    first_name=first_name.strip(),
                    last_name=last_name.strip(),
                )
                session.add(patient)
                await session.commit()
                return patient
        except SQLAlchemyError as e:
            logger.error(f"Error creating patient: {type(e).__name__}")
            raise PersistenceError() from e

    async def find_owned(self, patient_id: uuid.UUID, owner_id: uuid.UUID) -> Patient:
        """Return the patient if it belongs to owner_id, else raise NotFoundOrForbidden."""
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Patient).where(
                    Patient.id == patient_id,
                    Patient.provider_id == owner_id,
                )
            )
            patient = result.scalar_one_or_none()
        if patient is None:
            raise NotFoundOrForbidden(context={"patient_id": patient_id})
        return patient

    async def list_for_owner(self, owner_id: uuid.UUID) -> List[Patient]:
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Patient)
                .where(Patient.provider_id == owner_id)
                .order_by(Patient.last_name, Patient.first_name)
            )
            return list(result.scalars().all())
