from typing import Any, Dict, List, Optional
import uuid
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from loguru import logger

from ..exceptions import PersistenceError
from ..models import Transcript


class TranscriptStore:
    """Transcripts are immutable: this store only inserts and reads."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def add(
        self,
        visit_id: uuid.UUID,
        text: str,
        raw_json: Optional[Dict[str, Any]] = None,
        language: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> Transcript:
        try:
            async with self.session_factory() as session:
                transcript = Transcript(
                    visit_id=visit_id,
                    text=text,
                    raw_json=raw_json,
                    language=language,
                    confidence=confidence,
                )
                session.add(transcript)
                await session.commit()
                return transcript
        except SQLAlchemyError as e:
            logger.error(f"Error saving transcript for visit {visit_id}: {type(e).__name__}")
            raise PersistenceError(
                "Erreur lors de la sauvegarde du transcript.",
                context={"visit_id": visit_id},
            ) from e

    async def latest(self, visit_id: uuid.UUID) -> Optional[Transcript]:
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Transcript)
                .where(Transcript.visit_id == visit_id)
                .order_by(Transcript.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def list(self, visit_id: uuid.UUID) -> List[Transcript]:
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Transcript)
                .where(Transcript.visit_id == visit_id)
                .order_by(Transcript.created_at.desc())
            )
            return list(result.scalars().all())
