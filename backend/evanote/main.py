from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .config import Settings, config_summary, get_settings
from .database import create_session_factory, init_db
from .exceptions import EvaNoteError
from .notification import SSEManager, VisitNotifier
from .routers import notifications, patients, profiles, soap, transcripts, visits
from .routers.dependencies import STATUS_CODES
from .schemas import ActionResult
from .soap_generation import SoapGenerator, Sleep
from .soap_processor import BaseSOAPProcessor, initialize_soap_processor
from .soap_service import SoapNoteService
from .store import ProfileStore
from .transcript_service import TranscriptService
from .transcription import BaseTranscriptionService, get_transcription_service
from .utils.logger import setup_logging
from .visit_service import VisitService


def create_app(
    settings: Optional[Settings] = None,
    soap_processor: Optional[BaseSOAPProcessor] = None,
    transcription_service: Optional[BaseTranscriptionService] = None,
    sleep: Optional[Sleep] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    The generation and transcription clients are constructed here, once;
    a misconfiguration raises ConfigurationError and the app does not start.
    Run with: uvicorn evanote.main:create_app --factory

    Args:
        settings: Defaults to get_settings()
        soap_processor: Overrides the processor built from settings
        transcription_service: Overrides the provider built from settings
        sleep: Retry delay function, defaults to asyncio.sleep
    """
    settings = settings or get_settings()

    processor = soap_processor or initialize_soap_processor(settings)
    stt = transcription_service or get_transcription_service(settings.TRANSCRIPTION_PROVIDER, settings)
    engine, session_factory = create_session_factory(settings.DATABASE_URL)

    app = FastAPI(
        title="EVA Note API",
        description="Clinical SOAP note generation from consultation transcripts",
        version="0.1.0",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    sse_manager = SSEManager()
    notifier = VisitNotifier(sse_manager)
    generator = SoapGenerator(processor, max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS, sleep=sleep)

    app.state.settings = settings
    app.state.engine = engine
    app.state.sse_manager = sse_manager
    app.state.profiles = ProfileStore(session_factory)
    app.state.soap_service = SoapNoteService(session_factory, generator, notifier)
    app.state.visit_service = VisitService(session_factory)
    app.state.transcript_service = TranscriptService(session_factory, stt)

    @app.exception_handler(EvaNoteError)
    async def domain_error_handler(request: Request, exc: EvaNoteError):
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}")
        result = ActionResult.fail(exc.user_message, exc.code)
        return JSONResponse(status_code=STATUS_CODES.get(exc.code, 500), content=result.model_dump())

    @app.on_event("startup")
    async def startup_event():
        setup_logging(settings)
        logger.info(f"Starting EVA Note API with {config_summary(settings)}")
        logger.info("Initializing database...")
        await init_db(engine)
        logger.info("Database initialized!")

    @app.on_event("shutdown")
    async def shutdown_event():
        await engine.dispose()
        logger.info("Database connections closed")

    @app.get("/")
    async def root():
        return {
            "message": "Welcome to EVA Note API",
            "model": processor.model_id,
            "transcription_model": stt.model_id,
        }

    app.include_router(profiles.router)
    app.include_router(patients.router)
    app.include_router(visits.router)
    app.include_router(transcripts.router)
    app.include_router(soap.router)
    app.include_router(notifications.router)

    return app
