from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from app.models.schemas import ChatRequest, ChatResponse, DocumentExtractRequest, DocumentExtractResponse
from app.core.logging import get_logger
from app.services.answer_engine import AnswerEngine
from app.services.documents import DocumentExtractor
from app.services.stream_emitter import StreamEmitter
from app.core.config import settings
import time
import traceback
import uvicorn
from datetime import datetime

API_VERSION = "1.0.0"

# Initialize logger
logger = get_logger(__name__)

# Shared services, one per process
answer_engine = AnswerEngine()
stream_emitter = StreamEmitter()
document_extractor = DocumentExtractor()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup code
    try:
        logger.info("Initializing CourseConnect Answer API...")
        orchestrator = answer_engine.orchestrator
        configured = [p.name for p in orchestrator.providers if p.is_configured()]
        logger.info(f"Provider order: {', '.join(orchestrator.provider_names) or 'none'}")
        logger.info(f"Configured providers: {', '.join(configured) or 'none, canned answers only'}")
        logger.info(f"Models: openai={settings.OPENAI_MODEL}, google={settings.GOOGLE_MODEL}, ollama={settings.OLLAMA_MODEL}")
        logger.info("API started successfully")
    except Exception as e:
        logger.error(f"Startup initialization failed: {str(e)}")
        logger.error(traceback.format_exc())

    yield

    logger.info("Shutting down CourseConnect Answer API...")
    await answer_engine.aclose()


app = FastAPI(
    title="CourseConnect Answer API",
    description="Answers student questions with course context, provider fallback and streamed responses",
    version=API_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # To be adjusted in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_answer_engine():
    return answer_engine


def get_stream_emitter():
    return stream_emitter


def get_document_extractor():
    return document_extractor


def _question_missing(chat_request: ChatRequest) -> bool:
    return not AnswerEngine.clean_question(chat_request.question)


def _missing_question_response() -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": "Question is required"})


def _silent_response() -> JSONResponse:
    # Public chats only get an answer when the assistant is addressed
    return JSONResponse(content={"success": True, "answer": None, "shouldRespond": False})


@app.post("/api/v1/chat/stream")
async def chat_stream(chat_request: ChatRequest,
                      request: Request,
                      engine: AnswerEngine = Depends(get_answer_engine),
                      emitter: StreamEmitter = Depends(get_stream_emitter)):
    """Answer a question as a stream of NDJSON events"""
    if _question_missing(chat_request):
        return _missing_question_response()

    if chat_request.is_public_chat and not chat_request.should_call_ai:
        return _silent_response()

    logger.info(f"Streaming answer for user {chat_request.user_id}: {chat_request.question[:50]}...")

    async def generate():
        return await engine.answer(chat_request)

    return StreamingResponse(
        emitter.stream(generate, thinking_mode=chat_request.thinking_mode, request=request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@app.post("/api/v1/chat", response_model=ChatResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def chat(chat_request: ChatRequest, engine: AnswerEngine = Depends(get_answer_engine)):
    """Answer a question in a single JSON response"""
    if _question_missing(chat_request):
        return _missing_question_response()

    if chat_request.is_public_chat and not chat_request.should_call_ai:
        return _silent_response()

    start_time = time.time()

    try:
        logger.info(f"Answering for user {chat_request.user_id}: {chat_request.question[:50]}...")
        result = await engine.answer(chat_request)

        processing_time = time.time() - start_time
        logger.info(f"Question answered in {processing_time:.2f} seconds. Provider: {result.provider}")

        return ChatResponse(
            success=True,
            answer=result.answer,
            provider=result.provider,
            should_respond=True,
            timestamp=datetime.now().isoformat(),
            sources=result.sources or None,
            thinking_steps=result.thoughts if chat_request.thinking_mode else [],
            thinking_summary=result.thinking_summary if chat_request.thinking_mode else "",
        )

    except Exception as e:
        logger.error(f"Error answering question: {str(e)}")
        logger.error(traceback.format_exc())

        raise HTTPException(
            status_code=500,
            detail="An error occurred while processing your question. Please try again later."
        )


@app.post("/api/v1/documents/extract", response_model=DocumentExtractResponse)
async def extract_document(extract_request: DocumentExtractRequest,
                           extractor: DocumentExtractor = Depends(get_document_extractor)):
    """Extract plain text from an uploaded file"""
    logger.info(f"Extracting text from {extract_request.filename}")
    return extractor.extract(extract_request.filename, extract_request.mime_type, extract_request.content)


@app.get("/api/v1/health")
async def health_check():
    """Health check endpoint"""
    try:
        providers = answer_engine.orchestrator.providers

        return {
            "status": "healthy",
            "version": API_VERSION,
            "providers": [p.name for p in providers if p.is_configured()],
            "timestamp": datetime.now().isoformat(),
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return {
            "status": "unhealthy",
            "error": str(e),
            "version": API_VERSION,
            "timestamp": datetime.now().isoformat()
        }


@app.get("/api/v1/providers")
async def list_providers(engine: AnswerEngine = Depends(get_answer_engine)):
    """List providers in priority order and whether each is configured"""
    try:
        return {
            "providers": [
                {"name": p.name, "priority": i + 1, "configured": p.is_configured()}
                for i, p in enumerate(engine.orchestrator.providers)
            ]
        }

    except Exception as e:
        logger.error(f"Error listing providers: {str(e)}")
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True
    )
