import asyncio
import traceback
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from fastapi import Request
from pydantic import BaseModel

from app.core.config import settings
from app.core.logging import get_logger
from app.models.schemas import (
    ContentEvent, DoneEvent, ErrorEvent, ProviderResult, StatusEvent, ThinkingEvent,
)

logger = get_logger(__name__)

STATUS_MESSAGE = "Thinking..."
ERROR_MESSAGE = "I apologize, but I encountered an error while processing your request. Please try again."


class StreamEmitter:
    """Turns a generated answer into a paced stream of NDJSON events"""

    def __init__(self, chunk_size: Optional[int] = None,
                 chunk_delay: Optional[float] = None,
                 thinking_delay: Optional[float] = None):
        self.chunk_size = max(1, chunk_size or settings.STREAM_CHUNK_SIZE)
        self.chunk_delay = settings.CHUNK_DELAY_SECONDS if chunk_delay is None else chunk_delay
        self.thinking_delay = settings.THINKING_DELAY_SECONDS if thinking_delay is None else thinking_delay

    @staticmethod
    def encode(event: BaseModel) -> str:
        return event.model_dump_json(by_alias=True, exclude_none=True) + "\n"

    def chunk_answer(self, answer: str) -> List[str]:
        """Split the answer into fixed-size pieces; an empty answer is one empty piece"""
        if not answer:
            return [""]
        return [answer[i:i + self.chunk_size] for i in range(0, len(answer), self.chunk_size)]

    @staticmethod
    async def _disconnected(request: Optional[Request]) -> bool:
        if request is None:
            return False
        try:
            return await request.is_disconnected()
        except Exception:
            # A request we cannot poll any more is treated as gone
            return True

    def _done_event(self, result: ProviderResult, thinking_mode: bool) -> DoneEvent:
        return DoneEvent(
            full_response=result.answer,
            answer=result.answer,
            provider=result.provider,
            sources=result.sources or None,
            thinking_steps=result.thoughts if thinking_mode else [],
            thinking_summary=result.thinking_summary if thinking_mode else "",
        )

    async def stream(self, generate: Callable[[], Awaitable[ProviderResult]], *,
                     thinking_mode: bool = False,
                     request: Optional[Request] = None) -> AsyncIterator[str]:
        """
        Yield status, then thinking steps, then content chunks, then done.

        An unexpected failure ends the stream with a single error event. Once
        the client has disconnected nothing more is written.
        """
        try:
            yield self.encode(StatusEvent(message=STATUS_MESSAGE))

            result = await generate()

            if thinking_mode and result.thoughts:
                for step in result.thoughts:
                    if await self._disconnected(request):
                        logger.info("Client disconnected during thinking steps")
                        return
                    yield self.encode(ThinkingEvent(thinking=step))
                    await asyncio.sleep(self.thinking_delay)

            for chunk in self.chunk_answer(result.answer):
                if await self._disconnected(request):
                    logger.info("Client disconnected during content stream")
                    return
                yield self.encode(ContentEvent(content=chunk))
                await asyncio.sleep(self.chunk_delay)

            if await self._disconnected(request):
                logger.info("Client disconnected before completion")
                return

            yield self.encode(self._done_event(result, thinking_mode))
            logger.info(f"Stream complete: {len(result.answer)} characters from {result.provider}")

        except asyncio.CancelledError:
            logger.info("Stream cancelled by client")
            raise
        except Exception as e:
            logger.error(f"Error while streaming answer: {str(e)}")
            logger.error(traceback.format_exc())
            if not await self._disconnected(request):
                yield self.encode(ErrorEvent(error="Failed to generate response", message=ERROR_MESSAGE))
