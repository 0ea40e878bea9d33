import time
from typing import Optional

from app.core.logging import get_logger
from app.models.schemas import ChatRequest, ProviderResult
from app.services import prompt_builder
from app.services.context_assembler import ContextAssembler, highlight_terms
from app.services.orchestrator import AnswerOrchestrator
from app.services.post_processor import finalize, strip_mentions
from app.services.query_classifier import classify, token_budget

logger = get_logger(__name__)


class AnswerEngine:
    """Runs one question through context, prompt, providers and post-processing"""

    def __init__(self,
                 assembler: Optional[ContextAssembler] = None,
                 orchestrator: Optional[AnswerOrchestrator] = None):
        self.assembler = assembler or ContextAssembler()
        self.orchestrator = orchestrator or AnswerOrchestrator()

    async def aclose(self):
        """Release the HTTP clients held by search and the providers"""
        await self.assembler.aclose()
        await self.orchestrator.aclose()

    @staticmethod
    def clean_question(question: Optional[str]) -> str:
        return strip_mentions(question or "")

    async def answer(self, request: ChatRequest) -> ProviderResult:
        start_time = time.time()
        question = self.clean_question(request.question)

        query_type = classify(question)
        max_tokens = token_budget(query_type)
        logger.info(f"Answering: {question[:50]}... (type: {query_type.value}, max_tokens: {max_tokens})")

        bundle = await self.assembler.gather(question, request)
        prompt = prompt_builder.build(question, query_type, bundle)

        result = await self.orchestrator.generate(
            prompt,
            bundle,
            question=question,
            max_tokens=max_tokens,
            thinking_mode=request.thinking_mode,
        )

        answer = finalize(result.answer, highlight_terms(bundle))
        logger.info(f"Answer from {result.provider} ready in {time.time() - start_time:.2f} seconds")
        return result.model_copy(update={"answer": answer})
