"""
Synthesizer

Packs ranked fragments into a bounded context, scores retrieval confidence
and asks the completion provider for an answer grounded in that context.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..common.llm_client import LLMClient
from ..common.schemas.conversation import ConversationMessage, Role
from ..common.schemas.fragment import SimilarityResult

logger = logging.getLogger("tokenrag.retriever.synthesizer")

NO_CONTEXT_SENTINEL = "No relevant token information found."
BLOCK_SEPARATOR = "\n\n"
HIGH_CONFIDENCE_SCORE = 0.8


class ContextAssembler:
    """
    Groups fragments per entity, restores reading order and packs the blocks
    into at most max_length characters.
    """

    def __init__(self, max_length: int = 8000):
        self._max_length = max_length

    def assemble(self, results: Sequence[SimilarityResult], max_length: Optional[int] = None) -> str:
        """
        Args:
            results: Ranked fragments (score order)
            max_length: Character budget, separators included

        Returns:
            Entity blocks joined by a blank line, or the no-context sentinel
        """
        if not results:
            return NO_CONTEXT_SENTINEL
        limit = self._max_length if max_length is None else max_length

        # Group by parent in order of first appearance
        groups: Dict[str, List[SimilarityResult]] = {}
        for result in results:
            groups.setdefault(result.parent_id, []).append(result)

        blocks: List[str] = []
        total = 0
        for fragments in groups.values():
            fragments = sorted(fragments, key=lambda r: r.chunk_index)
            first = fragments[0]
            separator = len(BLOCK_SEPARATOR) if blocks else 0

            block = f"--- {first.entity_name} ({first.entity_symbol}) ---"
            for fragment in fragments:
                addition = "\n" + fragment.content
                if total + separator + len(block) + len(addition) > limit:
                    break
                block += addition

            if total + separator + len(block) > limit:
                break
            blocks.append(block)
            total += separator + len(block)

        return BLOCK_SEPARATOR.join(blocks)


class ConfidenceScorer:
    """Average similarity plus a bonus for several strong hits."""

    @staticmethod
    def score(results: Sequence[SimilarityResult]) -> float:
        if not results:
            return 0.0

        avg = sum(r.score for r in results) / len(results)
        high = sum(1 for r in results if r.score > HIGH_CONFIDENCE_SCORE)
        bonus = min(high / 5, 0.2)
        return min(avg + bonus, 1.0)


SYSTEM_PROMPT = """You are an assistant that specializes in cryptocurrency tokens and token analysis. You can draw on detailed token metadata and market information.

Your job:
1. Give accurate, useful answers about tokens and cryptocurrencies
2. Analyze market data, technical details and risk factors
3. Answer questions on token economics, audits and project details
4. Base your insights on the context below
5. Be open about gaps and uncertainty

Guidelines:
- Ground your answer in the context information
- Say so plainly when the context does not contain the answer
- Quote concrete figures (price, market cap, supply) when they are available
- Explain technical terms in plain language
- Mention relevant risks whenever investments come up
- Refer to tokens by name and symbol

Context Information:
{context}"""


@dataclass
class SynthesizedAnswer:
    """Answer from the completion provider plus retrieval metadata"""
    answer: str
    confidence: float  # 0.0 to 1.0
    sources: List[SimilarityResult] = field(default_factory=list)
    tokens_used: int = 0
    context: str = ""


class Synthesizer:
    """
    Synthesizes answers from search results using the LLM client.

    Falls back to a plain listing of the assembled context when no
    completion provider is configured.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        max_context_length: int = 8000,
        history_window: int = 6,
        max_tokens: int = 1000,
        temperature: float = 0.3,
        top_p: float = 0.9,
        presence_penalty: float = 0.1,
        frequency_penalty: float = 0.1,
        timeout: float = 60.0,
    ):
        self._llm = llm_client
        self._assembler = ContextAssembler(max_context_length)
        self._history_window = history_window
        self._generation = {
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": top_p,
            "presence_penalty": presence_penalty,
            "frequency_penalty": frequency_penalty,
            "timeout": timeout,
        }

    @property
    def has_llm(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def build_messages(
        self,
        query: str,
        context: str,
        history: Sequence[ConversationMessage] = (),
    ) -> List[Dict[str, str]]:
        """System prompt with context, the recent history window, then the query"""
        messages = [{"role": Role.SYSTEM.value, "content": SYSTEM_PROMPT.format(context=context)}]
        if self._history_window > 0:
            messages.extend(m.to_prompt_message() for m in list(history)[-self._history_window:])
        messages.append({"role": Role.USER.value, "content": query})
        return messages

    async def synthesize(
        self,
        query: str,
        results: List[SimilarityResult],
        history: Sequence[ConversationMessage] = (),
    ) -> SynthesizedAnswer:
        """
        Synthesize an answer from ranked results.

        Args:
            query: User query (already enhanced with conversation context)
            results: Ranked fragments from Searcher
            history: Prior conversation messages, oldest first

        Returns:
            SynthesizedAnswer with answer text and metadata
        """
        context = self._assembler.assemble(results)
        confidence = ConfidenceScorer.score(results)

        if not self.has_llm:
            logger.warning("LLM not available - returning assembled context")
            return SynthesizedAnswer(
                answer=context,
                confidence=confidence,
                sources=list(results),
                context=context,
            )

        completion = await self._llm.generate(
            self.build_messages(query, context, history),
            **self._generation,
        )
        return SynthesizedAnswer(
            answer=completion.text,
            confidence=confidence,
            sources=list(results),
            tokens_used=completion.tokens_used,
            context=context,
        )
