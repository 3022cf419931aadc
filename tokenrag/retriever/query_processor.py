"""
Query Processor

Normalizes user queries, extracts lexical keywords for hybrid ranking and
rewrites follow-up questions with symbols mentioned earlier in the
conversation.
"""

import re
from dataclasses import dataclass, field
from typing import List, Sequence

from ..common.errors import ValidationError
from ..common.schemas.conversation import ConversationMessage

# Candidate entity symbols: standalone all-uppercase words of 2-5 letters
SYMBOL_PATTERN = re.compile(r"\b[A-Z]{2,5}\b")

MIN_KEYWORD_LENGTH = 3
CONTEXT_WINDOW = 4


def extract_keywords(text: str) -> List[str]:
    """
    Lower-cased whitespace tokens longer than 2 characters.

    Duplicates are kept: each occurrence contributes its own boost.
    """
    return [t for t in text.lower().split() if len(t) >= MIN_KEYWORD_LENGTH]


def extract_symbols(text: str) -> List[str]:
    """Candidate symbols in first-seen order, without duplicates"""
    return list(dict.fromkeys(SYMBOL_PATTERN.findall(text)))


class ConversationContextEnhancer:
    """Appends symbols from recent turns to an under-specified follow-up query."""

    def __init__(self, window: int = CONTEXT_WINDOW):
        self._window = window

    def enhance(self, query: str, history: Sequence[ConversationMessage]) -> str:
        """
        Args:
            query: Current user query
            history: Prior messages, oldest first (not modified)

        Returns:
            The query, with " (Context: Previous discussion about A, B)"
            appended when recent messages mention symbols
        """
        if not history:
            return query

        mentions: List[str] = []
        for message in list(history)[-self._window:]:
            for symbol in SYMBOL_PATTERN.findall(message.content):
                if symbol not in mentions:
                    mentions.append(symbol)

        if not mentions:
            return query
        return f"{query} (Context: Previous discussion about {', '.join(mentions)})"


@dataclass
class ParsedQuery:
    """Parsed representation of a user query"""
    original: str
    cleaned: str
    keywords: List[str] = field(default_factory=list)
    symbols: List[str] = field(default_factory=list)


class QueryProcessor:
    """
    Validates and normalizes queries before any provider call.

    Responsibilities:
    1. Reject empty or non-string queries
    2. Collapse whitespace
    3. Extract keywords and candidate symbols
    """

    def parse(self, query: str) -> ParsedQuery:
        if not isinstance(query, str):
            raise ValidationError("Query must be a string")

        cleaned = " ".join(query.split())
        if not cleaned:
            raise ValidationError("Query must not be empty")

        return ParsedQuery(
            original=query,
            cleaned=cleaned,
            keywords=extract_keywords(cleaned),
            symbols=extract_symbols(cleaned),
        )
