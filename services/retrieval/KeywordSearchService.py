"""Keyword search over a bot's knowledge documents.

Used when the vector index cannot answer. Each document is scored by
  - an exact, case-insensitive phrase hit (+100),
  - whole-word occurrences of every query term (+10 each),
  - the share of raw query tokens that also occur in the document (×5),
and the best-scoring documents are returned with a short excerpt.
"""

import re

from services.retrieval.KnowledgeDocumentRepository import KnowledgeDocumentRepository
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import KnowledgeDocument
from shared.models.search import (
    DetailedKeywordSearch,
    KeywordSearchResult,
    KeywordSearchSummary,
    MatchType,
)

EXACT_MATCH_SCORE = 100
TERM_MATCH_SCORE = 10
TOKEN_OVERLAP_WEIGHT = 5
MATCH_WINDOW = 100    # chars kept around an exact hit
CONTEXT_WINDOW = 150  # chars of context around the matched content

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "may", "might", "can", "this", "that", "these", "those",
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
})

MATCH_LABELS = {
    MatchType.EXACT: "[EXACT MATCH]",
    MatchType.PARTIAL: "[PARTIAL MATCH]",
    MatchType.SEMANTIC: "[SEMANTIC MATCH]",
}


def extract_query_terms(query: str) -> list[str]:
    """Lower-cased query words longer than two characters, without stop words and punctuation."""
    terms = []
    for word in query.lower().split():
        if len(word) <= 2 or word in STOP_WORDS:
            continue
        word = re.sub(r"[^\w]", "", word)
        if word:
            terms.append(word)
    return terms


def token_overlap(query: str, content: str) -> float:
    """Share of the query's whitespace tokens that appear verbatim among the content's tokens."""
    query_words = query.lower().split()
    if not query_words:
        return 0.0
    content_words = set(content.lower().split())
    return sum(1 for word in query_words if word in content_words) / len(query_words)


def _best_sentence(content: str, terms: list[str]) -> tuple[str, str]:
    """The sentence containing the most query terms, plus it and its neighbours as context."""
    sentences = [s for s in re.split(r"[.!?]+", content) if s.strip()]
    best_sentence = ""
    best_score = 0
    best_index = -1
    for i, sentence in enumerate(sentences):
        lowered = sentence.lower()
        score = sum(1 for term in terms if term in lowered)
        if score > best_score:
            best_score = score
            best_sentence = sentence.strip()
            best_index = i

    context = ""
    if best_index >= 0:
        context = ". ".join(sentences[max(0, best_index - 1):best_index + 2]).strip()
    return best_sentence, context or best_sentence


def _surrounding_context(content: str, matched: str) -> str:
    index = content.lower().find(matched.lower())
    if index == -1:
        return matched
    start = max(0, index - CONTEXT_WINDOW)
    end = min(len(content), index + len(matched) + CONTEXT_WINDOW)
    return content[start:end].strip()


def score_document(document: KnowledgeDocument, query: str, terms: list[str]) -> KeywordSearchResult | None:
    """Score one document against the query. None when nothing matches."""
    original = document.content
    lowered = original.lower()
    query_lower = query.lower()
    score = 0.0
    matched = ""
    context = ""
    match_type = MatchType.PARTIAL

    index = lowered.find(query_lower) if query_lower else -1
    if index != -1:
        score += EXACT_MATCH_SCORE
        match_type = MatchType.EXACT
        start = max(0, index - MATCH_WINDOW)
        end = min(len(original), index + len(query) + MATCH_WINDOW)
        matched = original[start:end].strip()

    for term in terms:
        score += len(re.findall(rf"\b{re.escape(term)}\b", lowered)) * TERM_MATCH_SCORE

    score += token_overlap(query, original) * TOKEN_OVERLAP_WEIGHT

    if score <= 0:
        return None

    if matched:
        context = _surrounding_context(original, matched)
    else:
        matched, context = _best_sentence(original, terms)

    return KeywordSearchResult(
        document=document,
        relevanceScore=score,
        matchedContent=matched or original[:200] + "...",
        context=context,
        matchType=match_type,
    )


class KeywordSearchService:
    """Keyword search over documents read from a KnowledgeDocumentRepository."""

    def __init__(self, helper_config: HelperConfig, repository: KnowledgeDocumentRepository) -> None:
        self.logging = helper_config.get_logger()
        self._repository = repository

    async def do_search_documents(self, bot_id: int, query: str, limit: int = 5) -> list[KeywordSearchResult]:
        """Best keyword matches among a bot's documents; empty list on any failure.

        Args:
            bot_id (int): Bot whose documents are searched.
            query (str): Free-text query.
            limit (int): Maximum number of results.

        Returns:
            list[KeywordSearchResult]: Results, highest relevance first.
        """
        try:
            documents = await self._repository.do_get_documents_by_bot(bot_id)
        except Exception as e:
            self.logging.error("Keyword search could not load documents of bot %s (query '%s'): %s", bot_id, query, e)
            return []

        available = [doc for doc in documents if doc.content and doc.content.strip()]
        if not available:
            self.logging.debug("No documents with content for bot %s.", bot_id)
            return []

        terms = extract_query_terms(query)
        results = [r for r in (score_document(doc, query, terms) for doc in available) if r is not None]
        results.sort(key=lambda r: r.relevance_score, reverse=True)
        self.logging.debug("Keyword search for bot %s matched %d of %d documents.", bot_id, len(results), len(available))
        return results[:limit]

    async def do_get_context_for_query(self, bot_id: int, query: str) -> str:
        """Formatted knowledge-base excerpt for a chat prompt; empty string when nothing matches."""
        results = await self.do_search_documents(bot_id, query, 5)
        if not results:
            return ""

        lines = ["Relevant information from knowledge base:\n"]
        for i, result in enumerate(results, start=1):
            lines.append(
                f'{i}. {MATCH_LABELS[result.match_type]} From "{result.document.title}" '
                f"(Score: {result.relevance_score:g}):"
            )
            lines.append(f"{result.context or result.matched_content}\n")

        summary = _summarize(results)
        lines.append(
            f"Search Summary: Found {summary.exact_matches} exact matches, "
            f"{summary.partial_matches} partial matches, and {summary.semantic_matches} semantic matches.\n"
        )
        return "\n".join(lines) + "\n"

    async def do_get_detailed_search_results(self, bot_id: int, query: str, limit: int = 10) -> DetailedKeywordSearch:
        """Keyword results plus per-type counts and the average score (2 decimals)."""
        results = await self.do_search_documents(bot_id, query, limit)
        try:
            total = len(await self._repository.do_get_documents_by_bot(bot_id))
        except Exception as e:
            self.logging.error("Keyword search could not count documents of bot %s: %s", bot_id, e)
            total = 0
        return DetailedKeywordSearch(query=query, totalDocuments=total, results=results, summary=_summarize(results))


def _summarize(results: list[KeywordSearchResult]) -> KeywordSearchSummary:
    average = sum(r.relevance_score for r in results) / len(results) if results else 0.0
    return KeywordSearchSummary(
        exactMatches=sum(1 for r in results if r.match_type == MatchType.EXACT),
        partialMatches=sum(1 for r in results if r.match_type == MatchType.PARTIAL),
        semanticMatches=sum(1 for r in results if r.match_type == MatchType.SEMANTIC),
        averageScore=round(average, 2),
    )
