"""
Knowledge base and keyword scorer.
Ranks a fixed corpus of entries against a free-text query for prompt injection.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from xelochat.config import KNOWLEDGE_CATEGORIES

logger = logging.getLogger(__name__)

# Points awarded per query term
TITLE_WEIGHT = 10
KEYWORD_WEIGHT = 5
CONTENT_WEIGHT = 2

# Terms shorter than this are ignored
MIN_TERM_LENGTH = 3


@dataclass(frozen=True)
class KnowledgeEntry:
    """A single reference entry in the knowledge corpus."""
    id: str
    category: str
    title: str
    content: str
    keywords: Tuple[str, ...] = ()
    related_topics: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.category not in KNOWLEDGE_CATEGORIES:
            raise ValueError(f"Unknown knowledge category '{self.category}' for entry {self.id}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to its wire format."""
        return {
            "id": self.id,
            "category": self.category,
            "title": self.title,
            "content": self.content,
            "keywords": list(self.keywords),
            "relatedTopics": list(self.related_topics)
        }


def tokenize_query(query: str) -> List[str]:
    """Lowercase and split a query on whitespace, dropping short terms."""
    return [term for term in query.lower().split() if len(term) >= MIN_TERM_LENGTH]


def score_entry(entry: KnowledgeEntry, terms: Iterable[str]) -> int:
    """
    Score an entry against already tokenized query terms.

    Each term adds TITLE_WEIGHT when it occurs in the title, KEYWORD_WEIGHT
    when it occurs in any keyword and CONTENT_WEIGHT when it occurs in the
    content. Matching is case-insensitive substring matching.
    """
    title = entry.title.lower()
    content = entry.content.lower()
    keywords = [keyword.lower() for keyword in entry.keywords]

    score = 0
    for term in terms:
        if term in title:
            score += TITLE_WEIGHT
        if any(term in keyword for keyword in keywords):
            score += KEYWORD_WEIGHT
        if term in content:
            score += CONTENT_WEIGHT
    return score


class KnowledgeBase:
    """
    Read-only corpus of knowledge entries.

    The corpus is fixed at construction time, so search can be called from
    concurrent requests without coordination.
    """

    def __init__(self, entries: Iterable[KnowledgeEntry]):
        self._entries: Tuple[KnowledgeEntry, ...] = tuple(entries)
        self._by_id: Dict[str, KnowledgeEntry] = {}

        for entry in self._entries:
            if entry.id in self._by_id:
                raise ValueError(f"Duplicate knowledge entry id: {entry.id}")
            self._by_id[entry.id] = entry

        logger.info(f"Knowledge base loaded with {len(self._entries)} entries")

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[KnowledgeEntry, ...]:
        return self._entries

    def get(self, entry_id: str) -> Optional[KnowledgeEntry]:
        """Get an entry by id."""
        return self._by_id.get(entry_id)

    def by_category(self, category: str) -> List[KnowledgeEntry]:
        """Get all entries in a category, in corpus order."""
        return [entry for entry in self._entries if entry.category == category]

    def search(self, query: str, limit: int = 3) -> List[KnowledgeEntry]:
        """
        Return up to `limit` entries relevant to `query`, best first.

        Entries scoring zero are left out entirely. Equal scores keep
        corpus order.
        """
        terms = tokenize_query(query)
        if not terms or limit <= 0:
            return []

        scored = []
        for entry in self._entries:
            score = score_entry(entry, terms)
            if score > 0:
                scored.append((score, entry))

        # list.sort is stable, ties stay in corpus order
        scored.sort(key=lambda item: item[0], reverse=True)

        results = [entry for _, entry in scored[:limit]]
        logger.debug(f"Knowledge search '{query}' matched {len(scored)} entries, returning {len(results)}")
        return results
