"""
keywords.py — Sentiment Aura Engine · Fallback Keyword Miner
============================================================
Frequency-based keyword extraction used whenever the classifier supplies no
usable keyword list.  Unigrams weigh 1.0, bigrams 1.2 so that phrases win
ties against their component words.
"""

from __future__ import annotations

import re

STOPWORDS: frozenset[str] = frozenset({
    "the", "and", "a", "an", "in", "on", "at", "for", "to", "of", "is", "are",
    "was", "were", "it", "this", "that", "with", "as", "by", "from", "be",
    "have", "has", "had", "i", "we", "you", "they", "he", "she", "them",
    "but", "or", "not", "so", "if", "then", "there", "their", "our", "my", "your",
})

UNIGRAM_WEIGHT = 1.0
BIGRAM_WEIGHT  = 1.2
MIN_TOKEN_LEN  = 3

_NON_WORD_RE = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    return _NON_WORD_RE.sub(" ", text.lower()).split()


def extract_keywords(text: str, limit: int = 6) -> list[str]:
    """Return up to `limit` keywords/bigrams ranked by weight.

    Ties keep first-seen order (dict insertion order + stable sort).
    """
    if not text or not isinstance(text, str) or limit <= 0:
        return []

    tokens = tokenize(text)
    freq: dict[str, float] = {}

    for i, token in enumerate(tokens):
        if token in STOPWORDS or len(token) < MIN_TOKEN_LEN:
            continue
        freq[token] = freq.get(token, 0.0) + UNIGRAM_WEIGHT

        if i + 1 < len(tokens):
            following = tokens[i + 1]
            if following not in STOPWORDS:
                bigram = f"{token} {following}"
                freq[bigram] = freq.get(bigram, 0.0) + BIGRAM_WEIGHT

    ranked = sorted(freq.items(), key=lambda item: item[1], reverse=True)
    return [word.strip() for word, _ in ranked[:limit]]


def dedupe_keywords(keywords, cap: int) -> list[str]:
    """Case-insensitive de-duplication keeping first-seen casing and order."""
    seen: set[str] = set()
    out: list[str] = []
    for kw in keywords:
        word = str(kw).strip()
        key = word.lower()
        if not word or key in seen:
            continue
        seen.add(key)
        out.append(word)
        if len(out) >= cap:
            break
    return out
