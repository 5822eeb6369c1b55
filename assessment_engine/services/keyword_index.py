"""
Keyword / Topic Index

Tokenization, stop-word filtering, Porter stemming and frequency ranking
of terms, plus the cosine and Jaccard similarity primitives shared by the
question synthesizer, topic filter and lexical answer scorer.
"""
import re
from collections import Counter
from functools import lru_cache
from typing import Iterable, List, Sequence

import numpy as np
from nltk.stem.porter import PorterStemmer


# Stop words for content-word extraction
STOP_WORDS = frozenset({
    'about', 'above', 'after', 'again', 'all', 'also', 'am', 'an', 'and',
    'another', 'any', 'are', 'as', 'at', 'be', 'because', 'been', 'before',
    'being', 'below', 'between', 'both', 'but', 'by', 'came', 'can', 'cannot',
    'come', 'could', 'did', 'do', 'does', 'doing', 'during', 'each', 'few',
    'for', 'from', 'further', 'get', 'got', 'has', 'had', 'he', 'have', 'her',
    'here', 'him', 'himself', 'his', 'how', 'if', 'in', 'into', 'is', 'it',
    'its', 'itself', 'like', 'make', 'many', 'me', 'might', 'more', 'most',
    'much', 'must', 'my', 'myself', 'never', 'now', 'of', 'on', 'only', 'or',
    'other', 'our', 'ours', 'ourselves', 'out', 'over', 'own', 'said', 'same',
    'see', 'should', 'since', 'so', 'some', 'still', 'such', 'take', 'than',
    'that', 'the', 'their', 'theirs', 'them', 'themselves', 'then', 'there',
    'these', 'they', 'this', 'those', 'through', 'to', 'too', 'under', 'until',
    'up', 'very', 'was', 'way', 'we', 'well', 'were', 'what', 'where', 'when',
    'which', 'while', 'who', 'whom', 'with', 'would', 'why', 'you', 'your',
    'yours', 'yourself', 'yourselves', 'will', 'shall', 'not', 'no', 'nor',
    'she', 'hers', 'herself', 'off', 'once', 'just', 'having', 'against',
    'a', 'i', 'us', 'may', 'every', 'either', 'neither', 'whether', 'upon',
})

_WORD_PATTERN = re.compile(r"[A-Za-z0-9_]+")
_ALPHA_PATTERN = re.compile(r"[a-z]+")

_stemmer = PorterStemmer()


def tokenize(text: str) -> List[str]:
    """Lowercase alphabetic word tokens, no filtering"""
    words = _WORD_PATTERN.findall(str(text or "").lower())
    return [w for w in words if _ALPHA_PATTERN.fullmatch(w)]


def content_tokens(text: str) -> List[str]:
    """Alphabetic tokens with stop words and tokens of 2 chars or fewer dropped"""
    return [t for t in tokenize(text) if t not in STOP_WORDS and len(t) > 2]


def top_keywords(text: str, k: int = 8) -> List[str]:
    """
    Most frequent content words of a text.

    Ties keep the order in which the words were first encountered.
    """
    return [word for word, _ in Counter(content_tokens(text)).most_common(k)]


@lru_cache(maxsize=8192)
def stem(word: str) -> str:
    return _stemmer.stem(word)


def sentence_stem_tokens(text: str) -> List[str]:
    """Content tokens reduced to their Porter stems (for similarity only)"""
    return [stem(t) for t in content_tokens(text)]


def stem_keywords(keywords: Iterable[str]) -> List[str]:
    return [stem(str(k).lower()) for k in keywords]


def cosine(tokens_a: Sequence[str], tokens_b: Sequence[str]) -> float:
    """
    Term-frequency cosine similarity.

    Returns 0.0 when either side is empty.
    """
    if not tokens_a or not tokens_b:
        return 0.0

    freq_a = Counter(tokens_a)
    freq_b = Counter(tokens_b)
    vocab = list(dict.fromkeys([*freq_a, *freq_b]))

    vec_a = np.array([freq_a.get(term, 0) for term in vocab], dtype=float)
    vec_b = np.array([freq_b.get(term, 0) for term in vocab], dtype=float)

    norm = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if not norm:
        return 0.0
    return float(np.dot(vec_a, vec_b) / norm)


def jaccard(tokens_a: Iterable[str], tokens_b: Iterable[str]) -> float:
    """Set intersection over set union; 0.0 when both sets are empty"""
    set_a, set_b = set(tokens_a), set(tokens_b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)
