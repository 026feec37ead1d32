import math
import re
from collections import Counter
from typing import Callable, Dict, Iterable, List, Sequence, TypeVar

T = TypeVar("T")

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def tokenize(text) -> List[str]:
    """Lower-case, replace anything outside ``[a-z0-9]`` and whitespace, split."""
    return _NON_ALNUM.sub(" ", str(text or "").lower()).split()


class Bm25Index:
    """
    Okapi BM25 over a fixed list of documents.

    The index is built once per query and thrown away; it holds no state shared
    between callers. IDF uses ``log(1 + (N - n + 0.5) / (n + 0.5))`` so terms present
    in every document still contribute a small positive weight.
    """

    def __init__(self, documents: Iterable[str], k1: float = 1.5, b: float = 0.75):
        self.k1 = k1
        self.b = b
        self.term_freqs: List[Counter] = [Counter(tokenize(doc)) for doc in documents]
        self.doc_lengths: List[int] = [sum(tf.values()) for tf in self.term_freqs]
        self.n_docs = len(self.term_freqs)
        total = sum(self.doc_lengths)
        self.avg_doc_length = (total / self.n_docs) if self.n_docs and total else 1.0

        self.doc_freq: Dict[str, int] = Counter()
        for tf in self.term_freqs:
            self.doc_freq.update(tf.keys())

    @classmethod
    def from_items(cls, items: Sequence[T], text_of: Callable[[T], str], **kwargs) -> "Bm25Index":
        return cls([text_of(item) for item in items], **kwargs)

    def idf(self, term: str) -> float:
        n = self.doc_freq.get(term, 0)
        return math.log(1 + (self.n_docs - n + 0.5) / (n + 0.5))

    def score(self, doc_index: int, query_tokens: Sequence[str]) -> float:
        if doc_index < 0 or doc_index >= self.n_docs or not query_tokens:
            return 0.0
        tf = self.term_freqs[doc_index]
        doc_len = self.doc_lengths[doc_index]
        if not doc_len:
            return 0.0

        total = 0.0
        for term in set(query_tokens):
            f = tf.get(term, 0)
            if not f:
                continue
            denom = f + self.k1 * (1 - self.b + self.b * doc_len / self.avg_doc_length)
            total += self.idf(term) * (f * (self.k1 + 1)) / (denom or 1)
        return total if math.isfinite(total) else 0.0

    def scores(self, query_tokens: Sequence[str]) -> List[float]:
        return [self.score(i, query_tokens) for i in range(self.n_docs)]
