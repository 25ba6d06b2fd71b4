"""Confidence values with subject-only identity.

Two :class:`Confidence` objects are equal when their subjects are, whatever
their values. Deduplicating containers therefore keep the first entry for a
subject; callers that want the highest (or latest) value must ask for it
explicitly through :func:`keep_highest` or :func:`keep_latest`.

>>> Confidence("pdf", 80.0) == Confidence("pdf", 95.0)
True
>>> len({Confidence("pdf", 80.0), Confidence("pdf", 95.0)})
1
"""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Hashable,
    Iterable,
    Iterator,
    List,
    Optional,
    TypeVar,
)

T = TypeVar("T")

KeyFunc = Callable[[Any], Hashable]

MIN_VALUE = 0.0
MAX_VALUE = 100.0


def _identity(subject: Any) -> Hashable:
    return subject


def clamp_percentage(value: float) -> float:
    return max(MIN_VALUE, min(MAX_VALUE, float(value)))


class Confidence(Generic[T]):
    """A subject paired with a percentage in ``[0, 100]``."""

    __slots__ = ("subject", "value", "_key")

    def __init__(self, subject: T, value: float, key: Optional[KeyFunc] = None) -> None:
        if subject is None:
            raise ValueError("Confidence subject must not be None")
        self.subject = subject
        self.value = clamp_percentage(value)
        self._key = key or _identity

    @property
    def identity(self) -> Hashable:
        return self._key(self.subject)

    def with_value(self, value: float) -> "Confidence[T]":
        return Confidence(self.subject, value, self._key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __repr__(self) -> str:
        return f"Confidence(subject={self.subject!r}, value={self.value:.2f})"

    def __str__(self) -> str:
        return f"{self.subject} ({self.value:.2f}%)"


def keep_highest(confidences: Iterable[Confidence[T]]) -> List[Confidence[T]]:
    """Deduplicate by subject keeping the highest value, in first-seen order."""

    chosen: Dict[Hashable, Confidence[T]] = {}
    for confidence in confidences:
        current = chosen.get(confidence.identity)
        if current is None or confidence.value > current.value:
            chosen[confidence.identity] = confidence
    return list(chosen.values())


def keep_latest(confidences: Iterable[Confidence[T]]) -> List[Confidence[T]]:
    chosen: Dict[Hashable, Confidence[T]] = {}
    for confidence in confidences:
        chosen[confidence.identity] = confidence
    return list(chosen.values())


class ConfidenceStack(Generic[T]):
    """Accumulates scores per subject and reports each as a share of the total.

    >>> stack = ConfidenceStack()
    >>> stack.push("pdf", 3)
    >>> stack.push("zip")
    >>> [str(item) for item in stack]
    ['pdf (75.00%)', 'zip (25.00%)']
    """

    def __init__(self, key: Optional[KeyFunc] = None) -> None:
        self._key = key or _identity
        self._subjects: Dict[Hashable, T] = {}
        self._scores: Dict[Hashable, float] = {}
        self._total = 0.0

    @property
    def total_score(self) -> float:
        return self._total

    def push(self, subject: T, score: float = 1) -> None:
        if subject is None:
            raise ValueError("Confidence subject must not be None")
        if score < 0:
            raise ValueError("score must not be negative")
        identity = self._key(subject)
        if identity not in self._subjects:
            self._subjects[identity] = subject
            self._scores[identity] = 0.0
        self._scores[identity] += score
        self._total += score

    def push_many(self, subjects: Iterable[T], score: float = 1) -> None:
        for subject in subjects:
            self.push(subject, score)

    def pop(self, subject: Optional[T] = None) -> Confidence[T]:
        """Remove and return ``subject`` (or the top entry when omitted)."""

        if subject is None:
            if not self._scores:
                raise KeyError("pop from an empty ConfidenceStack")
            top = self.to_list()[0]
            identity = top.identity
        else:
            identity = self._key(subject)
            if identity not in self._scores:
                raise KeyError(subject)
            top = self._confidence(identity)
        self._total -= self._scores.pop(identity)
        del self._subjects[identity]
        return top

    def peek(self) -> Optional[Confidence[T]]:
        ranked = self.to_list()
        return ranked[0] if ranked else None

    def score_of(self, subject: T) -> float:
        return self._scores.get(self._key(subject), 0.0)

    def _confidence(self, identity: Hashable) -> Confidence[T]:
        share = self._scores[identity] / self._total * 100 if self._total else 0.0
        return Confidence(self._subjects[identity], share, self._key)

    def to_list(self) -> List[Confidence[T]]:
        """Entries by share, highest first; equal shares keep push order."""

        order = {identity: index for index, identity in enumerate(self._subjects)}
        identities = sorted(
            self._scores,
            key=lambda identity: (-self._scores[identity], order[identity]),
        )
        return [self._confidence(identity) for identity in identities]

    def clear(self) -> None:
        self._subjects.clear()
        self._scores.clear()
        self._total = 0.0

    def __iter__(self) -> Iterator[Confidence[T]]:
        return iter(self.to_list())

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, subject: object) -> bool:
        return self._key(subject) in self._scores
