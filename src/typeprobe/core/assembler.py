"""Turn index evidence into ranked outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .confidence import ConfidenceStack, clamp_percentage
from .index import PatternEvidence, Probe
from .types import Definition, Outcome, normalise_extension

Scorer = Callable[[PatternEvidence], int]


def percentage_for(evidence: PatternEvidence) -> float:
    """Matched evidence weight as a percentage of the required weight."""

    if evidence.strict:
        return 100.0
    if evidence.required_weight <= 0:
        return 0.0
    return clamp_percentage(evidence.matched_weight / evidence.required_weight * 100)


def _ranking_key(outcome: Outcome) -> Tuple[float, int, int, int, int]:
    return (
        -outcome.percentage,
        -outcome.points,
        -outcome.definition.priority_level,
        0 if outcome.extension_hint else 1,
        outcome.order,
    )


def rank(outcomes: Iterable[Outcome]) -> List[Outcome]:
    """Order outcomes best first.

    Percentage, then points, then priority level (all descending); an
    extension hint match wins the next tie and corpus order settles the rest.
    """

    return sorted(outcomes, key=_ranking_key)


def assemble(
    evidence: Iterable[PatternEvidence],
    scorer: Scorer,
    *,
    extension: Optional[str] = None,
    strict: bool = False,
) -> List[Outcome]:
    """Score and rank ``evidence``; zero-percentage candidates are dropped."""

    hint = normalise_extension(extension)
    outcomes: List[Outcome] = []
    for item in evidence:
        if strict and not item.strict:
            continue
        percentage = percentage_for(item)
        if percentage <= 0:
            continue
        outcomes.append(
            Outcome(
                definition=item.definition,
                percentage=percentage,
                points=scorer(item),
                pattern_count=item.patterns,
                string_count=item.textual,
                global_strings=item.strings,
                order=item.order,
                strict=item.strict,
                extension_hint=bool(hint) and hint in item.definition.extensions,
            )
        )
    return rank(outcomes)


def assemble_probe(
    probe: Probe,
    scorer: Scorer,
    *,
    extension: Optional[str] = None,
    strict: bool = False,
) -> List[Outcome]:
    return assemble(probe.evidence, scorer, extension=extension, strict=strict)


@dataclass(frozen=True)
class Report:
    """Ranked outcomes for one candidate with aggregated views."""

    outcomes: Tuple[Outcome, ...] = ()
    source: Optional[str] = None
    bytes_sampled: int = 0
    notes: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcomes", tuple(self.outcomes))
        object.__setattr__(self, "notes", tuple(self.notes))

    @property
    def best(self) -> Optional[Outcome]:
        return self.outcomes[0] if self.outcomes else None

    @property
    def is_empty(self) -> bool:
        return not self.outcomes

    def _stack(self, subjects: Callable[[Outcome], Sequence[str]], key=None) -> ConfidenceStack:
        stack: ConfidenceStack = ConfidenceStack(key=key)
        for outcome in self.outcomes:
            for subject in subjects(outcome):
                stack.push(subject, outcome.percentage)
        return stack

    @property
    def definitions(self) -> ConfidenceStack[Definition]:
        return self._stack(lambda outcome: (outcome.definition,))

    @property
    def mime_types(self) -> ConfidenceStack[str]:
        return self._stack(
            lambda outcome: (outcome.definition.mime_type,),
            key=lambda value: value.lower(),
        )

    @property
    def extensions(self) -> ConfidenceStack[str]:
        return self._stack(lambda outcome: outcome.definition.extensions)

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "bytes_sampled": self.bytes_sampled,
            "notes": list(self.notes),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }