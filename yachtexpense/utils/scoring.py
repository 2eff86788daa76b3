"""
Pure decision functions for a local extraction.

- classify_strength: category match score -> strong / weak / none
- classify_confidence: amount + category presence -> high / medium / low
- decide_escalation: whether the local result can skip the remote call

None of these touch I/O or state; the service composes them.
"""

from yachtexpense.models.extraction import (
    ConfidenceLevel,
    EscalationState,
    MatchStrength,
)

__all__ = ['classify_strength', 'classify_confidence', 'decide_escalation']


def classify_strength(score: int, strong_threshold: int = 20) -> MatchStrength:
    """
    Bucket a category score.

    score >= strong_threshold is strong, any positive score below it is weak,
    zero is none.

    Examples:
        >>> classify_strength(20)
        <MatchStrength.STRONG: 'strong'>
        >>> classify_strength(19)
        <MatchStrength.WEAK: 'weak'>
    """
    if score >= strong_threshold:
        return MatchStrength.STRONG
    if score > 0:
        return MatchStrength.WEAK
    return MatchStrength.NONE


def classify_confidence(has_amount: bool, has_category: bool) -> ConfidenceLevel:
    if has_amount and has_category:
        return ConfidenceLevel.HIGH
    if has_amount or has_category:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def decide_escalation(has_amount: bool, strength: MatchStrength) -> EscalationState:
    """
    Decide whether the local result is trustworthy enough on its own.

    Only an amount backed by a strong category match resolves locally.
    Everything else asks for the remote fallback; the caller downgrades to
    LOCAL_ONLY when the fallback is unavailable.
    """
    if not has_amount:
        return EscalationState.NEEDS_REMOTE
    if strength == MatchStrength.STRONG:
        return EscalationState.RESOLVED
    return EscalationState.NEEDS_REMOTE
