"""
Session Scorer
==============

Pure in-memory reducer over practice outcomes.

    record(prediction, target):
        total += 1
        correct, current_streak += 1   if prediction.label == target
        current_streak = 0             otherwise
        best_streak = max(best_streak, current_streak)

No I/O and no exceptions; SessionStats is only ever mutated here.
"""

from signstream.models.state import PredictionResult, SessionStats


class SessionScorer:
    """Correct/total counters with current and best streak."""

    def __init__(self) -> None:
        self._stats = SessionStats()

    @property
    def stats(self) -> SessionStats:
        """Copy of the current counters."""
        return self._stats.model_copy()

    def record(self, prediction: PredictionResult, target_label: str) -> bool:
        """Score one prediction against the target label."""
        return self.record_outcome(prediction.label == target_label)

    def record_outcome(self, is_correct: bool) -> bool:
        """Score one already-judged outcome (e.g. server-computed correctness)."""
        stats = self._stats
        stats.total += 1
        if is_correct:
            stats.correct += 1
            stats.current_streak += 1
        else:
            stats.current_streak = 0
        stats.best_streak = max(stats.best_streak, stats.current_streak)
        return is_correct

    def reset(self) -> None:
        self._stats = SessionStats()
