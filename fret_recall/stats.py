import os
import json
from collections import Counter
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .logger import get_logger
from .note_types import AnswerRecord

# Get logger for this module
logger = get_logger(__name__)

STATS_FILENAME = "statistics.json"


class SessionStatistics:
    """Append-only log of answers.

    Shared by reference with whatever reports on it; only the quiz session
    appends. Resetting statistics means starting a new instance.
    """

    def __init__(self, answers: Optional[Sequence[AnswerRecord]] = None):
        self._answers: List[AnswerRecord] = list(answers or [])

    def append(self, record: AnswerRecord) -> None:
        self._answers.append(record)

    @property
    def answers(self) -> Tuple[AnswerRecord, ...]:
        return tuple(self._answers)

    def __len__(self) -> int:
        return len(self._answers)

    def __iter__(self) -> Iterator[AnswerRecord]:
        return iter(tuple(self._answers))

    def recent(
        self, window: Optional[int] = None, tuning: Optional[Sequence[str]] = None
    ) -> List[AnswerRecord]:
        """The most recent records, optionally only those made under a tuning.

        Records that carry no tuning match any tuning.
        """
        records = self._answers
        if tuning is not None:
            wanted = tuple(tuning)
            records = [r for r in records if r.tuning is None or r.tuning == wanted]
        if window is not None:
            records = records[-window:] if window > 0 else []
        return list(records)

    def mistakes_by_pitch_class(
        self, window: Optional[int] = None, tuning: Optional[Sequence[str]] = None
    ) -> Dict[int, int]:
        counts = Counter(
            r.pitch_class
            for r in self.recent(window, tuning)
            if not r.correct and r.pitch_class is not None
        )
        return dict(counts)

    def accuracy_by_pitch_class(
        self, window: Optional[int] = None, tuning: Optional[Sequence[str]] = None
    ) -> Dict[int, float]:
        totals: Counter = Counter()
        correct: Counter = Counter()
        for r in self.recent(window, tuning):
            if r.pitch_class is None:
                continue
            totals[r.pitch_class] += 1
            if r.correct:
                correct[r.pitch_class] += 1
        return {pc: correct[pc] / n for pc, n in totals.items()}

    def summary(self) -> Dict[str, Any]:
        total = len(self._answers)
        correct = sum(1 for r in self._answers if r.correct)
        return {
            "total": total,
            "correct": correct,
            "accuracy": correct / total if total else 0.0,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answers": [
                {
                    "correct": r.correct,
                    "stringIndex": r.string,
                    "fret": r.fret,
                    "timestamp": r.timestamp,
                    "note": r.note,
                    "pitchClass": r.pitch_class,
                    "tuning": list(r.tuning) if r.tuning is not None else None,
                }
                for r in self._answers
            ]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionStatistics":
        """Rebuild statistics, skipping malformed records."""
        records = []
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed statistics: {type(data).__name__}")
            return cls(records)
        for raw in data.get("answers") or []:
            try:
                tuning = raw.get("tuning")
                records.append(
                    AnswerRecord(
                        correct=bool(raw["correct"]),
                        string=int(raw["stringIndex"]),
                        fret=int(raw["fret"]),
                        timestamp=float(raw.get("timestamp", 0.0)),
                        note=raw.get("note"),
                        pitch_class=raw.get("pitchClass"),
                        tuning=tuple(tuning) if tuning is not None else None,
                    )
                )
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed answer record {raw!r}: {e}")
        return cls(records)


def load_stats(path: str) -> SessionStatistics:
    if not os.path.exists(path):
        return SessionStatistics()
    try:
        with open(path, "r") as f:
            return SessionStatistics.from_dict(json.load(f))
    except (OSError, ValueError) as e:
        logger.error(f"Error loading statistics from {path}: {e}")
        return SessionStatistics()


def save_stats(stats: SessionStatistics, path: str) -> bool:
    try:
        with open(path, "w") as f:
            json.dump(stats.to_dict(), f, indent=2)
        return True
    except OSError as e:
        logger.error(f"Error saving statistics to {path}: {e}")
        return False
