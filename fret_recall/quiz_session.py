"""Quiz rounds over the fretboard: deck, answers and pitch hand-off."""

import random
from dataclasses import replace
from enum import Enum, auto
from typing import Any, Dict, Iterable, List, Optional, Union

from .core.config import Settings
from .errors import ConfigurationError
from .fretboard import FretboardModel, Tuning, reconcile_tuning
from .logger import get_logger
from .note_theory import (
    KEY_PREFERENCES,
    are_equivalent,
    nearest_note_name,
    note_variants,
    notes_for_quiz,
    pitch_class,
)
from .note_types import AnswerRecord, Card, Detected
from .stats import SessionStatistics

# Get logger for this module
logger = get_logger(__name__)

# Answers considered when weighting the deck
BIAS_WINDOW = 200

# Settings whose change invalidates the deck and the current card
SESSION_FIELDS = (
    "fret_count",
    "show_accidentals",
    "num_strings",
    "tuning",
    "enable_bias",
    "score_key",
)


class SessionState(Enum):
    IDLE = auto()  # Constructed, make_session not called yet
    IN_PROGRESS = auto()  # A card is showing
    EVALUATING = auto()  # The current card has a recorded answer
    BETWEEN_CARDS = auto()
    UNCONFIGURED = auto()  # No valid card can be made until reconfigured


class QuizSession:
    """Fretboard quiz: deals cards, checks answers and keeps statistics.

    Everything here is synchronous. Pitch answers from the audio thread come
    in through a DetectionChannel drained by ``consume_detection``.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()
        self.state = SessionState.IDLE

        self._settings: Optional[Settings] = None
        self._statistics: Optional[SessionStatistics] = None
        self._fretboard: Optional[FretboardModel] = None
        self._channel = None

        self._deck: List[Card] = []
        self._index = 0
        self._current: Optional[Card] = None
        self._found_frets: List[int] = []
        self._answered = False
        self._completed = 0
        self._skipped = 0
        self._next_card_id = 1
        self._consumed_card_id: Optional[int] = None
        self.consecutive_mistakes = 0
        self.last_detection: Optional[Detected] = None

    # Configuration

    @property
    def settings(self) -> Optional[Settings]:
        return self._settings

    @property
    def statistics(self) -> SessionStatistics:
        if self._statistics is None:
            self._statistics = SessionStatistics()
        return self._statistics

    @property
    def fretboard(self) -> Optional[FretboardModel]:
        return self._fretboard

    @property
    def current_card(self) -> Optional[Card]:
        return self._current

    def attach_channel(self, channel) -> None:
        """Use ``channel`` for pitch answers; it is opened per card."""
        self._channel = channel
        if channel is not None and self._current is not None:
            channel.open(self._current.card_id)

    def make_session(
        self,
        settings: Optional[Settings] = None,
        statistics: Optional[SessionStatistics] = None,
        tuning: Union[Tuning, Iterable[str], None] = None,
    ) -> bool:
        """Configure a new session and deal a fresh deck.

        Historical statistics are kept. An explicit ``tuning`` replaces the
        settings' tuning; either way the tuning is fitted to
        ``settings.num_strings``.

        Returns:
            True if the session can deal cards, False on a configuration error
        """
        self._discard_card()
        if statistics is not None:
            self._statistics = statistics
        settings = settings or self._settings or Settings()

        try:
            if tuning is not None:
                if not isinstance(tuning, Tuning):
                    tuning = Tuning.from_names(tuning)
                settings = replace(settings, tuning=tuning)
            settings = _fit_tuning(settings)
            settings.validate()
            fretboard = FretboardModel(settings.tuning, settings.fret_count)
        except ConfigurationError as e:
            logger.error(f"Cannot start session: {e}")
            self._settings = settings
            self._fretboard = None
            self._deck = []
            self._index = 0
            self.state = SessionState.UNCONFIGURED
            return False

        self._settings = settings
        self._fretboard = fretboard
        self._start_round()
        return bool(self._deck)

    def update_settings(self, settings: Settings) -> bool:
        """Swap in new settings; returns True if the session was rebuilt.

        Changing anything that affects the deck discards the current card so
        no answer is checked against the old configuration.
        """
        previous = self._settings
        try:
            settings = _fit_tuning(settings)
        except ConfigurationError:
            # make_session reports it
            previous = None
        needs_new_session = previous is None or any(
            getattr(previous, name) != getattr(settings, name) for name in SESSION_FIELDS
        )
        if needs_new_session or self.state == SessionState.UNCONFIGURED:
            self.make_session(settings)
            return True
        self._settings = settings
        return False

    def update_tuning(self, tuning: Tuning) -> bool:
        base = self._settings or Settings()
        return self.update_settings(replace(base, tuning=tuning, num_strings=len(tuning)))

    def reset_tuning_to_standard(self) -> bool:
        """Apply the 6-string standard tuning, whatever the current string count."""
        base = self._settings or Settings()
        return self.update_settings(base.with_standard_tuning())

    # Deck

    def _start_round(self) -> None:
        self._deck = self._build_deck()
        self._index = 0
        self._completed = 0
        self._skipped = 0
        self.consecutive_mistakes = 0
        if self._deck:
            self.state = SessionState.BETWEEN_CARDS
        else:
            logger.error("No valid cards for the current settings")
            self.state = SessionState.UNCONFIGURED

    def _build_deck(self) -> List[Card]:
        settings = self._settings
        pitch_classes = sorted({pitch_class(n) for n in notes_for_quiz(settings.show_accidentals)})

        cards = []
        for s in range(self._fretboard.num_strings):
            for pc in pitch_classes:
                frets = self._fretboard.valid_frets(s, pc)
                if frets:
                    cards.append(
                        Card(
                            note=self._display_note(pc),
                            pitch_class=pc,
                            string_index=s,
                            frets=tuple(frets),
                        )
                    )

        logger.debug(f"Built deck of {len(cards)} cards")
        return self._weighted_shuffle(cards)

    def _display_note(self, pc: int) -> str:
        """Spell a pitch class for the card.

        Keys with accidentals decide; in C any spelling of the pitch class
        may be dealt.
        """
        key = self._settings.score_key
        preferred = None
        if not KEY_PREFERENCES.get(key):
            preferred = self._rng.choice(note_variants(pc))
        return nearest_note_name(pc, preferred, key)

    def _card_weights(self, cards: List[Card]) -> Optional[List[float]]:
        if not self._settings.enable_bias or len(self.statistics) == 0:
            return None
        mistakes = self.statistics.mistakes_by_pitch_class(
            window=BIAS_WINDOW, tuning=self._settings.tuning.names()
        )
        if not mistakes:
            return None
        base = [1.0 + mistakes.get(card.pitch_class, 0) for card in cards]
        avg = sum(base) / len(base)
        # Keep weak notes frequent without starving the rest of the deck
        return [min(avg * 3, max(avg / 3, w)) for w in base]

    def _weighted_shuffle(self, cards: List[Card]) -> List[Card]:
        if not cards:
            return []
        weights = self._card_weights(cards)
        if weights is None:
            shuffled = list(cards)
            self._rng.shuffle(shuffled)
            return shuffled

        remaining = list(zip(cards, weights))
        result = []
        total = sum(weights)
        while remaining:
            pick = self._rng.random() * total
            cumulative = 0.0
            for i, (card, weight) in enumerate(remaining):
                cumulative += weight
                if pick < cumulative or i == len(remaining) - 1:
                    result.append(card)
                    total -= weight
                    del remaining[i]
                    break
        return result

    # Rounds

    def show_card(self) -> Optional[Card]:
        """Show the current card, dealing the next one if none is showing.

        Returns:
            The card, or None when the configuration allows no card at all
        """
        if self._current is not None:
            return self._current
        if self.state in (SessionState.IDLE, SessionState.UNCONFIGURED) or not self._deck:
            logger.error("No valid card: session is not configured")
            return None

        if self._index >= len(self._deck):
            logger.info("Session complete! Dealing a new deck")
            self._start_round()
            if not self._deck:
                return None

        card = replace(self._deck[self._index], card_id=self._next_card_id)
        self._next_card_id += 1
        self._current = card
        self._found_frets = []
        self._answered = False
        self.last_detection = None
        self.state = SessionState.IN_PROGRESS
        if self._channel is not None:
            self._channel.open(card.card_id)
        logger.debug(f"Showing card {card}")
        return card

    def next_card(self) -> Optional[Card]:
        """Discard the current card and show the next one.

        A card left without a recorded answer counts as skipped.
        """
        if self._current is not None:
            if self._answered:
                self._completed += 1
            else:
                self._skipped += 1
            self._index += 1
        self._discard_card()
        if self.state != SessionState.UNCONFIGURED and self._deck:
            self.state = SessionState.BETWEEN_CARDS
        return self.show_card()

    def _discard_card(self) -> None:
        self._current = None
        self._found_frets = []
        self._answered = False
        if self._channel is not None:
            self._channel.close()

    # Answers

    def check_answer(self, string_index: Any, fret: Any) -> bool:
        """True iff the position is on the card's string and sounds its note.

        Out-of-range or malformed positions are simply wrong.
        """
        card = self._current
        if card is None or self._fretboard is None:
            return False
        if not _is_int(string_index) or not _is_int(fret):
            return False
        if not 0 <= fret <= self._fretboard.max_fret:
            return False

        is_correct = card.string_index == string_index and fret in card.frets
        if is_correct and fret not in self._found_frets:
            self._found_frets.append(fret)
        return is_correct

    def check_pitch(self, detected_pitch_index: Any) -> bool:
        """True iff the detected pitch has the card's pitch class, in any octave."""
        card = self._current
        if card is None or not _is_int(detected_pitch_index):
            return False
        if not 0 <= detected_pitch_index <= 127:
            return False
        detected_note = nearest_note_name(detected_pitch_index, card.note)
        return are_equivalent(detected_note, card.note)

    def fret_for_pitch(self, pitch_index: int) -> Optional[int]:
        """The fret on the card's string sounding exactly this pitch, if any."""
        card = self._current
        if card is None or self._fretboard is None or not _is_int(pitch_index):
            return None
        return self._fretboard.fret_for_pitch(card.string_index, pitch_index)

    def found_frets(self) -> List[int]:
        return list(self._found_frets)

    def is_card_complete(self) -> bool:
        """True once every valid fret of the card has been found."""
        card = self._current
        if card is None:
            return False
        return len(self._found_frets) == len(card.frets)

    def record_answer(self, correct: bool, string_index: int, fret: int) -> AnswerRecord:
        """Append an answer to the statistics. Never deduplicates."""
        card = self._current
        if card is None:
            logger.warning("Recording an answer with no card showing")
        record = AnswerRecord(
            correct=bool(correct),
            string=string_index,
            fret=fret,
            note=card.note if card else None,
            pitch_class=card.pitch_class if card else None,
            tuning=tuple(self._settings.tuning.names()) if self._settings else None,
        )
        self.statistics.append(record)

        if correct:
            self.consecutive_mistakes = 0
        else:
            self.consecutive_mistakes += 1

        if card is not None:
            self._answered = True
            self.state = SessionState.EVALUATING
        logger.debug(f"Recorded answer: {record}")
        return record

    def consume_detection(self, channel=None) -> Optional[bool]:
        """Apply at most one pitch detection to the current card.

        Drains the channel; results stamped for another card, or arriving after
        this card already took one, are dropped.

        Returns:
            The check_pitch outcome, or None if no detection applied
        """
        channel = channel or self._channel
        if channel is None:
            return None

        outcome = None
        for card_id, result in channel.drain():
            card = self._current
            if card is None or card_id != card.card_id:
                logger.debug(f"Dropping late detection for card {card_id}")
                continue
            if not isinstance(result, Detected):
                continue
            if self._consumed_card_id == card.card_id:
                continue
            self._consumed_card_id = card.card_id
            self.last_detection = result
            outcome = self.check_pitch(result.pitch_index)
            logger.info(
                f"Pitch answer {result.pitch_index} for {card.note}: "
                f"{'correct' if outcome else 'wrong'}"
            )
        return outcome

    def get_session_stats(self) -> Dict[str, int]:
        total = len(self._deck)
        return {
            "current": self._completed,
            "total": total,
            "remaining": max(0, total - self._index),
            "skipped": self._skipped,
        }


def _fit_tuning(settings: Settings) -> Settings:
    """Fit the settings' tuning to its string count."""
    if not isinstance(settings.tuning, Tuning):
        return settings
    return replace(settings, tuning=reconcile_tuning(settings.tuning, settings.num_strings))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
