"""Main entry point for the Fret Recall CLI."""

import sys
import time
import random
import argparse
from dataclasses import replace
from typing import Callable, List, Optional

from ..core.config import ConfigManager, Settings
from ..core.events import DetectionEventType
from ..detection.pitch_detector import PitchDetector
from ..errors import ConfigurationError
from ..logger import get_logger
from ..logging_config import setup_logging
from ..note_matcher import parse_note
from ..note_theory import midi, midi_to_frequency, note_and_octave, ordinal
from ..note_types import Card, Detected
from ..quiz_session import QuizSession
from ..tones import generate_tone, write_wav

logger = get_logger(__name__)

# Seconds to wait for a sung or played answer before skipping the card
MIC_ANSWER_TIMEOUT = 10.0
MIC_POLL_INTERVAL = 0.05
# Misses in a row before the card's note is repeated
MISTAKE_REPEAT = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fret Recall - Fretboard Note Trainer")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Quiz command
    quiz_parser = subparsers.add_parser("quiz", help="Find notes on the fretboard")
    quiz_parser.add_argument(
        "--strings", type=int, default=None, help="Number of strings (3-10)"
    )
    quiz_parser.add_argument(
        "--frets", type=int, default=None, help="Highest fret in play (11-24)"
    )
    quiz_parser.add_argument(
        "--accidentals", action="store_true", help="Include sharps and flats"
    )
    quiz_parser.add_argument(
        "--no-bias", action="store_true", help="Do not favour frequently missed notes"
    )
    quiz_parser.add_argument(
        "--rounds", type=int, default=10, help="Number of cards to play (default: 10)"
    )
    quiz_parser.add_argument(
        "--config-dir", default=None, help="Settings directory (default: ~/.config/fret_recall)"
    )
    quiz_parser.add_argument(
        "--mic", action="store_true", help="Answer by playing the note instead of typing"
    )
    quiz_parser.add_argument(
        "--device", type=int, default=None, help="Audio input device ID"
    )
    quiz_parser.add_argument(
        "--timeout", type=float, default=None, help="Pause in seconds before the next card (0-10)"
    )
    quiz_parser.add_argument(
        "--hide-note", action="store_true", help="Play the note instead of naming it"
    )
    quiz_parser.add_argument("--seed", type=int, default=None, help=argparse.SUPPRESS)

    # Detect command
    detect_parser = subparsers.add_parser("detect", help="Detect notes in a WAV file")
    detect_parser.add_argument("file", help="Path to a WAV file")
    detect_parser.add_argument(
        "--method",
        choices=["autocorrelation", "yin"],
        default="autocorrelation",
        help="Pitch estimator (yin needs aubio)",
    )
    detect_parser.add_argument(
        "--frame-size", type=int, default=2048, help="Samples per analysis frame"
    )

    # Listen command
    listen_parser = subparsers.add_parser("listen", help="Detect notes from the microphone")
    listen_parser.add_argument(
        "--duration", type=float, default=10.0, help="Listening time in seconds"
    )
    listen_parser.add_argument(
        "--device", type=int, default=None, help="Audio input device ID"
    )
    listen_parser.add_argument(
        "--sample-rate", type=int, default=44100, help="Audio sample rate in Hz"
    )

    # Tone command
    tone_parser = subparsers.add_parser("tone", help="Write a reference tone to a WAV file")
    tone_parser.add_argument("note", help="Note in scientific pitch notation, e.g. A4")
    tone_parser.add_argument("output", help="Output WAV path")
    tone_parser.add_argument(
        "--duration", type=float, default=0.8, help="Tone length in seconds"
    )

    # Devices command
    subparsers.add_parser("devices", help="List audio input devices")

    return parser


def describe_pitch(pitch_index: int, key_signature: str = "C") -> str:
    name, octave = note_and_octave(pitch_index, key_signature=key_signature)
    return f"{name}{octave}"


def card_prompt(card: Card, num_strings: int, hide_note: bool = False) -> str:
    # Strings are counted from the highest, as guitarists do
    string_name = ordinal(num_strings - card.string_index)
    if hide_note:
        return f"Find the note you hear on the {string_name} string"
    return f"Find {card.note} on the {string_name} string"


def play_reference(session: QuizSession, card: Card) -> bool:
    """Play the card's note at its lowest fret; False if nothing could play."""
    pitch = session.fretboard.pitch_at(card.string_index, card.frets[0])
    try:
        from ..services.microphone import play_samples

        play_samples(generate_tone(midi_to_frequency(pitch)))
    except Exception as e:
        logger.warning(f"Cannot play reference tone: {e}")
        return False
    return True


def run_detect(args) -> int:
    from ..services.audio_providers import WavFileAudioProvider

    try:
        provider = WavFileAudioProvider(args.file, chunk_size=args.frame_size, realtime=False)
        detector = PitchDetector(
            sample_rate=provider.sample_rate, frame_size=args.frame_size, method=args.method
        )
    except (RuntimeError, OSError, ValueError, ImportError) as e:
        logger.error(f"Cannot analyse {args.file}: {e}")
        return 1

    last_pitch = None
    detections = 0
    for i, frame in enumerate(provider.iter_frames()):
        result = detector.process(frame)
        if not isinstance(result, Detected):
            last_pitch = None
            continue
        if result.pitch_index == last_pitch:
            continue
        last_pitch = result.pitch_index
        detections += 1
        timestamp = i * args.frame_size / provider.sample_rate
        print(
            f"[{timestamp:6.2f}s] {describe_pitch(result.pitch_index)} "
            f"({result.frequency:.1f}Hz, clarity: {result.confidence:.2f})"
        )

    print(f"{detections} notes detected")
    return 0


def run_listen(args) -> int:
    from ..services.detection_service import DetectionService
    from ..services.microphone import LiveAudioProvider

    provider = LiveAudioProvider(device_id=args.device, sample_rate=args.sample_rate)
    service = DetectionService(provider)
    detected: List[Detected] = []

    def note_callback(result: Detected):
        detected.append(result)
        print(
            f"{describe_pitch(result.pitch_index)} ({result.frequency:.1f}Hz, "
            f"clarity: {result.confidence:.2f}, level: {service.level:.2f})"
        )

    service.events.on(DetectionEventType.NOTE_DETECTED, note_callback)
    logger.info(f"Listening for {args.duration} seconds...")
    if not service.start():
        return 1
    try:
        time.sleep(args.duration)
    except KeyboardInterrupt:
        logger.info("Listening interrupted by user")
    finally:
        service.stop()

    logger.info(f"Detected {len(detected)} notes")
    return 0


def run_tone(args) -> int:
    parsed = parse_note(args.note)
    if parsed is None:
        logger.error(f"Invalid note: {args.note}")
        return 1
    name, octave = parsed
    pitch = midi(name, 4 if octave is None else octave)
    if pitch is None:
        logger.error(f"Note out of range: {args.note}")
        return 1

    frequency = midi_to_frequency(pitch)
    write_wav(args.output, generate_tone(frequency, args.duration))
    print(f"Wrote {name}{4 if octave is None else octave} ({frequency:.2f}Hz) to {args.output}")
    return 0


def run_devices(_args) -> int:
    from ..services.microphone import list_input_devices

    devices = list_input_devices()
    if not devices:
        print("No audio input devices found")
        return 1
    print("Available input devices:")
    print("-" * 70)
    for device in devices:
        print(f"Device {device['id']}: {device['name']}")
        print(f"  Max input channels: {device['channels']}")
        print(f"  Default sample rate: {device['default_samplerate']} Hz")
    return 0


def quiz_settings(args, settings: Settings) -> Settings:
    """Apply command line overrides; raises ConfigurationError."""
    if args.strings is not None:
        settings = settings.with_num_strings(args.strings)
    if args.frets is not None:
        settings = replace(settings, fret_count=args.frets)
    if args.accidentals:
        settings = replace(settings, show_accidentals=True)
    if args.no_bias:
        settings = replace(settings, enable_bias=False)
    if args.timeout is not None:
        settings = replace(settings, timeout_seconds=args.timeout)
    if args.hide_note:
        settings = replace(settings, hide_quiz_note=True)
    return settings.validate()


def _typed_answer(
    session: QuizSession, card: Card, input_func: Callable[[str], str]
) -> Optional[bool]:
    """Ask for a fret; None means skip, and EOFError/'q' propagate as quit."""
    answer = input_func("Fret (enter to skip, q to quit): ").strip().lower()
    if answer == "q":
        raise EOFError
    if not answer:
        return None
    try:
        fret = int(answer)
    except ValueError:
        fret = -1
    correct = session.check_answer(card.string_index, fret)
    session.record_answer(correct, card.string_index, fret)
    return correct


def _played_answer(session: QuizSession, card: Card) -> Optional[bool]:
    deadline = time.monotonic() + MIC_ANSWER_TIMEOUT
    while time.monotonic() < deadline:
        correct = session.consume_detection()
        if correct is not None:
            pitch = session.last_detection.pitch_index
            fret = session.fret_for_pitch(pitch)
            session.record_answer(correct, card.string_index, -1 if fret is None else fret)
            print(f"Heard {describe_pitch(pitch, session.settings.score_key)}")
            return correct
        time.sleep(MIC_POLL_INTERVAL)
    return None


def run_quiz(
    args,
    input_func: Callable[[str], str] = input,
    sleep_func: Callable[[float], None] = time.sleep,
) -> int:
    manager = ConfigManager(args.config_dir)
    try:
        settings = quiz_settings(args, manager.load_settings())
    except ConfigurationError as e:
        logger.error(f"Invalid quiz settings: {e}")
        return 1

    statistics = manager.load_statistics()
    session = QuizSession(rng=random.Random(args.seed))
    if not session.make_session(settings, statistics):
        return 1

    service = None
    if args.mic:
        from ..services.detection_service import DetectionService
        from ..services.microphone import LiveAudioProvider

        provider = LiveAudioProvider(device_id=args.device)
        detector = PitchDetector.from_settings(settings, provider.sample_rate)
        service = DetectionService(provider, detector=detector)
        session.attach_channel(service.channel)
        if not service.start():
            logger.warning("Microphone unavailable, answer by typing frets instead")
            session.attach_channel(None)
            service = None

    correct_count = 0
    answered = 0
    try:
        card = session.show_card()
        for round_number in range(args.rounds):
            if card is None:
                break
            pause = session.settings.timeout_seconds
            if round_number and pause > 0:
                sleep_func(pause)
            hide_note = session.settings.hide_quiz_note and play_reference(session, card)
            if hide_note and service is not None:
                # The microphone heard the reference tone too
                service.detector.reset()
                service.channel.drain()
            print(card_prompt(card, session.fretboard.num_strings, hide_note))
            if service is not None:
                correct = _played_answer(session, card)
            else:
                correct = _typed_answer(session, card, input_func)

            if correct is None:
                print(f"Skipped. Frets: {', '.join(str(f) for f in card.frets)}")
            else:
                answered += 1
                if correct:
                    correct_count += 1
                    print("Correct!")
                else:
                    print(f"Wrong. Frets: {', '.join(str(f) for f in card.frets)}")
                    mistakes = session.consecutive_mistakes
                    if mistakes and mistakes % MISTAKE_REPEAT == 0:
                        print(f"{mistakes} misses in a row. That note was {card.note}")
            card = session.next_card()
    except (EOFError, KeyboardInterrupt):
        print()
    finally:
        if service is not None:
            service.stop()
        manager.save_statistics(session.statistics)

    stats = session.get_session_stats()
    print(f"Score: {correct_count}/{answered} ({stats['skipped']} skipped)")
    return 0


COMMANDS = {
    "quiz": run_quiz,
    "detect": run_detect,
    "listen": run_listen,
    "tone": run_tone,
    "devices": run_devices,
}


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command line arguments, or None to use sys.argv

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = build_parser()
    parsed_args = parser.parse_args(args)
    setup_logging("DEBUG" if parsed_args.debug else None)

    command = COMMANDS.get(parsed_args.command)
    if command is None:
        parser.print_help()
        return 1
    return command(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
