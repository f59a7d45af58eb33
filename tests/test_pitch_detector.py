import math
import unittest

import numpy as np
import pytest

from fret_recall.core.config import Settings
from fret_recall.core.interfaces import IPitchEstimator
from fret_recall.detection.estimators import AutocorrelationEstimator, create_estimator
from fret_recall.detection.pitch_detector import PitchDetector
from fret_recall.detection.stability_analyzer import PitchEstimate, StabilityAnalyzer
from fret_recall.note_theory import midi_to_frequency
from fret_recall.note_types import Detected, NoDetection, OutOfRange
from fret_recall.tones import generate_tone

SAMPLE_RATE = 44100
FRAME_SIZE = 2048


def frames(frequency, count=4, amplitude=1.0):
    """Consecutive frames of a reference tone."""
    tone = generate_tone(frequency, duration=(count + 1) * FRAME_SIZE / SAMPLE_RATE) * amplitude
    return [tone[i * FRAME_SIZE : (i + 1) * FRAME_SIZE] for i in range(count)]


class ScriptedEstimator(IPitchEstimator):
    """Returns canned (frequency, clarity) estimates in order."""

    def __init__(self, estimates):
        self._estimates = list(estimates)

    def estimate(self, frame):
        return self._estimates.pop(0)


class TestAutocorrelationEstimator(unittest.TestCase):
    def setUp(self):
        self.estimator = AutocorrelationEstimator(SAMPLE_RATE)

    def test_sine(self):
        for frequency in (110.0, 196.0, 440.0, 1046.5):
            estimated, clarity = self.estimator.estimate(frames(frequency, 1)[0])
            self.assertAlmostEqual(estimated, frequency, delta=frequency * 0.01)
            self.assertGreater(clarity, 0.9)
            self.assertLessEqual(clarity, 1.0)

    def test_low_e_triangle(self):
        estimated, clarity = self.estimator.estimate(frames(82.41, 1)[0])
        self.assertAlmostEqual(estimated, 82.41, delta=1.0)
        self.assertGreater(clarity, 0.8)

    def test_silence_has_no_estimate(self):
        self.assertIsNone(self.estimator.estimate(np.zeros(FRAME_SIZE)))

    def test_tiny_frame(self):
        self.assertIsNone(self.estimator.estimate(np.ones(3)))

    def test_nsdf_starts_at_one(self):
        nsdf = AutocorrelationEstimator.nsdf(frames(440.0, 1)[0].astype(np.float64))
        self.assertAlmostEqual(nsdf[0], 1.0)
        self.assertTrue(np.all(np.abs(nsdf) <= 1.0 + 1e-6))

    def test_create_estimator(self):
        self.assertIsInstance(
            create_estimator("autocorrelation", SAMPLE_RATE, FRAME_SIZE), AutocorrelationEstimator
        )
        with self.assertRaises(ValueError):
            create_estimator("fft", SAMPLE_RATE, FRAME_SIZE)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            AutocorrelationEstimator(0)
        with self.assertRaises(ValueError):
            AutocorrelationEstimator(SAMPLE_RATE, cutoff=0.0)


class TestStabilityAnalyzer(unittest.TestCase):
    def test_needs_two_agreeing_estimates(self):
        analyzer = StabilityAnalyzer()
        analyzer.add(PitchEstimate(69.1, 0.9, 442.0))
        self.assertIsNone(analyzer.get_stable())
        analyzer.add(PitchEstimate(68.9, 0.7, 438.0))
        detected = analyzer.get_stable()
        self.assertEqual(detected.pitch_index, 69)
        self.assertAlmostEqual(detected.confidence, 0.8)
        self.assertAlmostEqual(detected.frequency, 440.0)

    def test_moving_pitch_is_unstable(self):
        analyzer = StabilityAnalyzer()
        analyzer.add(PitchEstimate(60.0, 0.9, 261.6))
        analyzer.add(PitchEstimate(60.6, 0.9, 270.0))
        self.assertIsNone(analyzer.get_stable())

    def test_window_is_bounded(self):
        analyzer = StabilityAnalyzer(history_size=4)
        for _ in range(10):
            analyzer.add(PitchEstimate(60.0, 0.9, 261.6))
        self.assertEqual(len(analyzer), 4)
        analyzer.clear()
        self.assertEqual(len(analyzer), 0)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            StabilityAnalyzer(min_stable_count=0)
        with self.assertRaises(ValueError):
            StabilityAnalyzer(min_stable_count=3, history_size=2)


class TestPitchDetector(unittest.TestCase):
    def setUp(self):
        self.detector = PitchDetector(sample_rate=SAMPLE_RATE, frame_size=FRAME_SIZE)

    def test_a4_needs_two_frames(self):
        first, second = frames(440.0, 2)
        self.assertEqual(self.detector.process(first), NoDetection("unstable"))
        result = self.detector.process(second)
        self.assertIsInstance(result, Detected)
        self.assertEqual(result.pitch_index, 69)
        self.assertAlmostEqual(result.frequency, 440.0, delta=2.0)
        self.assertTrue(0.0 <= result.confidence <= 1.0)

    def test_silence(self):
        self.assertEqual(self.detector.process(np.zeros(FRAME_SIZE)), NoDetection("silence"))
        self.assertEqual(self.detector.last_rms, 0.0)

    def test_quiet_tone_is_silence(self):
        frame = frames(440.0, 1, amplitude=0.001)[0]
        self.assertEqual(self.detector.process(frame), NoDetection("silence"))

    def test_empty_and_non_finite_frames(self):
        self.assertEqual(self.detector.process([]), NoDetection("empty"))
        self.assertEqual(self.detector.process(np.full(FRAME_SIZE, np.nan)), NoDetection("empty"))
        self.assertEqual(
            self.detector.process(np.full(FRAME_SIZE, np.inf)), NoDetection("empty")
        )
        self.assertEqual(self.detector.process(["a", "b"]), NoDetection("invalid"))

    def test_mixed_non_finite_samples_never_raise(self):
        rng = np.random.default_rng(0)
        for frame in frames(440.0, 3):
            frame = frame.astype(np.float64)
            frame[rng.choice(FRAME_SIZE, 50, replace=False)] = np.nan
            frame[rng.choice(FRAME_SIZE, 5, replace=False)] = -np.inf
            result = self.detector.process(frame)
            self.assertIsInstance(result, (NoDetection, OutOfRange, Detected))
            if isinstance(result, Detected):
                self.assertTrue(math.isfinite(result.confidence))

    def test_clipped_input(self):
        for frame in frames(220.0, 2, amplitude=20.0):
            result = self.detector.process(frame)
        self.assertIsInstance(result, Detected)
        self.assertEqual(result.pitch_index, 57)

    def test_multichannel_is_downmixed(self):
        for frame in frames(196.0, 2):
            result = self.detector.process(np.stack([frame, frame], axis=1))
        self.assertIsInstance(result, Detected)
        self.assertEqual(result.pitch_index, 55)

    def test_out_of_range(self):
        result = self.detector.process(frames(60.0, 1)[0])
        self.assertIsInstance(result, OutOfRange)
        self.assertAlmostEqual(result.frequency, 60.0, delta=1.0)

        result = self.detector.process(frames(3000.0, 1)[0])
        self.assertIsInstance(result, OutOfRange)

    def test_low_clarity_is_unclear(self):
        detector = PitchDetector(estimator=ScriptedEstimator([(440.0, 0.1)]))
        self.assertEqual(detector.process(frames(440.0, 1)[0]), NoDetection("unclear"))

    def test_non_finite_estimate_is_unclear(self):
        detector = PitchDetector(estimator=ScriptedEstimator([(math.nan, 0.9), None]))
        frame = frames(440.0, 1)[0]
        self.assertEqual(detector.process(frame), NoDetection("unclear"))
        self.assertEqual(detector.process(frame), NoDetection("unclear"))

    def test_interruption_clears_stability(self):
        detector = PitchDetector(
            estimator=ScriptedEstimator([(440.0, 0.9), (440.0, 0.9), (440.0, 0.9)])
        )
        frame = frames(440.0, 1)[0]
        detector.process(frame)
        self.assertEqual(detector.process(np.zeros(FRAME_SIZE)), NoDetection("silence"))
        self.assertEqual(detector.process(frame), NoDetection("unstable"))
        self.assertIsInstance(detector.process(frame), Detected)

    def test_reset(self):
        first, second = frames(440.0, 2)
        self.detector.process(first)
        self.detector.reset()
        self.assertEqual(self.detector.process(second), NoDetection("unstable"))

    def test_from_settings(self):
        settings = Settings(mic_sensitivity=1.0, mic_clarity_threshold=0.6, mic_noise_floor=0.001)
        detector = PitchDetector.from_settings(settings, SAMPLE_RATE)
        self.assertAlmostEqual(detector._noise_floor, 0.0015)
        self.assertEqual(detector._clarity_threshold, 0.6)
        self.assertEqual(detector.sample_rate, SAMPLE_RATE)

    def test_invalid_arguments(self):
        for kwargs in (
            {"sample_rate": 0},
            {"min_frequency": 500, "max_frequency": 100},
            {"noise_floor": -1},
            {"clarity_threshold": 1.5},
            {"method": "zero-crossing"},
        ):
            with self.assertRaises(ValueError, msg=kwargs):
                PitchDetector(**kwargs)


@pytest.mark.parametrize("pitch_index", [40, 45, 50, 55, 59, 64, 69, 76, 81])
def test_guitar_range(pitch_index):
    detector = PitchDetector(sample_rate=SAMPLE_RATE, frame_size=FRAME_SIZE)
    results = [detector.process(f) for f in frames(midi_to_frequency(pitch_index), 3)]
    assert isinstance(results[-1], Detected)
    assert results[-1].pitch_index == pitch_index


if __name__ == "__main__":
    unittest.main()
