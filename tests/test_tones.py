import unittest

import numpy as np
import soundfile as sf

from fret_recall.tones import generate_click, generate_tone, write_wav


class TestTones(unittest.TestCase):
    def test_tone_shape_and_level(self):
        tone = generate_tone(440.0)
        self.assertEqual(tone.dtype, np.float32)
        self.assertEqual(len(tone), int(44100 * 0.8))
        self.assertAlmostEqual(float(np.max(np.abs(tone))), 0.25, places=3)

    def test_bass_notes_use_triangle(self):
        # A sine's RMS is peak/sqrt(2), a triangle's is peak/sqrt(3)
        sine = generate_tone(440.0, 1.0)
        triangle = generate_tone(110.0, 1.0)
        self.assertAlmostEqual(float(np.sqrt(np.mean(sine**2))), 0.25 / np.sqrt(2), places=3)
        self.assertAlmostEqual(float(np.sqrt(np.mean(triangle**2))), 0.25 / np.sqrt(3), places=3)

    def test_invalid_frequency(self):
        with self.assertRaises(ValueError):
            generate_tone(0.0)

    def test_click_decays(self):
        click = generate_click()
        self.assertEqual(len(click), int(44100 * 0.05))
        head = np.max(np.abs(click[:100]))
        tail = np.max(np.abs(click[-100:]))
        self.assertGreater(head, 0.05)
        self.assertLess(tail, 1e-6)
        self.assertLessEqual(float(np.max(np.abs(click))), 0.24 * 1.2)


class TestWriteWav:
    def test_write_wav(self, tmp_path):
        path = str(tmp_path / "tone.wav")
        tone = generate_tone(329.63, 0.3)
        write_wav(path, tone)
        data, sample_rate = sf.read(path, dtype="float32")
        assert sample_rate == 44100
        assert len(data) == len(tone)
        assert np.allclose(data, tone, atol=1e-3)
        assert sf.info(path).subtype == "PCM_16"


if __name__ == "__main__":
    unittest.main()
