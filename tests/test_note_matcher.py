import unittest

from fret_recall.note_matcher import NoteMatcher, parse_note
from fret_recall.note_theory import frequency_to_midi, note_and_octave


class TestNoteMatcher(unittest.TestCase):
    def test_exact_match(self):
        self.assertTrue(NoteMatcher.match("C#1", "C#1"))
        self.assertTrue(NoteMatcher.match("A", "A"))

    def test_octave_insensitive(self):
        self.assertTrue(NoteMatcher.match("C#", "C#1"))
        self.assertTrue(NoteMatcher.match("A", "A0"))
        self.assertTrue(NoteMatcher.match("F#", "F#2"))
        self.assertTrue(NoteMatcher.match("E2", "E4"))

    def test_enharmonic_equivalence(self):
        self.assertTrue(NoteMatcher.match("Gb", "F#0"))
        self.assertTrue(NoteMatcher.match("Bb", "A#1"))
        self.assertTrue(NoteMatcher.match("Db", "C#2"))
        self.assertTrue(NoteMatcher.match("Eb", "D#3"))
        self.assertTrue(NoteMatcher.match("Ab", "G#6"))
        self.assertTrue(NoteMatcher.match("B♭", "A♯1"))

    def test_match_octave(self):
        self.assertTrue(NoteMatcher.match("Db4", "C#4", match_octave=True))
        self.assertFalse(NoteMatcher.match("E2", "E4", match_octave=True))
        # Absolute comparison needs an octave on both sides
        self.assertFalse(NoteMatcher.match("E", "E2", match_octave=True))

    def test_negative_cases(self):
        self.assertFalse(NoteMatcher.match("C", "D1"))
        self.assertFalse(NoteMatcher.match("F#", "G0"))
        self.assertFalse(NoteMatcher.match("Bb", "B1"))

    def test_non_canonical_spellings_never_match(self):
        self.assertFalse(NoteMatcher.match("Cb", "B4"))
        self.assertFalse(NoteMatcher.match("e", "E2"))
        self.assertFalse(NoteMatcher.match("", "E2"))


class TestParseNote(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(parse_note("E2"), ("E", 2))
        self.assertEqual(parse_note("C#4"), ("C#", 4))
        self.assertEqual(parse_note("Gb"), ("Gb", None))
        self.assertEqual(parse_note("B♭3"), ("Bb", 3))
        self.assertEqual(parse_note("C-1"), ("C", -1))

    def test_invalid(self):
        for text in ["H2", "c4", "E#2", "C##", "A4.5", None]:
            self.assertIsNone(parse_note(text), text)


class TestScientificPitchNotation(unittest.TestCase):
    def name(self, frequency, key_signature="C"):
        note, octave = note_and_octave(round(frequency_to_midi(frequency)), key_signature=key_signature)
        return f"{note}{octave}"

    def test_middle_c(self):
        self.assertEqual(self.name(261.63), "C4")

    def test_octave_transitions(self):
        self.assertEqual(self.name(246.94), "B3")
        self.assertEqual(self.name(261.63), "C4")

    def test_sharps_and_flats(self):
        self.assertEqual(self.name(277.18), "C#4")
        self.assertEqual(self.name(311.13), "D#4")
        self.assertEqual(self.name(277.18, key_signature="Db"), "Db4")
        self.assertEqual(self.name(311.13, key_signature="Bb"), "Eb4")
        # Naturals keep their natural spelling in any key
        self.assertEqual(self.name(329.63, key_signature="Cb"), "E4")
        self.assertEqual(self.name(493.88, key_signature="Cb"), "B4")


if __name__ == "__main__":
    unittest.main()
