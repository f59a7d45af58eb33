import json
import unittest

from fret_recall.note_types import AnswerRecord
from fret_recall.stats import SessionStatistics, load_stats, save_stats

STANDARD = ("E2", "A2", "D3", "G3", "B3", "E4")
DROP_D = ("D2", "A2", "D3", "G3", "B3", "E4")


def record(correct, pitch_class, tuning=STANDARD, timestamp=0.0):
    return AnswerRecord(
        correct=correct, string=0, fret=0, timestamp=timestamp, pitch_class=pitch_class, tuning=tuning
    )


class TestSessionStatistics(unittest.TestCase):
    def test_append_only(self):
        stats = SessionStatistics()
        first = record(True, 4)
        stats.append(first)
        stats.append(first)
        self.assertEqual(len(stats), 2)
        self.assertEqual(stats.answers, (first, first))
        # The exposed answers are a snapshot
        self.assertIsInstance(stats.answers, tuple)

    def test_recent_window_and_tuning(self):
        stats = SessionStatistics(
            [record(False, 1, DROP_D), record(False, 2), record(False, 3, None), record(True, 4)]
        )
        self.assertEqual([r.pitch_class for r in stats.recent(2)], [3, 4])
        self.assertEqual([r.pitch_class for r in stats.recent(tuning=STANDARD)], [2, 3, 4])
        self.assertEqual(stats.recent(0), [])

    def test_mistakes_by_pitch_class(self):
        stats = SessionStatistics(
            [record(False, 4)] * 3 + [record(True, 4), record(False, 9), record(False, 9, DROP_D)]
        )
        self.assertEqual(stats.mistakes_by_pitch_class(), {4: 3, 9: 2})
        self.assertEqual(stats.mistakes_by_pitch_class(tuning=STANDARD), {4: 3, 9: 1})
        self.assertEqual(stats.mistakes_by_pitch_class(window=2), {9: 2})

    def test_accuracy_by_pitch_class(self):
        stats = SessionStatistics([record(True, 4), record(False, 4), record(True, 7)])
        self.assertEqual(stats.accuracy_by_pitch_class(), {4: 0.5, 7: 1.0})

    def test_summary(self):
        self.assertEqual(SessionStatistics().summary(), {"total": 0, "correct": 0, "accuracy": 0.0})
        stats = SessionStatistics([record(True, 4), record(False, 4), record(True, 7), record(True, 7)])
        self.assertEqual(stats.summary(), {"total": 4, "correct": 3, "accuracy": 0.75})

    def test_from_dict_skips_malformed_records(self):
        data = {
            "answers": [
                {"correct": True, "stringIndex": 2, "fret": 5, "timestamp": 3.5},
                {"correct": False},
                "garbage",
                {"correct": False, "stringIndex": "x", "fret": 1},
            ]
        }
        stats = SessionStatistics.from_dict(data)
        self.assertEqual(len(stats), 1)
        self.assertEqual(stats.answers[0].string, 2)
        self.assertEqual(stats.answers[0].fret, 5)


class TestStatsFiles:
    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "statistics.json")
        stats = SessionStatistics([record(True, 4, timestamp=1.0), record(False, 9, None, timestamp=2.0)])
        assert save_stats(stats, path)
        assert load_stats(path).answers == stats.answers

        with open(path) as f:
            stored = json.load(f)
        assert stored["answers"][0]["stringIndex"] == 0
        assert stored["answers"][0]["tuning"] == list(STANDARD)

    def test_missing_file(self, tmp_path):
        assert len(load_stats(str(tmp_path / "nope.json"))) == 0

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "statistics.json"
        path.write_text("[1, 2")
        assert len(load_stats(str(path))) == 0

    def test_unwritable_path(self, tmp_path):
        assert not save_stats(SessionStatistics(), str(tmp_path / "missing" / "statistics.json"))


if __name__ == "__main__":
    unittest.main()
