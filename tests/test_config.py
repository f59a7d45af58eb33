import json
import unittest
from dataclasses import replace

import pytest

from fret_recall.core.config import ConfigManager, Settings
from fret_recall.errors import ConfigurationError
from fret_recall.fretboard import STANDARD_TUNING, FretboardModel, Tuning
from fret_recall.note_types import AnswerRecord
from fret_recall.stats import SessionStatistics


class TestSettings(unittest.TestCase):
    def test_defaults_are_valid(self):
        settings = Settings().validate()
        self.assertEqual(settings.fret_count, 11)
        self.assertEqual(settings.num_strings, 6)
        self.assertEqual(settings.tuning, STANDARD_TUNING)
        self.assertTrue(settings.enable_bias)

    def test_validate_rejects_bad_fields(self):
        bad = [
            {"fret_count": 10},
            {"fret_count": 25},
            {"num_strings": 0},
            {"num_strings": 4},  # Tuning still has six strings
            {"score_key": "H"},
            {"timeout_seconds": -1},
            {"mic_sensitivity": 1.5},
            {"mic_noise_floor": 0.5},
        ]
        for fields in bad:
            with self.assertRaises(ConfigurationError, msg=fields):
                replace(Settings(), **fields).validate()

    def test_with_num_strings_reconciles_tuning(self):
        settings = Settings().with_num_strings(4)
        self.assertEqual(settings.tuning.names(), ["E2", "A2", "D3", "G3"])
        settings.validate()

    def test_with_standard_tuning_forces_six_strings(self):
        settings = Settings().with_num_strings(8).with_standard_tuning()
        self.assertEqual(settings.num_strings, 6)
        self.assertEqual(settings.tuning.names(), ["E2", "A2", "D3", "G3", "B3", "E4"])

    def test_round_trip(self):
        settings = replace(
            Settings().with_num_strings(7),
            fret_count=17,
            show_accidentals=True,
            enable_bias=False,
            score_key="Eb",
            mic_sensitivity=0.8,
        )
        restored = Settings.from_dict(json.loads(json.dumps(settings.to_dict())))
        self.assertEqual(restored, settings)
        self.assertEqual(
            FretboardModel(restored.tuning, restored.fret_count).valid_frets(6, 4),
            FretboardModel(settings.tuning, settings.fret_count).valid_frets(6, 4),
        )

    def test_legacy_extended_range(self):
        self.assertEqual(Settings.from_dict({"extendedRange": True}).fret_count, 24)
        self.assertEqual(Settings.from_dict({"extendedRange": False}).fret_count, 11)

    def test_invalid_values_are_ignored(self):
        settings = Settings.from_dict(
            {
                "fretCount": 99,
                "numStrings": "many",
                "scoreKey": "Q",
                "micNoiseFloor": "loud",
                "tuning": [{"note": "X", "octave": 2}],
            }
        )
        self.assertEqual(settings, Settings())

    def test_tuning_is_fitted_to_string_count(self):
        settings = Settings.from_dict({"numStrings": 4, "tuning": STANDARD_TUNING.to_list()})
        self.assertEqual(settings.num_strings, 4)
        self.assertEqual(len(settings.tuning), 4)
        settings.validate()

    def test_non_dict_gives_defaults(self):
        self.assertEqual(Settings.from_dict(None), Settings())
        self.assertEqual(Settings.from_dict([1, 2]), Settings())


class TestConfigManager:
    def test_settings_round_trip(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "config"))
        self.assert_defaults(manager)

        settings = replace(Settings(), tuning=Tuning.from_names(["D2", "A2", "D3", "G3", "B3", "E4"]))
        assert manager.save_settings(settings)
        assert ConfigManager(str(tmp_path / "config")).load_settings() == settings

    def assert_defaults(self, manager):
        assert manager.load_settings() == Settings()
        assert len(manager.load_statistics()) == 0

    def test_corrupt_settings_file(self, tmp_path):
        manager = ConfigManager(str(tmp_path))
        manager.settings_path.write_text("{not json")
        assert manager.load_settings() == Settings()

    def test_statistics_round_trip(self, tmp_path):
        manager = ConfigManager(str(tmp_path))
        stats = SessionStatistics(
            [
                AnswerRecord(True, 0, 12, timestamp=1.0, note="E", pitch_class=4, tuning=("E2", "A2", "D3")),
                AnswerRecord(False, 1, 3, timestamp=2.0),
            ]
        )
        assert manager.save_statistics(stats)
        assert manager.load_statistics().answers == stats.answers


@pytest.mark.parametrize("fret_count", [11, 12, 17, 24])
def test_fret_count_range_is_accepted(fret_count):
    assert Settings.from_dict({"fretCount": fret_count}).fret_count == fret_count


if __name__ == "__main__":
    unittest.main()
