"""
Verify every module of the package imports cleanly.
"""

import importlib
import pkgutil

import pytest

import fret_recall

# Modules that need optional libraries or audio hardware drivers
OPTIONAL_MODULES = {
    "fret_recall.detection.yin": "aubio",
    "fret_recall.services.microphone": "sounddevice",
}


def package_modules():
    return sorted(
        name
        for _, name, _ in pkgutil.walk_packages(fret_recall.__path__, prefix="fret_recall.")
        if not name.endswith("__main__")
    )


@pytest.mark.parametrize("module_name", package_modules())
def test_module_imports(module_name):
    requirement = OPTIONAL_MODULES.get(module_name)
    if requirement:
        try:
            importlib.import_module(requirement)
        except (ImportError, OSError) as e:
            pytest.skip(f"{requirement} unavailable: {e}")
    importlib.import_module(module_name)


def test_version():
    assert fret_recall.__version__ == "0.1.0"
