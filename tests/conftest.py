from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from userprefs import Preferences, reset_defaults


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    """Path the ``prefs`` fixture uses as its default preference file."""
    return tmp_path / "Settings.json"


@pytest.fixture
def prefs(tmp_path: Path) -> Iterator[Preferences]:
    """Preferences stored as ``Settings.json`` inside a temporary directory."""
    with Preferences(
        preference_file_dir=str(tmp_path), file_name="Settings", file_ext="json"
    ) as instance:
        yield instance


@pytest.fixture(autouse=True)
def _fresh_defaults() -> Iterator[None]:
    yield
    reset_defaults()
