"""
Shared test configuration, path setup and sample files.

All test files in this directory import from eprime_app/utils/. This
conftest.py adds the project root to sys.path once, so the tests run from a
plain checkout as well as from an installed package.
"""

import os
import sys

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from eprime_app.utils.config import set_config  # noqa: E402
from eprime_app.utils.tabular_data import TabularData  # noqa: E402


# Three trials in two blocks. E-Prime writes children before their parent,
# and the session-level frame last.
SAMPLE_LOG_LINES = [
    "*** Header Start ***",
    "VersionPersist: 1",
    "LevelName: Session",
    "LevelName: Block",
    "LevelName: Trial",
    "LevelName: SubTrial",
    "Experiment: TestExp",
    "SessionDate: 01-15-2009",
    "SessionTime: 11:11:11",
    "Subject: 7",
    "Session: 1",
    "RandomSeed: -1234",
    "Group: 1",
    "CarriedVal: SessionVal",
    "*** Header End ***",
    "\tLevel: 3",
    "\t*** LogFrame Start ***",
    "\tTrialList: 1",
    "\tProcedure: TrialProc",
    "\tRunning: TrialList",
    "\tTypeA: Word",
    "\tStim1.OnsetTime: 5000",
    "\tStim1.OffsetTime: 5500",
    "\tStim1.RT: 512",
    "\tCarriedVal: TrialVal",
    "\t*** LogFrame End ***",
    "\tLevel: 2",
    "\t*** LogFrame Start ***",
    "\tBlockList: 1",
    "\tBlockTitle: First",
    "\tProcedure: BlockProc",
    "\tRunning: BlockList",
    "\tScanStartTime: 1200",
    "\tCarriedVal: BlockVal",
    "\t*** LogFrame End ***",
    "\tLevel: 3",
    "\t*** LogFrame Start ***",
    "\tTrialList: 1",
    "\tProcedure: TrialProc",
    "\tRunning: TrialList",
    "\tTypeA: Color",
    "\tStim1.OnsetTime: 9000",
    "\tStim1.OffsetTime: 9500",
    "\tStim1.RT: 430",
    "\tCarriedVal: TrialVal",
    "\t*** LogFrame End ***",
    "\tLevel: 3",
    "\t*** LogFrame Start ***",
    "\tTrialList: 2",
    "\tProcedure: TrialProc",
    "\tRunning: TrialList",
    "\tTypeA: Word",
    "\tStim1.OnsetTime: 12000",
    "\tStim1.OffsetTime: 12500",
    "\tStim1.RT: ",
    "\tCarriedVal: TrialVal",
    "\t*** LogFrame End ***",
    "\tLevel: 2",
    "\t*** LogFrame Start ***",
    "\tBlockList: 2",
    "\tBlockTitle: Second",
    "\tProcedure: BlockProc",
    "\tRunning: BlockList",
    "\tScanStartTime: 8000",
    "\tCarriedVal: BlockVal",
    "\t*** LogFrame End ***",
    "Level: 1",
    "*** LogFrame Start ***",
    "Display.RefreshRate: 60.000",
    "Clock.Scale: 1",
    "*** LogFrame End ***",
]

SAMPLE_LOG = "\n".join(SAMPLE_LOG_LINES) + "\n"

# Same file with the final frame never closed
CORRUPT_LOG = "\n".join(SAMPLE_LOG_LINES[:-1]) + "\n"


@pytest.fixture
def sample_log_text():
    return SAMPLE_LOG


@pytest.fixture
def corrupt_log_text():
    return CORRUPT_LOG


@pytest.fixture
def sample_log_file(tmp_path):
    """The sample log written the way E-Prime writes it (UTF-16 with BOM)."""
    path = tmp_path / "TestExp-7-1.txt"
    path.write_bytes(SAMPLE_LOG.encode("utf-16"))
    return path


@pytest.fixture
def timing_data():
    """A small table of stimulus and run start times."""
    data = TabularData(["stim_time", "run_start", "cue"])
    data.add_row({"stim_time": "5000", "run_start": "1200", "cue": "left"})
    data.add_row({"stim_time": "9000", "run_start": "1200", "cue": ""})
    data.add_row({"stim_time": "12500", "run_start": "8000", "cue": "right"})
    data.add_row({"stim_time": "15000", "run_start": "8000", "cue": ""})
    return data


@pytest.fixture(autouse=True)
def _reset_global_config():
    set_config(None)
    yield
    set_config(None)
