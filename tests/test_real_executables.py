#
# tests/test_real_executables.py
#
"""
End-to-end checks against shell scripts that speak enough of the Catch2
command line to be listed and run.
"""

import stat
import sys
from pathlib import Path

import pytest

from catch2adapter.events import Outcome
from catch2adapter.runtime.orchestrator import TestOrchestrator

from catch2_fakes import EventRecorder, make_config

pytestmark = [
    pytest.mark.slow,
    pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell"),
]

LISTING_BRANCH = """#!/bin/sh
for arg in "$@"; do
  if [ "$arg" = "--list-tests" ]; then
    printf 'Matching test cases:\\n  first\\n    /src/a.cpp:1\\n    (NO DESCRIPTION)\\n  second\\n    /src/a.cpp:9\\n    (NO DESCRIPTION)\\n2 matching test cases\\n\\n'
    exit 0
  fi
done
"""

PASSING_RUN = """printf '<?xml version="1.0" encoding="UTF-8"?>\\n<Catch name="fake">\\n'
printf '<TestCase name="first" line="1"><OverallResult success="true" durationInSeconds="0.01"/></TestCase>\\n'
printf '<TestCase name="second" line="9"><OverallResult success="true" durationInSeconds="0.02"/></TestCase>\\n'
printf '</Catch>\\n'
exit 0
"""

CRASHING_RUN = """printf '<?xml version="1.0" encoding="UTF-8"?>\\n<Catch name="fake">\\n<TestCase name="first" line="1">\\n'
kill -SEGV $$
"""


def write_script(path: Path, body: str) -> None:
    path.write_text(LISTING_BRANCH + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.mark.asyncio
async def test_list_and_run_a_real_process(tmp_path: Path) -> None:
    write_script(tmp_path / "fake_test", PASSING_RUN)
    orchestrator = TestOrchestrator(make_config("fake_test", workspace=str(tmp_path)), watch=False)
    recorder = EventRecorder().attach(orchestrator.emitter)

    root = await orchestrator.load()
    (suite,) = root.children
    assert [case.label for case in suite.children] == ["first", "second"]

    await orchestrator.run([root.id])
    await orchestrator.close()

    results = recorder.results()
    assert results["first"].outcome is Outcome.PASSED
    assert results["second"].duration_seconds == pytest.approx(0.02)


@pytest.mark.asyncio
async def test_crashing_process_errors_its_tests(tmp_path: Path) -> None:
    write_script(tmp_path / "fake_test", CRASHING_RUN)
    orchestrator = TestOrchestrator(make_config("fake_test", workspace=str(tmp_path)), watch=False)
    recorder = EventRecorder().attach(orchestrator.emitter)

    root = await orchestrator.load()
    await orchestrator.run([root.id])
    await orchestrator.close()

    results = recorder.results()
    assert results["first"].outcome is Outcome.ERRORED
    assert results["second"].outcome is Outcome.ERRORED
    assert recorder.run_kinds()[-1] == "FINISHED"


# 🧪🐚
