"""
Shared fixtures for the audio extractor test suite.

External tools (ffmpeg, ffprobe, whisper-cli) are replaced by small
executable Python scripts written into tmp_path. Each script follows the
real tool's I/O contract closely enough for the adapters:

- fake ffmpeg: progress key=value blocks on stdout, output file = last arg
- fake ffprobe: duration in seconds on stdout
- fake whisper-cli: writes <base>.txt and <base>.srt for `-of <base>`
"""

import stat
import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest

from audio_extractor.execution.ffmpeg import FFmpegExtractor
from audio_extractor.execution.whisper import WhisperTranscriber
from audio_extractor.jobs.engine import JobEngine
from audio_extractor.jobs.registry import JobRegistry
from audio_extractor.monitoring.broadcaster import ProgressBroadcaster


FFMPEG_OK = """
import sys
out = sys.argv[-1]
for us in (25000000, 50000000, 75000000, 100000000):
    print(f"out_time_us={us}")
    print("progress=continue", flush=True)
print("progress=end", flush=True)
with open(out, "wb") as f:
    f.write(b"audio")
"""

FFMPEG_FAIL = """
import sys
sys.stderr.write("Input #0, mov\\n")
sys.stderr.write("Invalid data found when processing input\\n")
sys.exit(1)
"""

FFMPEG_SLOW = """
import sys, time
print("out_time_us=1000000", flush=True)
time.sleep(30)
"""

FFMPEG_NO_OUTPUT = """
print("progress=end", flush=True)
"""

FFPROBE_100 = """
print("100.000000")
"""

FFPROBE_FAIL = """
import sys
sys.stderr.write("moov atom not found\\n")
sys.exit(1)
"""

WHISPER_OK = """
import os, sys, time
args = sys.argv[1:]
base = args[args.index("-of") + 1]
time.sleep(float(os.environ.get("FAKE_WHISPER_SLEEP", "0")))
with open(base + ".txt", "w") as f:
    f.write("hello world\\n")
with open(base + ".srt", "w") as f:
    f.write("1\\n00:00:00,000 --> 00:00:01,000\\nhello world\\n")
"""

WHISPER_TXT_ONLY = """
import sys
args = sys.argv[1:]
base = args[args.index("-of") + 1]
with open(base + ".txt", "w") as f:
    f.write("hello world\\n")
"""

WHISPER_FAIL = """
import sys
print("whisper_init_from_file: loading model")
print("error: failed to open model file", flush=True)
sys.exit(2)
"""


ScriptFactory = Callable[[str, str], str]


@pytest.fixture
def make_script(tmp_path: Path) -> ScriptFactory:
    """Write an executable Python script and return its path."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name: str, body: str) -> str:
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make


@pytest.fixture
def input_file(tmp_path: Path) -> str:
    path = tmp_path / "uploads" / "input.mp4"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"fake video")
    return str(path)


@pytest.fixture
def outputs_dir(tmp_path: Path) -> str:
    return str(tmp_path / "outputs")


@pytest.fixture
def ffmpeg_ok(make_script) -> FFmpegExtractor:
    return FFmpegExtractor(make_script("ffmpeg", FFMPEG_OK), make_script("ffprobe", FFPROBE_100))


@pytest.fixture
def whisper_ok(make_script) -> WhisperTranscriber:
    return WhisperTranscriber(
        make_script("whisper-cli", WHISPER_OK),
        model_path="ggml-base.bin",
        tick_interval=0.05,
    )


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
def broadcaster(registry) -> ProgressBroadcaster:
    return ProgressBroadcaster(registry)


@pytest.fixture
def make_engine(registry, broadcaster, outputs_dir, ffmpeg_ok, whisper_ok):
    """Engine factory; every engine built here is shut down after the test."""
    engines = []

    def _make(extractor=None, transcriber=None, **kwargs) -> JobEngine:
        engine = JobEngine(
            registry=registry,
            broadcaster=broadcaster,
            extractor=extractor or ffmpeg_ok,
            transcriber=transcriber or whisper_ok,
            outputs_dir=outputs_dir,
            **kwargs,
        )
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.shutdown(timeout=10)

