from __future__ import annotations

import stat
import sys

import pytest

from meeting_recorder.config.settings import RecordingSettings
from meeting_recorder.core.exceptions import ConversionFailedError
from meeting_recorder.recording.transcoder import FfmpegTranscoder

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses a shell script as ffmpeg")


def _fake_ffmpeg(tmp_path, body: str):
    script = tmp_path / "ffmpeg"
    script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


# Arguments are: -y -i <source> ... <destination>
COPY_INPUT = 'for last; do :; done\ncp "$3" "$last"'


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "capture.webm"
    path.write_bytes(b"webm-bytes")
    return path


def test_build_args_match_speech_profile():
    transcoder = FfmpegTranscoder()
    args = transcoder.build_args("in.webm", "out.mp3")
    assert args == [
        "-y", "-i", "in.webm", "-vn",
        "-acodec", "libmp3lame", "-ac", "1", "-ar", "16000", "-b:a", "64k",
        "out.mp3",
    ]
    assert transcoder.content_type == "audio/mpeg"


def test_from_settings_uses_recording_settings():
    transcoder = FfmpegTranscoder.from_settings(
        RecordingSettings(ffmpeg_path="/opt/ffmpeg", sample_rate=48000, output_format="wav")
    )
    assert transcoder.ffmpeg_path == "/opt/ffmpeg"
    assert transcoder.sample_rate == 48000
    assert transcoder.content_type == "audio/wav"


@pytest.mark.asyncio
async def test_convert_produces_destination(tmp_path, source):
    transcoder = FfmpegTranscoder(ffmpeg_path=_fake_ffmpeg(tmp_path, COPY_INPUT))
    destination = tmp_path / "out" / "capture.mp3"

    result = await transcoder.convert(source, destination)

    assert result == destination
    assert destination.read_bytes() == b"webm-bytes"


@pytest.mark.asyncio
async def test_non_zero_exit_reports_code_and_stderr(tmp_path, source):
    script = _fake_ffmpeg(tmp_path, 'echo "Invalid data found when processing input" >&2\nexit 1')
    transcoder = FfmpegTranscoder(ffmpeg_path=script)

    with pytest.raises(ConversionFailedError) as excinfo:
        await transcoder.convert(source, tmp_path / "out.mp3")

    assert excinfo.value.exit_code == 1
    assert "Invalid data" in excinfo.value.reason


@pytest.mark.asyncio
async def test_missing_output_is_a_failure(tmp_path, source):
    transcoder = FfmpegTranscoder(ffmpeg_path=_fake_ffmpeg(tmp_path, "exit 0"))

    with pytest.raises(ConversionFailedError) as excinfo:
        await transcoder.convert(source, tmp_path / "out.mp3")
    assert excinfo.value.reason == "empty output"


@pytest.mark.asyncio
async def test_missing_binary_is_a_failure(tmp_path, source):
    transcoder = FfmpegTranscoder(ffmpeg_path=str(tmp_path / "no-such-ffmpeg"))

    with pytest.raises(ConversionFailedError) as excinfo:
        await transcoder.convert(source, tmp_path / "out.mp3")
    assert excinfo.value.reason == "ffmpeg not found"


@pytest.mark.asyncio
async def test_missing_input_is_a_failure(tmp_path):
    transcoder = FfmpegTranscoder(ffmpeg_path=_fake_ffmpeg(tmp_path, COPY_INPUT))

    with pytest.raises(ConversionFailedError):
        await transcoder.convert(tmp_path / "absent.webm", tmp_path / "out.mp3")


@pytest.mark.asyncio
async def test_timeout_kills_ffmpeg(tmp_path, source):
    transcoder = FfmpegTranscoder(
        ffmpeg_path=_fake_ffmpeg(tmp_path, "exec sleep 5"), timeout_seconds=0.2
    )

    with pytest.raises(ConversionFailedError) as excinfo:
        await transcoder.convert(source, tmp_path / "out.mp3")
    assert excinfo.value.reason == "timeout"
