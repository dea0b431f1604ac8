"""
FFmpeg transcoder.

Turns the assembled browser capture (WebM/Opus) into a speech-friendly
artifact: mono, 16 kHz, 64 kbit/s MP3 by default.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

from meeting_recorder.config.settings import RecordingSettings
from meeting_recorder.core.exceptions import ConversionFailedError
from meeting_recorder.core.logging import get_logger

logger = get_logger("transcoder")

# Keep this much of ffmpeg's stderr in failure reasons
STDERR_TAIL_CHARS = 2000


class FfmpegTranscoder:
    """Runs ffmpeg as a subprocess to normalize captured audio."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        audio_codec: str = "libmp3lame",
        sample_rate: int = 16000,
        channels: int = 1,
        bitrate: str = "64k",
        output_format: str = "mp3",
        timeout_seconds: Optional[float] = 600.0,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.audio_codec = audio_codec
        self.sample_rate = sample_rate
        self.channels = channels
        self.bitrate = bitrate
        self.output_format = output_format
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, recording: RecordingSettings) -> "FfmpegTranscoder":
        return cls(
            ffmpeg_path=recording.ffmpeg_path,
            audio_codec=recording.audio_codec,
            sample_rate=recording.sample_rate,
            channels=recording.channels,
            bitrate=recording.bitrate,
            output_format=recording.output_format,
            timeout_seconds=recording.convert_timeout_seconds,
        )

    @property
    def content_type(self) -> str:
        return {
            "mp3": "audio/mpeg",
            "wav": "audio/wav",
            "ogg": "audio/ogg",
            "opus": "audio/ogg",
            "m4a": "audio/mp4",
        }.get(self.output_format, "application/octet-stream")

    def build_args(self, source: Path, destination: Path) -> List[str]:
        """Build ffmpeg command arguments."""
        return [
            "-y",                           # Overwrite output file
            "-i", str(source),
            "-vn",                          # No video
            "-acodec", self.audio_codec,
            "-ac", str(self.channels),
            "-ar", str(self.sample_rate),   # 16kHz good for speech models
            "-b:a", self.bitrate,
            str(destination),
        ]

    async def convert(self, source: Path, destination: Path) -> Path:
        """
        Convert ``source`` into ``destination``.

        Args:
            source: Concatenated raw capture
            destination: Output file path

        Returns:
            Path of the produced artifact

        Raises:
            ConversionFailedError: on any non-success signal
        """
        source = Path(source)
        destination = Path(destination)
        if not source.exists():
            raise ConversionFailedError(f"Input file missing: {source}", reason="missing input")

        destination.parent.mkdir(parents=True, exist_ok=True)
        args = self.build_args(source, destination)
        logger.info(f"FFmpeg command: {self.ffmpeg_path} {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_path, *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ConversionFailedError(
                f"ffmpeg not found at '{self.ffmpeg_path}'", reason="ffmpeg not found"
            ) from exc
        except OSError as exc:
            raise ConversionFailedError(f"Could not start ffmpeg: {exc}", reason=str(exc)) from exc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.warning("FFmpeg timed out, killing...")
            process.kill()
            await process.wait()
            raise ConversionFailedError(
                f"ffmpeg exceeded {self.timeout_seconds}s", exit_code=process.returncode, reason="timeout"
            ) from exc
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        stderr_text = stderr.decode("utf-8", errors="replace") if stderr else ""
        if stderr_text:
            logger.debug(f"ffmpeg: {stderr_text[-STDERR_TAIL_CHARS:]}")

        if process.returncode != 0:
            raise ConversionFailedError(
                f"ffmpeg exited with {process.returncode}",
                exit_code=process.returncode,
                reason=stderr_text[-STDERR_TAIL_CHARS:].strip() or None,
            )

        if not destination.exists() or destination.stat().st_size == 0:
            raise ConversionFailedError(
                "ffmpeg produced no output", exit_code=process.returncode, reason="empty output"
            )

        size_kb = destination.stat().st_size / 1024
        logger.info(f"✅ Audio converted: {destination} ({size_kb:.1f} KB)")
        return destination
