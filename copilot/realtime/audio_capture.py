"""
Audio Capture Module

Reads 16-bit mono PCM from an ffmpeg child process. The device and input
format are configurable so the same code works with dshow (Windows),
pulse/alsa (Linux) and avfoundation (macOS).
"""

import asyncio
import shutil
from typing import AsyncIterator, List, Optional

from copilot.config import TranscriptionConfig, settings
from copilot.logger import get_logger

logger = get_logger(__name__)

# 100ms of 16 kHz 16-bit mono audio
DEFAULT_CHUNK_BYTES = 3200


def ffmpeg_args(config: TranscriptionConfig) -> List[str]:
    """Build the ffmpeg command line for capturing the configured device."""
    device = config.device_name
    if config.input_format == "dshow":
        device = f"audio={device}"
    return [
        config.ffmpeg_path,
        "-hide_banner",
        "-loglevel", "error",
        "-f", config.input_format,
        "-i", device,
        "-ac", "1",
        "-ar", str(config.sample_rate),
        "-f", "s16le",
        "pipe:1",
    ]


class AudioCapture:
    """
    ffmpeg-backed PCM source.

    Usage:
        capture = AudioCapture()
        await capture.start()
        async for chunk in capture.chunks():
            ...
        await capture.stop()
    """

    def __init__(
        self,
        config: Optional[TranscriptionConfig] = None,
        chunk_bytes: int = DEFAULT_CHUNK_BYTES,
    ):
        self._config = config or settings.transcription
        self._chunk_bytes = chunk_bytes
        self._process: Optional[asyncio.subprocess.Process] = None
        self._bytes_read = 0

    async def start(self) -> None:
        """Spawn ffmpeg."""
        if self._process is not None:
            return
        if shutil.which(self._config.ffmpeg_path) is None:
            raise FileNotFoundError(f"ffmpeg not found: {self._config.ffmpeg_path}")

        args = ffmpeg_args(self._config)
        logger.info(f"Starting audio capture: {self._config.input_format} '{self._config.device_name}'")
        self._process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield PCM chunks until ffmpeg exits or the capture is stopped."""
        if self._process is None or self._process.stdout is None:
            raise RuntimeError("Audio capture not started")
        while True:
            chunk = await self._process.stdout.read(self._chunk_bytes)
            if not chunk:
                break
            self._bytes_read += len(chunk)
            yield chunk
        logger.debug(f"Audio capture ended after {self._bytes_read} bytes")

    async def stop(self) -> None:
        """Terminate ffmpeg and wait for it to exit."""
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            logger.warning("ffmpeg did not exit, killing")
            process.kill()
            await process.wait()

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None
