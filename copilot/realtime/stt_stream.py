"""
Streaming Transcription Module

Transcript sources that publish TranscriptEvents onto the event bus:
- TranscriptStream: AssemblyAI v3 streaming websocket fed by AudioCapture
- TranscriptReplay: lines of a text file, for offline runs and demos

AssemblyAI messages are JSON objects; a "Turn" message carries the
transcript text, "Begin" and "Termination" bracket the session. Anything
unparseable is logged and dropped.
"""

import asyncio
import json
from typing import Iterable, Optional

import aiohttp

from copilot.config import TranscriptionConfig, settings
from copilot.logger import get_logger
from copilot.messages import msg
from copilot.realtime.audio_capture import AudioCapture
from copilot.realtime.events import (
    ConnectionEvent,
    ConnectionStatus,
    EventBus,
    TranscriptEvent,
)

logger = get_logger(__name__)


def parse_message(raw) -> Optional[TranscriptEvent]:
    """
    Turn one websocket message into a TranscriptEvent, or None.

    Malformed messages are logged and dropped so the stream keeps going.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Dropping unparseable transcript message: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning("Dropping transcript message that is not an object")
        return None

    msg_type = data.get("type")
    if msg_type == "Turn":
        text = data.get("transcript")
        if isinstance(text, str) and text.strip():
            return TranscriptEvent(text=text, is_final=bool(data.get("end_of_turn", True)))
        return None
    if msg_type == "Begin":
        logger.info(f"Transcription session began: {data.get('id', '')}")
    elif msg_type == "Termination":
        logger.info(f"Transcription session terminated after {data.get('audio_duration_seconds', '?')}s of audio")
    elif "error" in data:
        logger.error(f"Transcription service error: {data['error']}")
    return None


class TranscriptStream:
    """
    Live transcript source over the AssemblyAI streaming websocket.

    Usage:
        stream = TranscriptStream(event_bus)
        task = asyncio.create_task(stream.run())
        ...
        await stream.stop()
    """

    def __init__(
        self,
        event_bus: EventBus,
        config: Optional[TranscriptionConfig] = None,
        api_key: Optional[str] = None,
        capture: Optional[AudioCapture] = None,
    ):
        self._event_bus = event_bus
        self._config = config or settings.transcription
        self._api_key = api_key if api_key is not None else self._config.api_key
        self._capture = capture or AudioCapture(self._config)

        self._http: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._running = False
        self._fragment_count = 0

    async def run(self) -> None:
        """Connect, stream audio and publish transcripts until stopped."""
        if not self._api_key:
            raise ValueError(msg("error.assembly_key_missing"))

        self._running = True
        await self._event_bus.publish(ConnectionEvent(status=ConnectionStatus.CONNECTING))
        try:
            self._http = aiohttp.ClientSession()
            self._ws = await self._http.ws_connect(
                self._config.stream_url,
                headers={"authorization": self._api_key},
                heartbeat=20.0,
            )
            await self._event_bus.publish(ConnectionEvent(status=ConnectionStatus.CONNECTED))
            logger.info("Transcription connected")

            await self._capture.start()
            self._pump_task = asyncio.create_task(self._pump_audio())

            async for message in self._ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    event = parse_message(message.data)
                    if event is not None:
                        self._fragment_count += 1
                        await self._event_bus.publish(event)
                elif message.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"Websocket error: {self._ws.exception()}")
                    break
        except aiohttp.ClientError as e:
            logger.error(f"Transcription connection failed: {e}")
            await self._event_bus.publish(
                ConnectionEvent(status=ConnectionStatus.ERROR, detail=str(e))
            )
        finally:
            await self._teardown()
            await self._event_bus.publish(ConnectionEvent(status=ConnectionStatus.DISCONNECTED))
            logger.info("Transcription disconnected")

    async def _pump_audio(self) -> None:
        async for chunk in self._capture.chunks():
            if not self._running or self._ws is None or self._ws.closed:
                break
            await self._ws.send_bytes(chunk)

    async def stop(self) -> None:
        """Ask the service to end the session and close the socket."""
        if not self._running:
            return
        self._running = False
        if self._ws is not None and not self._ws.closed:
            try:
                await self._ws.send_str(json.dumps({"type": "Terminate"}))
            except ConnectionResetError:
                logger.debug("Socket already closed while terminating")
            await self._ws.close()

    async def _teardown(self) -> None:
        self._running = False
        if self._pump_task:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
            self._pump_task = None
        await self._capture.stop()
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._http is not None:
            await self._http.close()
        self._ws = None
        self._http = None

    @property
    def fragment_count(self) -> int:
        return self._fragment_count


class TranscriptReplay:
    """
    Offline transcript source: publishes each non-empty line as a fragment.

    Usage:
        replay = TranscriptReplay(event_bus, lines, delay_s=0.5)
        await replay.run()
    """

    def __init__(self, event_bus: EventBus, lines: Iterable[str], delay_s: float = 0.5):
        self._event_bus = event_bus
        self._lines = lines
        self._delay_s = delay_s
        self._running = False

    async def run(self) -> None:
        self._running = True
        await self._event_bus.publish(ConnectionEvent(status=ConnectionStatus.CONNECTED, detail="replay"))
        for line in self._lines:
            if not self._running:
                break
            text = line.strip()
            if not text:
                continue
            await self._event_bus.publish(TranscriptEvent(text=text, source="replay"))
            await asyncio.sleep(self._delay_s)
        await self._event_bus.publish(ConnectionEvent(status=ConnectionStatus.DISCONNECTED, detail="replay"))

    async def stop(self) -> None:
        self._running = False
