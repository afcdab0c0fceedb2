"""
Browser-backed voice devices.
The client runs speech recognition, recording and playback; these adapters
expose them to the conversation state machine over a WebSocket.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import WebSocket

from xelochat.core.conversation import ResponsePayload
from xelochat.core.exceptions import PlaybackException
from xelochat.core.voice_input import RecognitionHandler, RecognitionSegment

logger = logging.getLogger(__name__)


class ClientChannel:
    """
    Outbound message queue for one WebSocket.

    State machine callbacks are synchronous, so they enqueue messages and a
    single sender task writes them in order.
    """

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket
        self._queue: asyncio.Queue = asyncio.Queue()
        self._sender_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self):
        self._sender_task = asyncio.create_task(self._send_loop())

    def send(self, message: Dict[str, Any]):
        if self._closed:
            logger.debug(f"Dropping {message.get('type')} message for closed client")
            return
        self._queue.put_nowait(message)

    async def _send_loop(self):
        while True:
            message = await self._queue.get()
            if message is None:
                break
            try:
                await self._websocket.send_json(message)
            except Exception as e:
                logger.info(f"Stopped sending to client: {e}")
                self._mark_closed()
                break

    def _mark_closed(self):
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()

    async def close(self):
        if self._sender_task is None:
            return

        # Flush what is queued, then stop
        if not self._closed:
            self._queue.put_nowait(None)
        try:
            await asyncio.wait_for(self._sender_task, timeout=1.0)
        except asyncio.TimeoutError:
            logger.warning("Timed out flushing messages to client")
        self._closed = True
        self._sender_task = None


def parse_segments(results: Any) -> List[RecognitionSegment]:
    """Parse `[{"transcript": str, "is_final": bool}, ...]` from a client message."""
    if not isinstance(results, list):
        raise ValueError("'results' must be a list")

    segments = []
    for item in results:
        if not isinstance(item, dict) or not isinstance(item.get("transcript"), str):
            raise ValueError("Each result needs a string 'transcript'")
        segments.append(RecognitionSegment(
            transcript=item["transcript"],
            is_final=bool(item.get("is_final", False))
        ))
    return segments


def parse_generation(value: Any) -> int:
    """Parse the recognizer generation a client echoes on recognition events."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("'generation' must be an integer")
    return value


class RemoteSpeechRecognizer:
    """
    Continuous recognizer running in the client.

    Every `start` opens a new generation that is sent with `recognizer.start`
    and `recognizer.stop`. The client echoes it on each `recognition.*`
    event, and events from any other generation are dropped, so a recognizer
    that fires late after a restart cannot reach the new listening session.
    """

    def __init__(self, channel: ClientChannel, language: str, available: bool = True):
        self._channel = channel
        self._language = language
        self._handler: Optional[RecognitionHandler] = None
        self._generation = 0
        self.supported = available

    @property
    def available(self) -> bool:
        return self.supported

    @property
    def running(self) -> bool:
        return self._handler is not None

    @property
    def generation(self) -> int:
        return self._generation

    def start(self, handler: RecognitionHandler) -> None:
        self._generation += 1
        self._handler = handler
        self._channel.send({
            "type": "recognizer.start",
            "language": self._language,
            "generation": self._generation
        })

    def stop(self) -> None:
        if self._handler is None:
            return
        self._handler = None
        self._channel.send({"type": "recognizer.stop", "generation": self._generation})

    def _current_handler(self, generation: int) -> Optional[RecognitionHandler]:
        if generation != self._generation:
            logger.debug(
                f"Dropping recognition event from generation {generation} "
                f"(current {self._generation})"
            )
            return None
        return self._handler

    def deliver_results(self, generation: int, segments: Sequence[RecognitionSegment]):
        handler = self._current_handler(generation)
        if handler is not None:
            handler.on_results(segments)

    def deliver_error(self, generation: int, reason: str):
        handler = self._current_handler(generation)
        if handler is not None:
            self._handler = None
            handler.on_error(reason)

    def deliver_end(self, generation: int):
        handler = self._current_handler(generation)
        if handler is not None:
            self._handler = None
            handler.on_end()


class RemoteAudioRecorder:
    """
    Push-to-talk recorder running in the client.

    The client streams binary audio frames while recording and sends its
    "stop" control message after the last frame, so the buffer is complete
    by the time `stop` is called.
    """

    def __init__(self, channel: ClientChannel):
        self._channel = channel
        self._buffer = bytearray()
        self._recording = False

    @property
    def recording(self) -> bool:
        return self._recording

    def append(self, data: bytes):
        if self._recording:
            self._buffer.extend(data)
        else:
            logger.debug(f"Dropping {len(data)} audio bytes received while not recording")

    async def start(self) -> None:
        self._buffer.clear()
        self._recording = True
        self._channel.send({"type": "recorder.start"})

    async def stop(self) -> Optional[bytes]:
        self._recording = False
        self._channel.send({"type": "recorder.stop"})

        audio_data = bytes(self._buffer)
        self._buffer.clear()
        return audio_data or None


class RemotePlaybackDevice:
    """
    Plays replies in the client and waits for its completion signal.

    Each playback resolves exactly once: the first `ended` or `failed`
    wins and later signals are ignored.
    """

    def __init__(self, channel: ClientChannel):
        self._channel = channel
        self._pending: Optional[asyncio.Future] = None

    @property
    def playing(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def play(self, payload: ResponsePayload) -> None:
        future = asyncio.get_running_loop().create_future()
        self._pending = future

        self._channel.send({
            "type": "response",
            "message": payload.message,
            "audio_url": payload.audio_url,
            "tts_hint": payload.tts_hint
        })

        try:
            await future
        finally:
            if self._pending is future:
                self._pending = None

    def ended(self) -> bool:
        if not self.playing:
            logger.debug("Ignoring playback end with nothing playing")
            return False
        self._pending.set_result(None)
        return True

    def failed(self, reason: str) -> bool:
        if not self.playing:
            logger.debug("Ignoring playback error with nothing playing")
            return False
        self._pending.set_exception(PlaybackException(reason))
        return True

    def cancel(self):
        if self.playing:
            self._pending.cancel()
