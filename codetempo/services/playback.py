"""Local audio playback through an external command-line player."""

from __future__ import annotations

import asyncio
import logging
import shutil
from typing import Optional, Protocol, runtime_checkable

from codetempo.models.generation import AudioHandle

log = logging.getLogger(__name__)

# (executable, stream arguments, asset arguments), in preference order.
PLAYER_COMMANDS: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    (
        "ffplay",
        ("-nodisp", "-autoexit", "-loglevel", "quiet", "-reconnect", "1", "-reconnect_streamed", "1"),
        ("-nodisp", "-autoexit", "-loglevel", "quiet"),
    ),
    (
        "vlc",
        ("--intf", "dummy", "--play-and-exit", "--no-video"),
        ("--intf", "dummy", "--play-and-exit"),
    ),
    (
        "mpv",
        ("--no-video", "--really-quiet"),
        ("--no-video", "--really-quiet"),
    ),
)

STOP_TIMEOUT = 2.0


@runtime_checkable
class AudioPlayer(Protocol):
    """Interface for playback backends.

    ``play`` replaces whatever is currently playing. A muted player
    remembers the handle and resumes it on unmute.
    """

    @property
    def muted(self) -> bool: ...

    async def play(self, handle: AudioHandle) -> None: ...

    async def stop(self) -> None: ...

    async def mute(self) -> None: ...

    async def unmute(self) -> None: ...

    async def toggle_mute(self) -> bool: ...


def player_arguments(handle: AudioHandle) -> list[tuple[str, list[str]]]:
    """Candidate command lines for ``handle``, streaming-aware."""
    commands = []
    for executable, stream_args, asset_args in PLAYER_COMMANDS:
        args = stream_args if handle.kind == "stream" else asset_args
        commands.append((executable, [*args, handle.url]))
    return commands


class ProcessAudioPlayer:
    """Plays audio with the first available of ffplay, VLC or mpv."""

    def __init__(self):
        self._process: Optional[asyncio.subprocess.Process] = None
        self._current: Optional[AudioHandle] = None
        self._muted = False

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def current(self) -> Optional[AudioHandle]:
        return self._current

    async def play(self, handle: AudioHandle) -> None:
        self._current = handle
        await self.stop()

        if self._muted:
            log.info("Audio is muted, not playing %s", handle.url)
            return

        log.info("Starting %s playback: %s", handle.kind, handle.url)
        if handle.title:
            log.info("Title: %s", handle.title)

        for executable, args in player_arguments(handle):
            path = shutil.which(executable)
            if path is None:
                continue
            try:
                self._process = await asyncio.create_subprocess_exec(
                    path,
                    *args,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except OSError as e:
                log.warning("Failed to start %s: %s", executable, e)
                continue
            log.info("Audio playback started with %s (pid %s)", executable, self._process.pid)
            return

        log.warning(
            "No compatible audio player found for %s; install ffmpeg (ffplay), VLC or mpv. "
            "Audio is available at %s",
            handle.kind,
            handle.url,
        )

    async def stop(self) -> None:
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return

        log.info("Stopping audio playback")
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=STOP_TIMEOUT)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()

    async def mute(self) -> None:
        self._muted = True
        log.info("Audio muted, stopping playback")
        await self.stop()

    async def unmute(self) -> None:
        self._muted = False
        log.info("Audio unmuted")
        if self._current is not None:
            log.info("Resuming playback")
            await self.play(self._current)

    async def toggle_mute(self) -> bool:
        if self._muted:
            await self.unmute()
        else:
            await self.mute()
        return self._muted

    async def close(self) -> None:
        await self.stop()


class NullAudioPlayer:
    """Silent player that only records what it was asked to play."""

    def __init__(self):
        self.played: list[AudioHandle] = []
        self.stops = 0
        self._muted = False
        self._current: Optional[AudioHandle] = None

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def current(self) -> Optional[AudioHandle]:
        return self._current

    async def play(self, handle: AudioHandle) -> None:
        self._current = handle
        if self._muted:
            return
        log.info("[NullAudioPlayer] Would play %s: %s", handle.kind, handle.url)
        self.played.append(handle)

    async def stop(self) -> None:
        self.stops += 1

    async def mute(self) -> None:
        self._muted = True
        await self.stop()

    async def unmute(self) -> None:
        self._muted = False
        if self._current is not None:
            await self.play(self._current)

    async def toggle_mute(self) -> bool:
        if self._muted:
            await self.unmute()
        else:
            await self.mute()
        return self._muted

    async def close(self) -> None:
        await self.stop()
