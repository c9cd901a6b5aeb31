from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path

from .errors import CapabilityDeniedError


@dataclass(frozen=True)
class AudioClip:
    data: bytes
    filename: str = "recorded_audio.m4a"
    mime_type: str = "audio/m4a"

    @classmethod
    def from_file(cls, path: Path) -> "AudioClip":
        mime, _ = mimetypes.guess_type(path.name)
        return cls(data=path.read_bytes(), filename=path.name, mime_type=mime or "audio/m4a")


class Recorder:
    """Audio capture capability. Device recorders subclass this."""

    @property
    def permission_granted(self) -> bool:
        return True

    def start(self) -> None:
        if not self.permission_granted:
            raise CapabilityDeniedError("Microphone permission not granted")
        self._start()

    def stop(self) -> AudioClip:
        return self._stop()

    def _start(self) -> None:
        raise NotImplementedError

    def _stop(self) -> AudioClip:
        raise NotImplementedError


class FileRecorder(Recorder):
    """Replays a pre-recorded file as if it had been captured."""

    def __init__(self, path: Path, granted: bool = True) -> None:
        self.path = path
        self.granted = granted
        self._recording = False

    @property
    def permission_granted(self) -> bool:
        return self.granted

    def _start(self) -> None:
        self._recording = True

    def _stop(self) -> AudioClip:
        if not self._recording:
            raise RuntimeError("recorder was not started")
        self._recording = False
        return AudioClip.from_file(self.path)


def capture(recorder: Recorder) -> AudioClip:
    recorder.start()
    return recorder.stop()


__all__ = ["AudioClip", "Recorder", "FileRecorder", "capture"]
