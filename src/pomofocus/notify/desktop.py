"""Desktop notifications and completion sound via platform command-line tools."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from pathlib import Path

from pomofocus.timer.ports import NotificationPermission

logger = logging.getLogger(__name__)

# Default sounds shipped with the OS
MACOS_SOUND = Path("/System/Library/Sounds/Glass.aiff")
FREEDESKTOP_SOUND = Path("/usr/share/sounds/freedesktop/stereo/complete.oga")


class NotificationError(RuntimeError):
    """A notification or sound command failed."""


async def _run(args: list[str], timeout: float = 5.0) -> None:
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise NotificationError(f"{args[0]} timed out")

    if proc.returncode != 0:
        message = stderr.decode(errors="replace").strip() if stderr else ""
        raise NotificationError(f"{args[0]} exited with {proc.returncode}: {message}")


def _escape_applescript(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


class DesktopNotifier:
    """System notifications through ``osascript`` (macOS) or ``notify-send``.

    Permission starts undetermined. Requesting it checks that the backend tool
    is installed: if it is, notifications are granted, otherwise denied.
    """

    def __init__(self, platform: str | None = None):
        self.platform = platform or sys.platform
        self._permission = NotificationPermission.UNDETERMINED

    @property
    def permission(self) -> NotificationPermission:
        return self._permission

    @property
    def command(self) -> str:
        return "osascript" if self.platform == "darwin" else "notify-send"

    async def request_permission(self) -> NotificationPermission:
        if self._permission != NotificationPermission.UNDETERMINED:
            return self._permission

        if shutil.which(self.command):
            self._permission = NotificationPermission.GRANTED
        else:
            logger.info(f"{self.command} not found, desktop notifications disabled")
            self._permission = NotificationPermission.DENIED
        return self._permission

    async def notify(self, title: str, body: str) -> None:
        if self.platform == "darwin":
            script = (
                f'display notification "{_escape_applescript(body)}" '
                f'with title "{_escape_applescript(title)}"'
            )
            await _run(["osascript", "-e", script])
        else:
            await _run(["notify-send", "--app-name=pomofocus", title, body])
        logger.debug(f"Notification shown: {title} - {body}")


class SoundPlayer:
    """Plays the completion sound with ``afplay`` (macOS) or ``paplay``."""

    def __init__(self, sound_file: Path | None = None, platform: str | None = None):
        self.platform = platform or sys.platform
        self.sound_file = sound_file or (
            MACOS_SOUND if self.platform == "darwin" else FREEDESKTOP_SOUND
        )

    def build_command(self, volume: int) -> list[str]:
        """Get the player command line for a 0-100 volume."""
        volume = max(0, min(100, volume))
        if self.platform == "darwin":
            # afplay takes a 0-1 amplitude
            return ["afplay", "-v", f"{volume / 100:.2f}", str(self.sound_file)]
        # paplay takes 0-65536 (100%)
        return ["paplay", f"--volume={volume * 65536 // 100}", str(self.sound_file)]

    async def play(self, volume: int) -> None:
        if volume <= 0:
            return
        if not self.sound_file.exists():
            raise NotificationError(f"Sound file not found: {self.sound_file}")
        await _run(self.build_command(volume), timeout=10.0)
