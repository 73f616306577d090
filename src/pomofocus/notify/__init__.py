"""Desktop notification and sound backends."""

from pomofocus.notify.desktop import DesktopNotifier, NotificationError, SoundPlayer

__all__ = ["DesktopNotifier", "NotificationError", "SoundPlayer"]
