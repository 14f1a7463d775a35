import os
import sys
from PySide6.QtCore import Qt
from PySide6.QtWidgets import QApplication, QMessageBox
from bt.common.logger import log


# True when there's something for Qt to draw on. Without this check Qt aborts the whole process on Linux boxes with
# no display, which would take the fire handler (and its log line) down with it.
def has_display():
    if sys.platform in ("win32", "darwin"):
        return True
    return bool(os.getenv("DISPLAY") or os.getenv("WAYLAND_DISPLAY"))


# Audible cue plus a modal message, shown from whatever process fired the timer.
class Notifier:

    def __init__(self, sound=True):
        self.sound = sound

    def notify(self, title, message, final=False):
        log.info(f"Notification: {title} | {message!r}")
        if not has_display():
            self._notify_terminal(title, message)
            return
        app = QApplication.instance() or QApplication([])
        if self.sound:
            QApplication.beep()

        box = QMessageBox()
        box.setWindowTitle(title)
        box.setText(title)
        box.setInformativeText(message)
        box.setIcon(QMessageBox.Information if final else QMessageBox.NoIcon)
        box.setStandardButtons(QMessageBox.Ok)
        box.setWindowFlags(box.windowFlags() | Qt.WindowStaysOnTopHint)
        box.exec()
        app.processEvents()

    def _notify_terminal(self, title, message):
        log.warning("No display available, writing notification to stderr instead")
        bell = "\a" if self.sound else ""
        print(f"{bell}{title}\n{message}", file=sys.stderr, flush=True)
