# tts.py
# Announcer: speaks navigation messages on a background worker thread.
# Each message is rendered by pyttsx3 in a child process so a stuck audio
# backend cannot hang the worker.

import logging
import queue
import subprocess
import sys
import threading
from typing import Callable, Dict, List, Optional

from sidequest.navigation.models import Announcement, AnnouncementCategory
from sidequest.navigation.nav_config import COMMON_PHRASES, NavConfig

logger = logging.getLogger(__name__)

PREFIXES: Dict[AnnouncementCategory, str] = {
    AnnouncementCategory.SUCCESS:  "Congratulations! ",
    AnnouncementCategory.WARNING:  "Attention: ",
    AnnouncementCategory.INFO:     "Navigation: ",
    AnnouncementCategory.PROGRESS: "Update: ",
}


def pyttsx3_renderer(rate: int = 150, timeout_s: float = 30.0) -> Callable[[str], None]:
    """Renderer that speaks text with pyttsx3 in a separate interpreter."""

    def render(text: str) -> None:
        script = (
            "import pyttsx3\n"
            "engine = pyttsx3.init()\n"
            f"engine.setProperty('rate', {int(rate)})\n"
            f"engine.say({repr(text)})\n"
            "engine.runAndWait()"
        )
        subprocess.run([sys.executable, "-c", script], check=True, timeout=timeout_s)

    return render


class Announcer:
    """
    Fire-and-forget speech output.

    submit() never blocks on audio and never raises; delayed announcements
    wait on a timer, then join the same queue. Rendering errors are logged.

    Args:
        config:   NavConfig for speech rate and timeout.
        renderer: Callable that speaks one string; defaults to pyttsx3.
        enabled:  When False, messages are only logged.
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        renderer: Optional[Callable[[str], None]] = None,
        enabled: bool = True,
    ) -> None:
        self.config = config or NavConfig()
        self.enabled = enabled
        self._render = renderer or pyttsx3_renderer(self.config.speech_rate, self.config.speech_timeout_s)

        self._queue: "queue.Queue[Optional[str]]" = queue.Queue()
        self._timers: List[threading.Timer] = []
        self._timers_lock = threading.Lock()
        self._thread = threading.Thread(target=self._worker, name="announcer", daemon=True)
        self._thread.start()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def speak(self, text: str, category: Optional[AnnouncementCategory] = AnnouncementCategory.INFO) -> None:
        """Queue a message, prefixed for its category."""
        text = (text or "").strip()
        if not text:
            return
        prefix = PREFIXES.get(category, "") if category is not None else ""
        self._enqueue(prefix + text)

    def play_phrase(self, name: str) -> None:
        """Queue one of the prebuilt common phrases by key."""
        text = COMMON_PHRASES.get(name)
        if text is None:
            logger.warning(f"Unknown phrase: {name}")
            return
        self._enqueue(text)

    def submit(self, announcement: Announcement) -> None:
        """Speak an announcement now or after its delay."""
        try:
            if announcement.delay_s > 0:
                timer = threading.Timer(announcement.delay_s, self._deliver, args=(announcement,))
                timer.daemon = True
                with self._timers_lock:
                    self._timers = [t for t in self._timers if t.is_alive()]
                    self._timers.append(timer)
                timer.start()
            else:
                self._deliver(announcement)
        except Exception as e:
            logger.error(f"Could not schedule announcement '{announcement.text}': {e}")

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        logger.info(f"TTS {'enabled' if enabled else 'disabled'}")

    def get_status(self) -> dict:
        with self._timers_lock:
            pending = sum(1 for t in self._timers if t.is_alive())
        return {
            "enabled": self.enabled,
            "queued": self._queue.qsize(),
            "scheduled": pending,
            "phrases": sorted(COMMON_PHRASES),
        }

    def flush(self, timeout_s: Optional[float] = None) -> None:
        """Wait for scheduled timers to fire and the queue to drain."""
        with self._timers_lock:
            timers = list(self._timers)
        for timer in timers:
            timer.join(timeout_s)
        self._queue.join()

    def close(self, timeout_s: float = 5.0) -> None:
        """Cancel pending timers and stop the worker after the queue drains."""
        with self._timers_lock:
            for timer in self._timers:
                timer.cancel()
            self._timers = []
        self._queue.join()
        self._queue.put(None)
        self._thread.join(timeout=timeout_s)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _deliver(self, announcement: Announcement) -> None:
        if announcement.phrase is not None:
            self.play_phrase(announcement.phrase)
        else:
            self.speak(announcement.text, announcement.category)

    def _enqueue(self, text: str) -> None:
        logger.info(f"TTS: {text}")
        if self.enabled:
            self._queue.put(text)

    def _worker(self) -> None:
        while True:
            text = self._queue.get()
            if text is None:
                self._queue.task_done()
                break
            try:
                self._render(text)
            except Exception as e:
                logger.error(f"TTS error: {e}")
            finally:
                self._queue.task_done()
