import logging
import threading
from typing import Optional

import requests

from replayctl.config.models import ChatConfig
from replayctl.domain.events import PlaybackStarted
from replayctl.infrastructure.event_bus import EventBus, Subscription

logger = logging.getLogger(__name__)


def format_now_playing(event: PlaybackStarted) -> str:
    players = event.metadata.get("Players") or event.metadata.get("players") or []
    names = [p.get("Name") or p.get("name") for p in players if isinstance(p, dict)]
    names = [n for n in names if n]
    if names:
        return f"Now playing: {' vs '.join(names)} {event.playable_id}"
    return f"Now playing: {event.playable_id}"


class ChatRelay:
    """Posts a "now playing" message to a chat webhook for every started replay.

    Runs on its own daemon thread with a private subscription, so a slow or
    failing webhook never delays the playback loop.
    """

    def __init__(self, bus: EventBus, config: ChatConfig, session: Optional[requests.Session] = None):
        if not config.enabled:
            raise ValueError("chat relay needs chat.webhook_url")
        self.bus = bus
        self.config = config
        self.session = session or requests.Session()
        self._sub: Optional[Subscription] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def notify(self, event: PlaybackStarted) -> bool:
        headers = {}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        try:
            response = self.session.post(
                self.config.webhook_url,
                json={"content": format_now_playing(event)},
                headers=headers,
                timeout=self.config.timeout_s,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Chat notification failed: {e}")
            return False
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            event = self._sub.get(timeout=1.0)
            if event is None:
                if self._sub.closed:
                    break
                continue
            self.notify(event)
        if self._sub.dropped:
            logger.info(f"Chat relay skipped {self._sub.dropped} notification(s) while lagging")

    def start(self) -> None:
        self._sub = self.bus.subscribe(PlaybackStarted, maxlen=self.config.buffer_size)
        self._thread = threading.Thread(target=self._run, name="replayctl-chat", daemon=True)
        self._thread.start()
        logger.info("Chat relay enabled")

    def stop(self) -> None:
        self._stop.set()
        if self._sub:
            self._sub.close()
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
