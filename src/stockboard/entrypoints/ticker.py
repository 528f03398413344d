"""
Minuterie périodique de l'application.

Indépendamment de toute mutation, elle signale le changement de
jour (les acquittements de la veille tombent) et interroge le
journal distant quand celui-ci ne pousse pas ses instantanés.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from stockboard.domain import commands, model
from stockboard.service_layer import messagebus

logger = logging.getLogger(__name__)


class Ticker:
    def __init__(
        self,
        bus: messagebus.MessageBus,
        interval: float = 60.0,
        event_store: Optional[object] = None,
        ref: str = model.RÉF_PAR_DÉFAUT,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.bus = bus
        self.interval = interval
        self.event_store = event_store
        self.ref = ref
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> None:
        """Une itération : changement de jour puis scrutation du magasin distant."""
        poll = getattr(self.event_store, "poll", None)
        if poll is not None:
            poll()
        self.bus.handle(commands.RollOverDay(today=self.clock().date(), ref=self.ref))

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Erreur lors du tick périodique")

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="stockboard-ticker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval)
            self._thread = None
