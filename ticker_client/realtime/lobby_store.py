import logging
from dataclasses import dataclass
from typing import Any, Callable

from ticker_client.realtime import events
from ticker_client.realtime.game_store import parse_countdown
from ticker_client.realtime.transport import ListenerScope, TransportSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LobbyState:
    countdown: int | None = None


class LobbyCountdownStore:
    def __init__(self, transport: TransportSession) -> None:
        self._state = LobbyState()
        self._watchers: list[Callable[[LobbyState], Any]] = []
        self._scope: ListenerScope = transport.scope()
        self._scope.subscribe(events.GAME_COUNTDOWN, self._on_countdown)
        self._scope.subscribe(events.GAME_COUNTDOWN_CANCELLED, self._on_countdown_cancelled)

    @property
    def state(self) -> LobbyState:
        return self._state

    @property
    def countdown(self) -> int | None:
        return self._state.countdown

    @property
    def closed(self) -> bool:
        return self._scope.closed

    def watch(self, watcher: Callable[[LobbyState], Any]) -> None:
        self._watchers.append(watcher)

    def _set_state(self, state: LobbyState) -> None:
        if state == self._state:
            return
        self._state = state
        for watcher in list(self._watchers):
            try:
                watcher(state)
            except Exception:
                logger.exception("lobby watcher failed")

    def _on_countdown(self, payload: Any) -> None:
        seconds = parse_countdown(payload)
        if seconds is None:
            logger.warning("ignoring lobby countdown payload %r", payload)
            return
        self._set_state(LobbyState(countdown=seconds))

    def _on_countdown_cancelled(self, _payload: Any) -> None:
        self._set_state(LobbyState(countdown=None))

    def close(self) -> None:
        self._scope.close()
        self._watchers.clear()
        self._state = LobbyState()
