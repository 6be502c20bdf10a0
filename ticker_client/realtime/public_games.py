import logging
from typing import Any

from pydantic import ValidationError

from ticker_client.core.errors import AckTimeoutError, TransportNotConnectedError
from ticker_client.realtime import events
from ticker_client.realtime.transport import ListenerScope, TransportSession
from ticker_client.schemas.game import PublicGameSummary

logger = logging.getLogger(__name__)

JOINABLE_STATUS = "waiting"


def _parse_summary(payload: Any) -> PublicGameSummary | None:
    if not isinstance(payload, dict):
        return None
    try:
        summary = PublicGameSummary.model_validate(payload)
    except ValidationError as exc:
        logger.warning("ignoring undecodable public game entry: %s", exc)
        return None
    return summary if summary.id else None


class PublicGameDirectory:
    def __init__(self, transport: TransportSession) -> None:
        self._transport = transport
        self._games: dict[str, PublicGameSummary] = {}
        self._scope: ListenerScope | None = None

    @property
    def games(self) -> list[PublicGameSummary]:
        return list(self._games.values())

    def open(self) -> None:
        if self._scope is not None and not self._scope.closed:
            return
        self._scope = self._transport.scope()
        self._scope.subscribe(events.GAME_PUBLIC_UPDATED, self._on_public_updated)

    def close(self) -> None:
        if self._scope is not None:
            self._scope.close()
            self._scope = None
        self._games.clear()

    async def refresh(self) -> list[PublicGameSummary]:
        try:
            ack = await self._transport.call(events.GAME_LIST_PUBLIC, {})
        except (AckTimeoutError, TransportNotConnectedError) as exc:
            logger.warning("could not list public games: %s", exc)
            return self.games
        raw_games = ack.get("games") if isinstance(ack, dict) else None
        if not isinstance(raw_games, list):
            logger.warning("unexpected listPublic acknowledgement: %r", ack)
            return self.games

        games: dict[str, PublicGameSummary] = {}
        for raw in raw_games:
            summary = _parse_summary(raw)
            if summary is not None and summary.status == JOINABLE_STATUS:
                games[summary.id] = summary
        self._games = games
        return self.games

    def _on_public_updated(self, payload: Any) -> None:
        summary = _parse_summary(payload)
        if summary is None:
            return
        if summary.status != JOINABLE_STATUS:
            self._games.pop(summary.id, None)
            return
        self._games[summary.id] = summary
