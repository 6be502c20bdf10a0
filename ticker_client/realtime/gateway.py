import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal

from pydantic import ValidationError

from ticker_client.core.config import Settings, get_settings
from ticker_client.core.errors import AckTimeoutError, TransportNotConnectedError
from ticker_client.realtime import events
from ticker_client.realtime.game_store import GameSessionStore
from ticker_client.realtime.public_games import PublicGameDirectory
from ticker_client.realtime.transport import TransportSession
from ticker_client.schemas.commands import (
    CommandAck,
    CommandRequest,
    GameCreateRequest,
    GameJoinRequest,
    GameRefRequest,
    GameRejoinRequest,
    TradeRequest,
)
from ticker_client.schemas.game import PublicGameSummary
from ticker_client.services.credential_store import CredentialStore
from ticker_client.services.eligibility_service import TurnAction, check_trade
from ticker_client.services.identity_service import UserIdentity

logger = logging.getLogger(__name__)

CommandOutcome = Literal["ok", "rejected", "unknown"]

NOT_CONNECTED_MESSAGE = "Not connected to the game server"
NO_RESPONSE_MESSAGE = "No response from the server"
UNEXPECTED_RESPONSE_MESSAGE = "Unexpected server response."
MISSING_GAME_ID_MESSAGE = "Server did not return a valid Game ID."

LOCAL_ACTION_MESSAGES: dict[TurnAction, str] = {
    "roll": "You cannot roll right now",
    "buy": "You cannot buy right now",
    "sell": "You cannot sell right now",
    "end_turn": "You cannot end your turn right now",
}


@dataclass
class CommandResult:
    outcome: CommandOutcome
    message: str | None = None
    ack: CommandAck | None = None
    game_id: str | None = None
    emitted: bool = True
    stale: bool = False

    @property
    def success(self) -> bool:
        return self.outcome == "ok"


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
    message = str(first.get("msg", "Invalid request"))
    return f"{location}: {message}" if location else message


class CommandGateway:
    def __init__(
        self,
        transport: TransportSession,
        store: GameSessionStore,
        credentials: CredentialStore | None = None,
        settings: Settings | None = None,
        player_id_provider: Callable[[], str | None] | None = None,
        directory: PublicGameDirectory | None = None,
    ) -> None:
        self._transport = transport
        self._store = store
        self._credentials = credentials
        self._settings = settings or get_settings()
        self._player_id_provider = player_id_provider or (lambda: transport.sid)
        self._directory = directory or PublicGameDirectory(transport)

    @property
    def player_id(self) -> str | None:
        return self._player_id_provider()

    @property
    def directory(self) -> PublicGameDirectory:
        return self._directory

    def _toast(self, message: str, generation: int | None = None) -> None:
        self._store.submit(events.GAME_TOAST, {"message": message}, generation)

    def _reject_locally(self, message: str, *, toast: bool = True) -> CommandResult:
        logger.debug("command rejected locally: %s", message)
        if toast:
            self._toast(message)
        return CommandResult(outcome="rejected", message=message, emitted=False)

    async def _send(
        self,
        event: str,
        request: CommandRequest,
        default_error: str,
        *,
        toast: bool = True,
    ) -> CommandResult:
        generation = self._store.generation
        try:
            raw_ack = await self._transport.call(
                event,
                request.to_payload(),
                timeout=self._settings.ack_timeout_seconds,
            )
        except TransportNotConnectedError:
            if toast:
                self._toast(NOT_CONNECTED_MESSAGE, generation)
            return CommandResult(outcome="rejected", message=NOT_CONNECTED_MESSAGE, emitted=False)
        except AckTimeoutError as exc:
            logger.warning("outcome of %s is unknown: %s", event, exc)
            return CommandResult(outcome="unknown", message=NO_RESPONSE_MESSAGE)

        stale = generation != self._store.generation
        if stale:
            logger.debug("acknowledgement for %s arrived after the game state was cleared", event)

        ack = self._parse_ack(event, raw_ack)
        if ack is None:
            return CommandResult(outcome="unknown", message=UNEXPECTED_RESPONSE_MESSAGE, stale=stale)
        if not ack.success:
            reason = ack.reason(default_error)
            if toast and not stale:
                self._toast(reason, generation)
            return CommandResult(outcome="rejected", message=reason, ack=ack, stale=stale)
        return CommandResult(outcome="ok", ack=ack, game_id=ack.game_id, stale=stale)

    @staticmethod
    def _parse_ack(event: str, raw_ack: Any) -> CommandAck | None:
        if not isinstance(raw_ack, dict):
            logger.warning("unexpected acknowledgement for %s: %r", event, raw_ack)
            return None
        try:
            return CommandAck.model_validate(raw_ack)
        except ValidationError as exc:
            logger.warning("undecodable acknowledgement for %s: %s", event, exc)
            return None

    def _remember_game(self, game_id: str | None) -> None:
        if self._credentials is not None and game_id:
            self._credentials.set_last_game_id(game_id)

    async def _start_fresh_session(self) -> None:
        await self._store.clear_game_state()
        self._store.open()

    def _gate(self, action: TurnAction) -> CommandResult | None:
        eligibility = self._store.eligibility(self.player_id)
        if eligibility.allows(action):
            return None
        return self._reject_locally(LOCAL_ACTION_MESSAGES[action])

    async def create_game(
        self,
        rounds: int,
        max_players: int,
        ai_count: int,
        is_public: bool,
        identity: UserIdentity,
    ) -> CommandResult:
        try:
            request = GameCreateRequest(
                rounds=rounds,
                max_players=max_players,
                ai_count=ai_count,
                is_public=is_public,
                username=identity.username,
                token=identity.token,
            )
        except ValidationError as exc:
            return self._reject_locally(_validation_message(exc), toast=False)

        await self._start_fresh_session()
        result = await self._send(events.GAME_CREATE, request, "Failed to create game.", toast=False)
        if result.success and not result.game_id:
            return CommandResult(outcome="rejected", message=MISSING_GAME_ID_MESSAGE, ack=result.ack)
        if result.success:
            self._remember_game(result.game_id)
        return result

    async def join_game(self, game_id: str, identity: UserIdentity) -> CommandResult:
        try:
            request = GameJoinRequest(game_id=game_id, username=identity.username, token=identity.token)
        except ValidationError as exc:
            return self._reject_locally(_validation_message(exc))

        await self._start_fresh_session()
        result = await self._send(events.GAME_JOIN, request, "Join failed")
        if result.success:
            result.game_id = result.game_id or request.game_id
            self._remember_game(result.game_id)
        return result

    async def rejoin_game(self, game_id: str, identity: UserIdentity) -> CommandResult:
        try:
            request = GameRejoinRequest(game_id=game_id, username=identity.username, token=identity.token)
        except ValidationError as exc:
            return self._reject_locally(_validation_message(exc))

        if self._store.state.game_id not in (None, request.game_id):
            await self._store.clear_game_state()
        self._store.open()
        result = await self._send(events.GAME_REJOIN, request, "Rejoin failed")
        if result.success:
            result.game_id = result.game_id or request.game_id
            self._remember_game(result.game_id)
        return result

    async def on_foreground(self, identity: UserIdentity) -> CommandResult | None:
        snapshot = self._store.state.game
        if snapshot is not None and snapshot.status == "complete":
            if self._credentials is not None:
                self._credentials.clear_last_game_id()
            return None
        game_id = self._store.state.game_id
        if game_id is None and self._credentials is not None:
            game_id = self._credentials.get_last_game_id()
        if not game_id:
            return None
        if not self._transport.connected:
            await self._transport.open()
        logger.info("regained foreground, rejoining %s", game_id)
        return await self.rejoin_game(game_id, identity)

    async def roll(self, game_id: str) -> CommandResult:
        rejected = self._gate("roll")
        if rejected is not None:
            return rejected
        try:
            request = GameRefRequest(game_id=game_id)
        except ValidationError as exc:
            return self._reject_locally(_validation_message(exc))

        result = await self._send(events.GAME_ROLL, request, "Roll failed")
        if result.success and not result.stale and result.ack is not None and result.ack.roll is not None:
            self._store.submit(events.GAME_DICE_ROLLED, result.ack.roll)
        return result

    async def _trade(
        self,
        side: Literal["buy", "sell"],
        game_id: str,
        symbol: str,
        quantity: int,
    ) -> CommandResult:
        rejected = self._gate(side)
        if rejected is not None:
            return rejected
        problem = check_trade(
            self._store.state.game,
            self.player_id,
            side,
            symbol,
            quantity,
            self._settings.trade_unit,
        )
        if problem is not None:
            return self._reject_locally(problem)
        try:
            request = TradeRequest(game_id=game_id, stock=symbol, quantity=quantity)
        except ValidationError as exc:
            return self._reject_locally(_validation_message(exc))

        event = events.GAME_BUY if side == "buy" else events.GAME_SELL
        default_error = "Buy failed" if side == "buy" else "Sell failed"
        return await self._send(event, request, default_error)

    async def buy(self, game_id: str, symbol: str, quantity: int) -> CommandResult:
        return await self._trade("buy", game_id, symbol, quantity)

    async def sell(self, game_id: str, symbol: str, quantity: int) -> CommandResult:
        return await self._trade("sell", game_id, symbol, quantity)

    async def end_turn(self, game_id: str) -> CommandResult:
        rejected = self._gate("end_turn")
        if rejected is not None:
            return rejected
        try:
            request = GameRefRequest(game_id=game_id)
        except ValidationError as exc:
            return self._reject_locally(_validation_message(exc))
        return await self._send(events.GAME_END_TURN, request, "Cannot end turn")

    async def start_game(self, game_id: str) -> CommandResult:
        snapshot = self._store.state.game
        if snapshot is not None and snapshot.status != "waiting":
            return self._reject_locally("Game has already started")
        try:
            request = GameRefRequest(game_id=game_id)
        except ValidationError as exc:
            return self._reject_locally(_validation_message(exc))
        return await self._send(events.GAME_START, request, "Start failed")

    async def return_home(self, game_id: str) -> None:
        if self._credentials is not None:
            self._credentials.clear_last_game_id()
        await self._store.clear_game_state()
        try:
            request = GameRefRequest(game_id=game_id)
        except ValidationError:
            return
        try:
            await self._transport.emit(events.GAME_RETURN_HOME, request.to_payload())
        except TransportNotConnectedError as exc:
            logger.warning("returnHome not delivered: %s", exc)

    async def clear_game_state(self) -> None:
        await self._store.clear_game_state()

    async def list_public_games(self) -> list[PublicGameSummary]:
        return await self._directory.refresh()
