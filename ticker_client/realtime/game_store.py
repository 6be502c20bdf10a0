import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from pydantic import ValidationError

from ticker_client.core.config import Settings, get_settings
from ticker_client.realtime import events
from ticker_client.realtime.transport import ListenerScope, TransportSession
from ticker_client.schemas.game import DiceRoll, GameSnapshot, status_rank
from ticker_client.services.eligibility_service import TurnEligibility, TurnKey, evaluate_turn, turn_key

logger = logging.getLogger(__name__)

LOCAL_RECONNECTED = "local:reconnected"

StateWatcher = Callable[["GameUiState"], Any]


@dataclass(frozen=True)
class GameUiState:
    game: GameSnapshot | None = None
    stock_changes: dict[str, str] = field(default_factory=dict)
    price_history: dict[str, tuple[float, ...]] = field(default_factory=dict)
    last_roll: DiceRoll | None = None
    toast_message: str | None = None
    countdown: int | None = None
    rolled_turn: TurnKey | None = None
    synced: bool = True

    @property
    def is_loading(self) -> bool:
        return self.game is None

    @property
    def game_id(self) -> str | None:
        return self.game.id if self.game and self.game.id else None


EMPTY_STATE = GameUiState()


def _apply_snapshot(state: GameUiState, payload: Any) -> GameUiState:
    if isinstance(payload, GameSnapshot):
        snapshot = payload
    elif isinstance(payload, dict):
        try:
            snapshot = GameSnapshot.model_validate(payload)
        except ValidationError as exc:
            logger.warning("dropping undecodable game snapshot: %s", exc)
            return state
    else:
        logger.warning("dropping game snapshot with payload type %s", type(payload).__name__)
        return state

    previous = state.game
    if (
        state.synced
        and previous is not None
        and previous.id == snapshot.id
        and status_rank(snapshot.status) < status_rank(previous.status)
    ):
        logger.warning(
            "dropping out-of-order snapshot for %s: %s after %s",
            snapshot.id,
            snapshot.status,
            previous.status,
        )
        return state
    return replace(state, game=snapshot, synced=True)


def _apply_dice_roll(state: GameUiState, payload: Any, settings: Settings) -> GameUiState:
    if isinstance(payload, DiceRoll):
        roll = payload
    elif isinstance(payload, dict):
        try:
            roll = DiceRoll.model_validate(payload)
        except ValidationError as exc:
            logger.warning("dropping undecodable dice roll: %s", exc)
            return state
    else:
        return state
    if not roll.stock:
        logger.warning("dropping dice roll without a stock: %r", payload)
        return state

    fallback = settings.roll_price_fallback
    price = state.game.price_of(roll.stock, fallback) if state.game else fallback
    size = max(1, settings.price_history_size)
    history = (*state.price_history.get(roll.stock, ()), price)[-size:]

    return replace(
        state,
        last_roll=roll,
        stock_changes={**state.stock_changes, roll.stock: roll.action},
        price_history={**state.price_history, roll.stock: history},
        rolled_turn=turn_key(state.game) if state.game else None,
    )


def _apply_toast(state: GameUiState, payload: Any) -> GameUiState:
    message = payload.get("message") if isinstance(payload, dict) else payload
    if not isinstance(message, str) or not message.strip():
        return state
    return replace(state, toast_message=message.strip())


def parse_countdown(payload: Any) -> int | None:
    seconds = payload.get("seconds") if isinstance(payload, dict) else payload
    if isinstance(seconds, bool):
        return None
    try:
        return max(0, int(seconds))
    except (TypeError, ValueError):
        return None


def _apply_countdown(state: GameUiState, payload: Any) -> GameUiState:
    value = parse_countdown(payload)
    if value is None:
        logger.warning("dropping countdown with payload %r", payload)
        return state
    return replace(state, countdown=value)


def reduce_event(
    state: GameUiState,
    event: str,
    payload: Any = None,
    settings: Settings | None = None,
) -> GameUiState:
    settings = settings or get_settings()
    if event == events.GAME_UPDATE:
        return _apply_snapshot(state, payload)
    if event == events.GAME_DICE_ROLLED:
        return _apply_dice_roll(state, payload, settings)
    if event == events.GAME_TOAST:
        return _apply_toast(state, payload)
    if event == events.GAME_COUNTDOWN:
        return _apply_countdown(state, payload)
    if event == events.GAME_COUNTDOWN_CANCELLED:
        return state if state.countdown is None else replace(state, countdown=None)
    if event == events.GAME_CLEAR_ROLL:
        return replace(state, last_roll=None, rolled_turn=None)
    if event == LOCAL_RECONNECTED:
        return state if not state.synced else replace(state, synced=False)
    logger.debug("ignoring unknown event %s", event)
    return state


class GameSessionStore:
    def __init__(self, transport: TransportSession, settings: Settings | None = None) -> None:
        self._transport = transport
        self._settings = settings or get_settings()
        self._state = EMPTY_STATE
        self._scope: ListenerScope | None = None
        self._queue: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None
        self._generation = 0
        self._watchers: list[StateWatcher] = []
        self._change_event = asyncio.Event()

    @property
    def state(self) -> GameUiState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_open(self) -> bool:
        return self._scope is not None and not self._scope.closed

    def open(self) -> None:
        if self.is_open:
            return
        self._queue = asyncio.Queue()
        self._scope = self._transport.scope()
        for event in events.GAME_STATE_EVENTS:
            self._scope.subscribe(event, self._handler_for(event))
        self._scope.on_connection(self._on_connection)
        self._consumer = asyncio.create_task(self._consume(self._queue))

    async def clear_game_state(self) -> None:
        # Queued items and in-flight acks from the previous generation are dropped.
        self._generation += 1
        if self._scope is not None:
            self._scope.close()
            self._scope = None
        consumer, self._consumer = self._consumer, None
        self._queue = None
        if consumer is not None and not consumer.done():
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
        self._set_state(EMPTY_STATE)

    async def close(self) -> None:
        await self.clear_game_state()

    def _handler_for(self, event: str) -> Callable[[Any], None]:
        def handle(payload: Any) -> None:
            self.submit(event, payload)

        return handle

    def _on_connection(self, connected: bool, epoch: int) -> None:
        if connected:
            logger.info("connection epoch %d: awaiting a fresh snapshot", epoch)
            self.submit(LOCAL_RECONNECTED)

    def submit(self, event: str, payload: Any = None, generation: int | None = None) -> bool:
        expected = self._generation if generation is None else generation
        if self._queue is None or expected != self._generation:
            logger.debug("discarding %s for stale generation %d", event, expected)
            return False
        self._queue.put_nowait((expected, event, payload))
        return True

    async def _consume(self, queue: asyncio.Queue) -> None:
        while True:
            generation, event, payload = await queue.get()
            try:
                if generation != self._generation:
                    continue
                next_state = reduce_event(self._state, event, payload, self._settings)
                if next_state is not self._state:
                    self._set_state(next_state)
            except Exception:
                logger.exception("failed to apply %s", event)
            finally:
                queue.task_done()

    async def drain(self) -> None:
        if self._queue is not None:
            await self._queue.join()

    def _set_state(self, next_state: GameUiState) -> None:
        self._state = next_state
        for watcher in list(self._watchers):
            try:
                watcher(next_state)
            except Exception:
                logger.exception("state watcher failed")
        fired, self._change_event = self._change_event, asyncio.Event()
        fired.set()

    def watch(self, watcher: StateWatcher) -> Callable[[], None]:
        self._watchers.append(watcher)

        def unwatch() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return unwatch

    async def wait_for(
        self,
        predicate: Callable[[GameUiState], bool],
        timeout: float | None = None,
    ) -> GameUiState:
        async def _wait() -> GameUiState:
            while not predicate(self._state):
                await self._change_event.wait()
            return self._state

        return await asyncio.wait_for(_wait(), timeout)

    def consume_toast(self) -> str | None:
        message = self._state.toast_message
        if message is None:
            return None
        self._set_state(replace(self._state, toast_message=None))
        return message

    def eligibility(self, player_id: str | None) -> TurnEligibility:
        return evaluate_turn(
            self._state.game,
            player_id,
            self._state.rolled_turn,
            self._settings.trade_unit,
        )
