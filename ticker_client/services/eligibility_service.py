import math
from dataclasses import dataclass
from typing import Literal

from ticker_client.schemas.game import GameSnapshot, Player

TurnAction = Literal["roll", "buy", "sell", "end_turn"]
TurnKey = tuple[str | None, int]
TURN_ACTIONS: tuple[TurnAction, ...] = ("roll", "buy", "sell", "end_turn")


@dataclass(frozen=True)
class TurnEligibility:
    is_my_turn: bool = False
    has_rolled: bool = False
    can_roll: bool = False
    can_buy: bool = False
    can_sell: bool = False
    can_end_turn: bool = False

    def allows(self, action: TurnAction) -> bool:
        return {
            "roll": self.can_roll,
            "buy": self.can_buy,
            "sell": self.can_sell,
            "end_turn": self.can_end_turn,
        }[action]

    @property
    def enabled_actions(self) -> list[TurnAction]:
        return [action for action in TURN_ACTIONS if self.allows(action)]


NO_ELIGIBILITY = TurnEligibility()


def turn_key(snapshot: GameSnapshot) -> TurnKey:
    return (snapshot.current_turn_player_id, snapshot.round)


def has_rolled_this_turn(snapshot: GameSnapshot, rolled_turn: TurnKey | None) -> bool:
    current = snapshot.current_player()
    if current is not None and current.has_rolled is not None:
        return current.has_rolled
    return rolled_turn is not None and rolled_turn == turn_key(snapshot)


def can_afford_trade_unit(player: Player, snapshot: GameSnapshot, trade_unit: int = 1) -> bool:
    unit = max(1, trade_unit)
    return any(
        quote.price > 0 and quote.price * unit <= player.cash + 1e-9
        for quote in snapshot.stocks.values()
    )


def owns_trade_unit(player: Player, trade_unit: int = 1) -> bool:
    unit = max(1, trade_unit)
    return any(player.shares_of(symbol) >= unit for symbol in player.portfolio)


def max_buy_quantity(player: Player, snapshot: GameSnapshot, symbol: str) -> int:
    price = snapshot.price_of(symbol)
    if price <= 0:
        return 0
    return max(0, math.floor((player.cash + 1e-9) / price))


def evaluate_turn(
    snapshot: GameSnapshot | None,
    player_id: str | None,
    rolled_turn: TurnKey | None = None,
    trade_unit: int = 1,
) -> TurnEligibility:
    if snapshot is None or not player_id:
        return NO_ELIGIBILITY
    if snapshot.current_turn_player_id != player_id or not snapshot.is_turn_based:
        return NO_ELIGIBILITY

    me = snapshot.player(player_id)
    rolled = has_rolled_this_turn(snapshot, rolled_turn)
    is_active = snapshot.status == "active"
    trading_open = snapshot.status == "initial-buy" or (is_active and rolled)
    return TurnEligibility(
        is_my_turn=True,
        has_rolled=rolled,
        can_roll=is_active and not rolled,
        can_buy=trading_open and me is not None and can_afford_trade_unit(me, snapshot, trade_unit),
        can_sell=trading_open and me is not None and owns_trade_unit(me, trade_unit),
        can_end_turn=trading_open,
    )


def check_trade(
    snapshot: GameSnapshot | None,
    player_id: str | None,
    side: Literal["buy", "sell"],
    symbol: str,
    quantity: int,
    trade_unit: int = 1,
) -> str | None:
    if snapshot is None or not player_id:
        return "Game is not loaded yet"
    me = snapshot.player(player_id)
    if me is None:
        return "You are not seated in this game"
    if symbol not in snapshot.stocks:
        return f"Unknown stock {symbol}"
    unit = max(1, trade_unit)
    if quantity <= 0 or quantity % unit != 0:
        return f"Quantity must be a positive multiple of {unit}"
    if side == "buy":
        if quantity > max_buy_quantity(me, snapshot, symbol):
            return "Not enough cash"
        return None
    if quantity > me.shares_of(symbol):
        return "Not enough shares"
    return None
