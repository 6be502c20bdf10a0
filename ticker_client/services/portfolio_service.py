from dataclasses import dataclass

from ticker_client.schemas.game import GameSnapshot, Player, PurchaseLot


@dataclass
class Holding:
    symbol: str
    shares: int
    amount_paid: float
    current_value: float

    @property
    def gain(self) -> float:
        return self.current_value - self.amount_paid


@dataclass
class Standing:
    player_id: str
    username: str
    cash: float
    holdings_value: float

    @property
    def net_worth(self) -> float:
        return self.cash + self.holdings_value


def total_shares(lots: list[PurchaseLot]) -> int:
    return sum(lot.qty for lot in lots if lot.qty > 0)


def amount_paid(lots: list[PurchaseLot]) -> float:
    return sum(lot.qty * lot.price for lot in lots if lot.qty > 0)


def buy_lots(lots: list[PurchaseLot], qty: int, price: float) -> list[PurchaseLot]:
    if qty <= 0:
        return list(lots)
    return [*lots, PurchaseLot(qty=qty, price=price)]


def sell_lots(lots: list[PurchaseLot], qty: int) -> list[PurchaseLot]:
    if qty <= 0:
        return list(lots)
    if qty > total_shares(lots):
        raise ValueError(f"cannot sell {qty} shares, only {total_shares(lots)} owned")
    remaining = qty
    kept: list[PurchaseLot] = []
    for lot in lots:
        if lot.qty <= 0:
            continue
        if remaining >= lot.qty:
            remaining -= lot.qty
            continue
        kept.append(PurchaseLot(qty=lot.qty - remaining, price=lot.price))
        remaining = 0
    return kept


def apply_buy(
    portfolio: dict[str, list[PurchaseLot]],
    symbol: str,
    qty: int,
    price: float,
) -> dict[str, list[PurchaseLot]]:
    updated = dict(portfolio)
    updated[symbol] = buy_lots(portfolio.get(symbol, []), qty, price)
    return updated


def apply_sell(
    portfolio: dict[str, list[PurchaseLot]],
    symbol: str,
    qty: int,
) -> dict[str, list[PurchaseLot]]:
    updated = dict(portfolio)
    lots = sell_lots(portfolio.get(symbol, []), qty)
    if lots:
        updated[symbol] = lots
    else:
        updated.pop(symbol, None)
    return updated


def holdings_for(player: Player, snapshot: GameSnapshot) -> list[Holding]:
    holdings: list[Holding] = []
    for symbol in sorted(player.portfolio):
        lots = player.portfolio[symbol]
        shares = total_shares(lots)
        if shares == 0:
            continue
        holdings.append(
            Holding(
                symbol=symbol,
                shares=shares,
                amount_paid=amount_paid(lots),
                current_value=shares * snapshot.price_of(symbol),
            )
        )
    return holdings


def holdings_value(player: Player, snapshot: GameSnapshot) -> float:
    return sum(holding.current_value for holding in holdings_for(player, snapshot))


def net_worth(player: Player, snapshot: GameSnapshot) -> float:
    return player.cash + holdings_value(player, snapshot)


def final_standings(snapshot: GameSnapshot) -> list[Standing]:
    standings = [
        Standing(
            player_id=player.id,
            username=player.username,
            cash=player.cash,
            holdings_value=holdings_value(player, snapshot),
        )
        for player in snapshot.players
    ]
    standings.sort(key=lambda standing: standing.net_worth, reverse=True)
    return standings


def winners(snapshot: GameSnapshot) -> list[Standing]:
    standings = final_standings(snapshot)
    if not standings:
        return []
    top = standings[0].net_worth
    return [standing for standing in standings if abs(standing.net_worth - top) < 1e-9]
