from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

GameStatus = Literal["waiting", "initial-buy", "active", "complete"]
STATUS_ORDER: tuple[str, ...] = ("waiting", "initial-buy", "active", "complete")


def normalize_status(value: Any) -> str:
    normalized = value.strip().lower() if isinstance(value, str) else ""
    return normalized if normalized in STATUS_ORDER else "waiting"


def status_rank(status: str) -> int:
    return STATUS_ORDER.index(normalize_status(status))


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class StockQuote(WireModel):
    price: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _bare_price(cls, data: Any) -> Any:
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return {"price": data}
        return data

    @field_validator("price", mode="before")
    @classmethod
    def _non_negative_price(cls, value: Any) -> float:
        return max(0.0, _as_float(value))


class PurchaseLot(WireModel):
    qty: int = 0
    price: float = 0.0

    @field_validator("qty", mode="before")
    @classmethod
    def _whole_qty(cls, value: Any) -> int:
        return int(_as_float(value))

    @field_validator("price", mode="before")
    @classmethod
    def _lot_price(cls, value: Any) -> float:
        return _as_float(value)


def _normalize_lots(raw: Any) -> list[Any]:
    # A flat quantity is the older wire shape: one lot without a known cost basis.
    if isinstance(raw, bool):
        return []
    if isinstance(raw, (int, float)):
        return [{"qty": raw, "price": 0.0}]
    if isinstance(raw, dict):
        return [raw]
    if isinstance(raw, list):
        lots: list[Any] = []
        for item in raw:
            lots.extend(_normalize_lots(item))
        return lots
    return []


class Player(WireModel):
    id: str = ""
    username: str = ""
    cash: float = 0.0
    portfolio: dict[str, list[PurchaseLot]] = Field(default_factory=dict)
    has_rolled: bool | None = Field(default=None, alias="hasRolled")

    @field_validator("id", "username", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(value)

    @field_validator("cash", mode="before")
    @classmethod
    def _cash(cls, value: Any) -> float:
        return max(0.0, _as_float(value))

    @field_validator("portfolio", mode="before")
    @classmethod
    def _portfolio_lots(cls, value: Any) -> dict[str, list[Any]]:
        if not isinstance(value, dict):
            return {}
        return {str(symbol): _normalize_lots(raw) for symbol, raw in value.items()}

    @field_validator("portfolio", mode="after")
    @classmethod
    def _drop_empty_lots(cls, value: dict[str, list[PurchaseLot]]) -> dict[str, list[PurchaseLot]]:
        cleaned: dict[str, list[PurchaseLot]] = {}
        for symbol, lots in value.items():
            kept = [lot for lot in lots if lot.qty > 0]
            if kept:
                cleaned[symbol] = kept
        return cleaned

    def shares_of(self, symbol: str) -> int:
        return sum(lot.qty for lot in self.portfolio.get(symbol, []))


class HistoryEntry(WireModel):
    round: int = 0
    player: str = Field(default="", validation_alias=AliasChoices("player", "username", "playerName"))
    description: str = Field(
        default="",
        validation_alias=AliasChoices("description", "action", "message"),
    )

    @field_validator("player", "description", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(value)

    @field_validator("round", mode="before")
    @classmethod
    def _round(cls, value: Any) -> int:
        return int(_as_float(value))


class GameSnapshot(WireModel):
    id: str = ""
    round: int = 1
    max_rounds: int = Field(default=1, alias="maxRounds")
    max_players: int = Field(default=0, alias="maxPlayers")
    status: GameStatus = "waiting"
    current_turn_player_id: str | None = Field(default=None, alias="currentTurnPlayerId")
    stocks: dict[str, StockQuote] = Field(default_factory=dict)
    players: list[Player] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)

    @field_validator("id", "current_turn_player_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> str:
        return normalize_status(value)

    @field_validator("stocks", mode="before")
    @classmethod
    def _stocks(cls, value: Any) -> dict:
        if not isinstance(value, dict):
            return {}
        return {str(symbol): quote for symbol, quote in value.items() if quote is not None}

    @field_validator("players", "history", mode="before")
    @classmethod
    def _sequence(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @property
    def host(self) -> Player | None:
        return self.players[0] if self.players else None

    @property
    def is_turn_based(self) -> bool:
        return self.status in ("initial-buy", "active")

    def player(self, player_id: str | None) -> Player | None:
        if not player_id:
            return None
        return next((entry for entry in self.players if entry.id == player_id), None)

    def current_player(self) -> Player | None:
        return self.player(self.current_turn_player_id)

    def price_of(self, symbol: str, default: float = 0.0) -> float:
        quote = self.stocks.get(symbol)
        return quote.price if quote is not None else default


class DiceRoll(WireModel):
    stock: str = ""
    action: str = ""
    amount: float = 0.0

    @field_validator("stock", mode="before")
    @classmethod
    def _stock(cls, value: Any) -> str:
        return str(value).strip()

    @field_validator("action", mode="before")
    @classmethod
    def _action(cls, value: Any) -> str:
        return str(value).strip().lower()

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> float:
        return _as_float(value)


class PublicGameSummary(WireModel):
    id: str = ""
    players: int = 0
    max_players: int = Field(default=0, alias="maxPlayers")
    round: int = 0
    status: str = "waiting"

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(value)

    @field_validator("players", mode="before")
    @classmethod
    def _player_count(cls, value: Any) -> int:
        if isinstance(value, list):
            return len(value)
        return int(_as_float(value))

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> str:
        return normalize_status(value)
