from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ticker_client.schemas.game import DiceRoll, WireModel

MIN_ROUNDS = 1
MAX_ROUNDS = 100
MIN_PLAYERS = 2
MAX_PLAYERS = 8


class CommandRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class GameCreateRequest(CommandRequest):
    rounds: int = Field(ge=MIN_ROUNDS, le=MAX_ROUNDS)
    max_players: int = Field(ge=MIN_PLAYERS, le=MAX_PLAYERS, alias="maxPlayers")
    ai_count: int = Field(default=0, ge=0, alias="aiCount")
    is_public: bool = Field(default=True, alias="isPublic")
    username: str | None = None
    token: str | None = None

    @model_validator(mode="after")
    def _ai_leaves_a_seat(self) -> "GameCreateRequest":
        if self.ai_count > self.max_players - 1:
            raise ValueError("aiCount must leave at least one seat for a human player")
        return self


class GameRefRequest(CommandRequest):
    game_id: str = Field(min_length=1, alias="gameId")

    @field_validator("game_id", mode="before")
    @classmethod
    def _strip_game_id(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class GameJoinRequest(GameRefRequest):
    username: str | None = None
    token: str | None = None


class GameRejoinRequest(GameRefRequest):
    username: str = Field(min_length=1)
    token: str | None = None


class TradeRequest(GameRefRequest):
    stock: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class CommandAck(WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    success: bool = False
    error: str | None = None
    message: str | None = None
    game_id: str | None = Field(default=None, alias="gameId")
    roll: DiceRoll | None = None

    @field_validator("error", "message", "game_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(value)

    @field_validator("roll", mode="before")
    @classmethod
    def _roll(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    def reason(self, default: str) -> str:
        for candidate in (self.error, self.message):
            if candidate and candidate.strip():
                return candidate.strip()
        return default
