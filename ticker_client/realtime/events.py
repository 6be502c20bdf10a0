GAME_CREATE = "game:create"
GAME_JOIN = "game:join"
GAME_REJOIN = "game:rejoin"
GAME_ROLL = "game:roll"
GAME_BUY = "game:buy"
GAME_SELL = "game:sell"
GAME_END_TURN = "game:endTurn"
GAME_START = "game:start"
GAME_RETURN_HOME = "game:returnHome"
GAME_LIST_PUBLIC = "game:listPublic"

GAME_UPDATE = "game:update"
GAME_DICE_ROLLED = "game:diceRolled"
GAME_TOAST = "game:toast"
GAME_COUNTDOWN = "game:countdown"
GAME_COUNTDOWN_CANCELLED = "game:countdownCancelled"
GAME_CLEAR_ROLL = "game:clearRoll"
GAME_PUBLIC_UPDATED = "game:publicUpdated"

GAME_STATE_EVENTS = (
    GAME_UPDATE,
    GAME_DICE_ROLLED,
    GAME_TOAST,
    GAME_COUNTDOWN,
    GAME_COUNTDOWN_CANCELLED,
    GAME_CLEAR_ROLL,
)
