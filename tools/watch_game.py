import argparse
import asyncio
import logging
from collections.abc import Sequence

from ticker_client.core.config import get_settings
from ticker_client.core.logging_config import configure_logging
from ticker_client.main import GameClient
from ticker_client.realtime.game_store import GameUiState
from ticker_client.schemas.game import GameSnapshot
from ticker_client.services.chart_service import price_delta, price_range, sparkline_points
from ticker_client.services.portfolio_service import final_standings, winners

logger = logging.getLogger("watch_game")

SPARK_BARS = "▁▂▃▄▅▆▇█"


def sparkline(history: Sequence[float] | None) -> str:
    low, high = price_range(history)
    span = high - low
    return "".join(
        SPARK_BARS[min(len(SPARK_BARS) - 1, int((point - low) / span * len(SPARK_BARS)))]
        for point in sparkline_points(history)
    )


def describe(state: GameUiState) -> str:
    game = state.game
    if game is None:
        return "waiting for data"
    prices = ", ".join(
        f"{symbol}={quote.price:.2f}({price_delta(state.price_history.get(symbol)):+.2f}) "
        f"{sparkline(state.price_history.get(symbol))}"
        for symbol, quote in sorted(game.stocks.items())
    )
    return (
        f"game={game.id} status={game.status} round={game.round}/{game.max_rounds} "
        f"turn={game.current_turn_player_id} players={len(game.players)} {prices}"
    )


def log_standings(game: GameSnapshot) -> None:
    for place, standing in enumerate(final_standings(game), start=1):
        logger.info(
            "%d. %s net worth %.2f (cash %.2f, holdings %.2f)",
            place,
            standing.username,
            standing.net_worth,
            standing.cash,
            standing.holdings_value,
        )
    names = ", ".join(standing.username for standing in winners(game))
    logger.info("winner: %s", names or "nobody")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.url:
        settings = settings.model_copy(update={"server_url": args.url})
    client = GameClient(settings)
    async with client:
        identity = client.identity
        logger.info("playing as %s (%s)", identity.username, identity.kind)
        if not client.transport.connected:
            logger.info("waiting for connection to %s", settings.server_url)

        if args.create:
            result = await client.gateway.create_game(
                args.rounds, args.max_players, args.ai, not args.private, identity
            )
        elif args.game and args.rejoin:
            result = await client.gateway.rejoin_game(args.game, identity)
        elif args.game:
            result = await client.gateway.join_game(args.game, identity)
        else:
            games = await client.gateway.list_public_games()
            for game in games:
                print(f"{game.id}  players={game.players}/{game.max_players}  round={game.round}")
            if not games:
                print("no public games waiting for players")
            return 0

        if not result.success:
            logger.error("command %s: %s", result.outcome, result.message)
            return 1
        logger.info("in game %s", result.game_id)

        def on_change(state: GameUiState) -> None:
            logger.info(describe(state))
            if state.toast_message:
                logger.info("toast: %s", state.toast_message)

        client.store.watch(on_change)
        try:
            final_state = await client.store.wait_for(
                lambda state: state.game is not None and state.game.status == "complete",
                timeout=args.seconds or None,
            )
        except asyncio.TimeoutError:
            logger.info("stopped watching after %ss", args.seconds)
        else:
            logger.info("game complete")
            log_standings(final_state.game)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Join a Stock Ticker game and log every state change")
    parser.add_argument("--url", default=None)
    parser.add_argument("--game", default=None, help="game id to join")
    parser.add_argument("--rejoin", action="store_true")
    parser.add_argument("--create", action="store_true")
    parser.add_argument("--rounds", type=int, default=10)
    parser.add_argument("--max-players", type=int, default=4)
    parser.add_argument("--ai", type=int, default=1)
    parser.add_argument("--private", action="store_true")
    parser.add_argument("--seconds", type=float, default=0.0)
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    configure_logging(args.log_level or get_settings().log_level)
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
