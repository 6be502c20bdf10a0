import unittest

from fakes import game_payload, make_settings

from ticker_client.realtime import events
from ticker_client.realtime.game_store import EMPTY_STATE, LOCAL_RECONNECTED, reduce_event


class GameStoreReducerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = make_settings()

    def _reduce(self, state, event, payload=None):
        return reduce_event(state, event, payload, self.settings)

    def _roll(self, state, stock="Gold", action="up", amount=5):
        return self._reduce(state, events.GAME_DICE_ROLLED, {"stock": stock, "action": action, "amount": amount})

    def test_snapshot_replace_is_idempotent_and_keeps_derived_fields(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload())
        state = self._roll(state)
        once = self._reduce(state, events.GAME_UPDATE, game_payload(gold_price=1.5))
        twice = self._reduce(once, events.GAME_UPDATE, game_payload(gold_price=1.5))

        self.assertEqual(once, twice)
        self.assertEqual(twice.game.price_of("Gold"), 1.5)
        self.assertEqual(twice.price_history, {"Gold": (1.25,)})
        self.assertEqual(twice.stock_changes, {"Gold": "up"})

    def test_first_snapshot_ends_loading(self) -> None:
        self.assertTrue(EMPTY_STATE.is_loading)
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload())
        self.assertFalse(state.is_loading)
        self.assertEqual(state.game_id, "g1")
        self.assertEqual(state.game.host.username, "Alice")
        self.assertEqual(state.game.history[0].description, "bought 200 Oil")

    def test_gold_roll_appends_current_price_and_marks_change(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload(gold_price=1.25))
        state = self._roll(state, stock="Gold", action="up", amount=5)

        self.assertEqual(state.price_history["Gold"], (1.25,))
        self.assertEqual(state.stock_changes["Gold"], "up")
        self.assertEqual(state.last_roll.amount, 5.0)
        self.assertEqual(state.rolled_turn, ("me", 1))

    def test_price_history_is_bounded_to_most_recent_values(self) -> None:
        prices = [1.0 + step * 0.05 for step in range(12)]
        state = EMPTY_STATE
        for price in prices:
            state = self._reduce(state, events.GAME_UPDATE, game_payload(gold_price=price))
            state = self._roll(state)
        self.assertEqual(len(state.price_history["Gold"]), 8)
        self.assertEqual(state.price_history["Gold"], tuple(prices[-8:]))

    def test_short_price_history_keeps_every_roll(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload())
        for _ in range(3):
            state = self._roll(state, stock="Silver", action="down")
        self.assertEqual(state.price_history["Silver"], (1.0, 1.0, 1.0))
        self.assertNotIn("Gold", state.price_history)

    def test_roll_without_snapshot_uses_fallback_price(self) -> None:
        state = self._roll(EMPTY_STATE, stock="Gold")
        self.assertEqual(state.price_history["Gold"], (1.0,))
        self.assertIsNone(state.rolled_turn)

    def test_roll_for_unpriced_stock_uses_fallback_price(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload())
        state = self._roll(state, stock="Grain", action="Dividend")
        self.assertEqual(state.price_history["Grain"], (1.0,))
        self.assertEqual(state.stock_changes["Grain"], "dividend")

    def test_later_toast_replaces_earlier_one(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_TOAST, {"message": "First"})
        state = self._reduce(state, events.GAME_TOAST, {"message": "Second"})
        self.assertEqual(state.toast_message, "Second")

    def test_blank_toast_is_ignored(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_TOAST, {"message": "  "})
        self.assertIs(state, EMPTY_STATE)

    def test_countdown_accepts_integer_and_object_payloads(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_COUNTDOWN, 5)
        self.assertEqual(state.countdown, 5)
        state = self._reduce(state, events.GAME_COUNTDOWN, {"seconds": 3})
        self.assertEqual(state.countdown, 3)
        state = self._reduce(state, events.GAME_COUNTDOWN, -2)
        self.assertEqual(state.countdown, 0)

    def test_countdown_cancelled_clears_countdown(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_COUNTDOWN, 10)
        state = self._reduce(state, events.GAME_COUNTDOWN_CANCELLED)
        self.assertIsNone(state.countdown)
        self.assertIs(self._reduce(state, events.GAME_COUNTDOWN_CANCELLED), state)

    def test_malformed_payloads_leave_state_untouched(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload())
        self.assertIs(self._reduce(state, events.GAME_UPDATE, ["not", "a", "game"]), state)
        self.assertIs(self._reduce(state, events.GAME_UPDATE, {"round": "soon"}), state)
        self.assertIs(self._reduce(state, events.GAME_DICE_ROLLED, {"action": "up"}), state)
        self.assertIs(self._reduce(state, events.GAME_DICE_ROLLED, "Gold up 5"), state)
        self.assertIs(self._reduce(state, events.GAME_COUNTDOWN, "soon"), state)
        self.assertIs(self._reduce(state, "game:somethingNew", {}), state)

    def test_partial_snapshot_gets_defaults(self) -> None:
        state = self._reduce(
            EMPTY_STATE,
            events.GAME_UPDATE,
            {"id": "g2", "status": "bogus", "stocks": {"Gold": None, "Oil": 0.75}, "players": [{"id": "p1"}]},
        )
        self.assertEqual(state.game.status, "waiting")
        self.assertEqual(state.game.price_of("Gold"), 0.0)
        self.assertEqual(state.game.price_of("Oil"), 0.75)
        self.assertEqual(state.game.players[0].cash, 0.0)
        self.assertIsNone(state.game.current_turn_player_id)

    def test_out_of_order_snapshot_is_dropped(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload(status="active"))
        stale = self._reduce(state, events.GAME_UPDATE, game_payload(status="waiting"))
        self.assertIs(stale, state)

        other_game = self._reduce(state, events.GAME_UPDATE, game_payload(status="waiting", game_id="g2"))
        self.assertEqual(other_game.game_id, "g2")

    def test_first_snapshot_after_reconnect_fully_replaces_state(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload(status="active"))
        state = self._reduce(state, LOCAL_RECONNECTED)
        self.assertFalse(state.synced)

        state = self._reduce(state, events.GAME_UPDATE, game_payload(status="waiting"))
        self.assertTrue(state.synced)
        self.assertEqual(state.game.status, "waiting")

    def test_clear_roll_forgets_the_last_roll(self) -> None:
        state = self._reduce(EMPTY_STATE, events.GAME_UPDATE, game_payload())
        state = self._roll(state)
        state = self._reduce(state, events.GAME_CLEAR_ROLL)
        self.assertIsNone(state.last_roll)
        self.assertIsNone(state.rolled_turn)
        self.assertEqual(state.price_history["Gold"], (1.25,))


if __name__ == "__main__":
    unittest.main()
