import asyncio
import unittest

from fakes import FakeTransport, game_payload

from ticker_client.realtime import events
from ticker_client.realtime.game_store import EMPTY_STATE, GameSessionStore


class GameSessionStoreTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.transport = FakeTransport()
        self.store = GameSessionStore(self.transport, self.transport._settings)
        self.store.open()

    async def asyncTearDown(self) -> None:
        await self.store.close()

    async def _push(self, event: str, payload=None) -> None:
        await self.transport.dispatch(event, payload)
        await self.store.drain()

    async def test_inbound_events_are_applied_in_order(self) -> None:
        seen: list[str | None] = []
        self.store.watch(lambda state: seen.append(state.toast_message))

        await self._push(events.GAME_UPDATE, game_payload())
        await self._push(events.GAME_TOAST, {"message": "Bob bought Oil"})

        self.assertEqual(self.store.state.game_id, "g1")
        self.assertEqual(seen, [None, "Bob bought Oil"])

    async def test_open_subscribes_every_game_event(self) -> None:
        self.assertEqual(self.transport.subscribed_events(), set(events.GAME_STATE_EVENTS))
        self.store.open()
        for event in events.GAME_STATE_EVENTS:
            self.assertEqual(len(self.transport._handlers[event]), 1)

    async def test_clear_game_state_removes_every_listener(self) -> None:
        await self._push(events.GAME_UPDATE, game_payload())
        await self.store.clear_game_state()

        self.assertEqual(self.transport.subscribed_events(), set())
        self.assertEqual(self.transport._connection_listeners, [])
        self.assertIs(self.store.state, EMPTY_STATE)
        self.assertFalse(self.store.is_open)

        await self.transport.dispatch(events.GAME_UPDATE, game_payload())
        await self.store.drain()
        self.assertIsNone(self.store.state.game)

        self.store.open()
        self.assertIn(events.GAME_UPDATE, self.transport.subscribed_events())
        await self._push(events.GAME_UPDATE, game_payload(game_id="g2"))
        self.assertEqual(self.store.state.game_id, "g2")

    async def test_late_items_from_a_cleared_session_are_ignored(self) -> None:
        old_generation = self.store.generation
        await self.store.clear_game_state()
        self.store.open()

        self.assertFalse(self.store.submit(events.GAME_TOAST, {"message": "late"}, old_generation))
        await self.store.drain()
        self.assertIsNone(self.store.state.toast_message)

    async def test_toast_is_consumed_once(self) -> None:
        await self._push(events.GAME_TOAST, {"message": "First"})
        await self._push(events.GAME_TOAST, {"message": "Second"})

        self.assertEqual(self.store.consume_toast(), "Second")
        self.assertIsNone(self.store.consume_toast())
        self.assertIsNone(self.store.state.toast_message)

    async def test_reconnect_lets_the_next_snapshot_replace_state(self) -> None:
        await self._push(events.GAME_UPDATE, game_payload(status="active"))
        await self._push(events.GAME_UPDATE, game_payload(status="waiting"))
        self.assertEqual(self.store.state.game.status, "active")

        await self.transport.simulate_reconnect()
        await self.store.drain()
        self.assertFalse(self.store.state.synced)

        await self._push(events.GAME_UPDATE, game_payload(status="waiting"))
        self.assertEqual(self.store.state.game.status, "waiting")
        self.assertTrue(self.store.state.synced)

    async def test_wait_for_resolves_on_matching_state(self) -> None:
        waiter = asyncio.create_task(self.store.wait_for(lambda state: state.game is not None, timeout=1.0))
        await asyncio.sleep(0)
        await self._push(events.GAME_UPDATE, game_payload())
        state = await waiter
        self.assertEqual(state.game_id, "g1")

    async def test_wait_for_times_out(self) -> None:
        with self.assertRaises(asyncio.TimeoutError):
            await self.store.wait_for(lambda state: state.countdown == 1, timeout=0.05)

    async def test_watcher_errors_do_not_stop_updates(self) -> None:
        def broken(_state) -> None:
            raise RuntimeError("boom")

        unwatch = self.store.watch(broken)
        with self.assertLogs("ticker_client.realtime.game_store", level="ERROR"):
            await self._push(events.GAME_COUNTDOWN, 4)
        unwatch()
        self.assertEqual(self.store.state.countdown, 4)

    async def test_eligibility_follows_the_store(self) -> None:
        self.assertFalse(self.store.eligibility("me").can_roll)
        await self._push(events.GAME_UPDATE, game_payload())
        self.assertTrue(self.store.eligibility("me").can_roll)
        await self._push(events.GAME_DICE_ROLLED, {"stock": "Gold", "action": "up", "amount": 5})
        eligibility = self.store.eligibility("me")
        self.assertFalse(eligibility.can_roll)
        self.assertTrue(eligibility.can_end_turn)


if __name__ == "__main__":
    unittest.main()
