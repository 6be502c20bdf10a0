import re
import tempfile
import unittest
from pathlib import Path

from fakes import make_settings
from jose import jwt

from ticker_client.core.security import generate_guest_name, is_token_shaped, username_from_token
from ticker_client.services.credential_store import CredentialStore
from ticker_client.services.identity_service import IdentityService, resolve_identity

GUEST_NAME = re.compile(r"^Guest[A-Za-z0-9]{4}$")


def _token(claims: dict) -> str:
    return jwt.encode(claims, "server-only-secret", algorithm="HS256")


class IdentityTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "credentials.json"
        self.store = CredentialStore(self.path)
        self.settings = make_settings(credentials_path=str(self.path))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_valid_token_resolves_registered_identity(self) -> None:
        token = _token({"username": "alice", "sub": "42"})
        self.store.set_token(token)

        identity = resolve_identity(self.store, self.settings)

        self.assertEqual(identity.kind, "registered")
        self.assertEqual(identity.username, "alice")
        self.assertEqual(identity.token, token)
        self.assertFalse(identity.is_guest)

    def test_malformed_token_falls_back_to_stable_guest(self) -> None:
        self.store.set_token("not-a-token")

        first = resolve_identity(self.store, self.settings)
        second = resolve_identity(CredentialStore(self.path), self.settings)

        self.assertTrue(first.is_guest)
        self.assertIsNone(first.token)
        self.assertRegex(first.username, GUEST_NAME)
        self.assertEqual(first.username, second.username)

    def test_token_without_username_claim_is_guest(self) -> None:
        self.store.set_token(_token({"sub": "42"}))
        self.assertTrue(resolve_identity(self.store, self.settings).is_guest)

    def test_sign_in_and_out(self) -> None:
        service = IdentityService(self.store, self.settings)
        self.assertTrue(service.current.is_guest)
        guest_name = service.current.username

        self.assertEqual(service.sign_in(_token({"username": "bob"})).username, "bob")
        self.assertEqual(service.sign_out().username, guest_name)
        self.assertIsNone(self.store.get_token())

    def test_token_shape_checks(self) -> None:
        self.assertTrue(is_token_shaped(_token({"username": "x"})))
        self.assertFalse(is_token_shaped("a.b"))
        self.assertFalse(is_token_shaped("a.b.c.d"))
        self.assertFalse(is_token_shaped(None))
        self.assertIsNone(username_from_token("abc.def.ghi"))

    def test_guest_name_format(self) -> None:
        self.assertRegex(generate_guest_name(), GUEST_NAME)
        self.assertRegex(generate_guest_name("Player", 6), r"^Player[A-Za-z0-9]{6}$")


class CredentialStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "nested" / "credentials.json"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_values_persist_across_instances(self) -> None:
        CredentialStore(self.path).set_last_game_id("g1")
        store = CredentialStore(self.path)
        self.assertEqual(store.get_last_game_id(), "g1")
        store.clear_last_game_id()
        self.assertIsNone(CredentialStore(self.path).get_last_game_id())

    def test_corrupt_file_reads_as_empty(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")
        store = CredentialStore(self.path)
        with self.assertLogs("ticker_client.services.credential_store", level="WARNING"):
            self.assertIsNone(store.get_token())
        store.set_token("abc.def.ghi")
        self.assertEqual(store.get_token(), "abc.def.ghi")


if __name__ == "__main__":
    unittest.main()
