from dataclasses import dataclass
from typing import Literal

from ticker_client.core.config import Settings, get_settings
from ticker_client.core.security import generate_guest_name, username_from_token
from ticker_client.services.credential_store import CredentialStore

IdentityKind = Literal["registered", "guest"]


@dataclass(frozen=True)
class UserIdentity:
    kind: IdentityKind
    username: str
    token: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.kind == "guest"


def resolve_identity(store: CredentialStore, settings: Settings | None = None) -> UserIdentity:
    settings = settings or get_settings()
    token = store.get_token()
    username = username_from_token(token)
    if username and token:
        return UserIdentity(kind="registered", username=username, token=token.strip())

    guest_name = store.get_guest_name()
    if not guest_name:
        guest_name = generate_guest_name(settings.guest_name_prefix, settings.guest_suffix_length)
        store.set_guest_name(guest_name)
    return UserIdentity(kind="guest", username=guest_name, token=None)


class IdentityService:
    def __init__(self, store: CredentialStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._current: UserIdentity | None = None

    @property
    def current(self) -> UserIdentity:
        if self._current is None:
            self._current = resolve_identity(self._store, self._settings)
        return self._current

    def refresh(self) -> UserIdentity:
        self._current = resolve_identity(self._store, self._settings)
        return self._current

    def sign_in(self, token: str) -> UserIdentity:
        self._store.set_token(token)
        return self.refresh()

    def sign_out(self) -> UserIdentity:
        self._store.clear_token()
        return self.refresh()
