from ticker_client.core.config import Settings, get_settings
from ticker_client.realtime.game_store import GameSessionStore
from ticker_client.realtime.gateway import CommandGateway, CommandResult
from ticker_client.realtime.lobby_store import LobbyCountdownStore
from ticker_client.realtime.public_games import PublicGameDirectory
from ticker_client.realtime.transport import TransportSession
from ticker_client.services.credential_store import CredentialStore
from ticker_client.services.eligibility_service import TurnEligibility
from ticker_client.services.identity_service import IdentityService, UserIdentity


class GameClient:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: TransportSession | None = None,
        credentials: CredentialStore | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.transport = transport or TransportSession(self.settings)
        self.credentials = credentials or CredentialStore(self.settings.credentials_path)
        self.identity_service = IdentityService(self.credentials, self.settings)
        self.store = GameSessionStore(self.transport, self.settings)
        self.directory = PublicGameDirectory(self.transport)
        self.gateway = CommandGateway(
            self.transport,
            self.store,
            credentials=self.credentials,
            settings=self.settings,
            directory=self.directory,
        )

    @property
    def identity(self) -> UserIdentity:
        return self.identity_service.current

    @property
    def player_id(self) -> str | None:
        return self.gateway.player_id

    def eligibility(self) -> TurnEligibility:
        return self.store.eligibility(self.player_id)

    def open_lobby(self) -> LobbyCountdownStore:
        return LobbyCountdownStore(self.transport)

    async def start(self) -> bool:
        connected = await self.transport.open()
        self.store.open()
        self.directory.open()
        return connected

    async def stop(self) -> None:
        await self.store.close()
        self.directory.close()
        await self.transport.close()

    async def on_foreground(self) -> CommandResult | None:
        return await self.gateway.on_foreground(self.identity)

    async def __aenter__(self) -> "GameClient":
        await self.start()
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.stop()


def build_game_client(settings: Settings | None = None) -> GameClient:
    return GameClient(settings or get_settings())
