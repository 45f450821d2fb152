from collections import OrderedDict
from typing import Optional

from app.config import AppConfig
from app.services.controller import StudyController
from app.services.gemini_client import GeminiClient
from app.services.identity import BootstrapError, IdentityProvider, bootstrap_session
from app.services.plan_store import PlanStore
from app.utils.logger import logger


class SessionRegistry:
    """
    Live controllers keyed by user id.
    Kept in process memory, capped at config.max_sessions; the least
    recently used controller is dropped first. A dropped user opens a new
    session and gets the stored plan back from the store.
    """

    def __init__(
        self,
        config: AppConfig,
        store: Optional[PlanStore],
        client: GeminiClient,
        provider: Optional[IdentityProvider] = None,
        **controller_options,
    ):
        self.config = config
        self.store = store
        self.client = client
        self.provider = provider
        self.controller_options = controller_options
        self._controllers: "OrderedDict[str, StudyController]" = OrderedDict()

    async def open(self, token: Optional[str] = None) -> StudyController:
        """
        Bootstrap a new session and load its current week.
        Raises BootstrapError when there is no store handle.
        """
        if self.store is None:
            raise BootstrapError("Erro ao carregar o aplicativo. Verifique a configuração do Firebase.")

        session = await bootstrap_session(self.config, self.store, token=token, provider=self.provider)
        controller = StudyController(session, self.client, self.config, **self.controller_options)
        self._controllers[session.user_id] = controller
        self._controllers.move_to_end(session.user_id)
        self._evict()

        logger.info(f"[SESSION] Opened session for {session.user_id}")
        await controller.load()
        return controller

    def get(self, user_id: str) -> Optional[StudyController]:
        controller = self._controllers.get(user_id)
        if controller is not None:
            self._controllers.move_to_end(user_id)
        return controller

    def _evict(self) -> None:
        while len(self._controllers) > self.config.max_sessions:
            user_id, _ = self._controllers.popitem(last=False)
            logger.info(f"[SESSION] Dropped idle session {user_id}")

    def __len__(self):
        return len(self._controllers)
