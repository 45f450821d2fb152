import uuid
from typing import Optional

import httpx

from app.config import AppConfig
from app.services.plan_store import PlanStore
from app.utils.logger import logger

IDENTITY_ENDPOINT = "https://identitytoolkit.googleapis.com/v1"


class BootstrapError(RuntimeError):
    """No usable identity or store handle; the app cannot load plans."""


class IdentityError(RuntimeError):
    pass


class Session:
    """Identity plus store handle for one user of the app."""

    def __init__(self, user_id: str, store: PlanStore, anonymous: bool = True):
        self.user_id = user_id
        self.store = store
        self.anonymous = anonymous

    def __repr__(self):
        return f"Session(user_id={self.user_id!r}, anonymous={self.anonymous})"


def local_user_id() -> str:
    return f"anon-{uuid.uuid4()}"


class IdentityProvider:
    """
    Firebase Auth over the Identity Toolkit REST API.

    sign_in_anonymously → accounts:signUp
    sign_in_with_token  → accounts:signInWithCustomToken + accounts:lookup
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = IDENTITY_ENDPOINT,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _post(self, client: httpx.AsyncClient, method: str, body: dict) -> dict:
        resp = await client.post(
            f"{self.base_url}/accounts:{method}",
            params={"key": self.api_key},
            json=body,
        )
        if resp.status_code != 200:
            raise IdentityError(f"accounts:{method} returned HTTP {resp.status_code}")
        return resp.json()

    async def sign_in_anonymously(self) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            data = await self._post(client, "signUp", {"returnSecureToken": True})

        uid = data.get("localId")
        if not uid:
            raise IdentityError("signUp response has no localId")
        return uid

    async def sign_in_with_token(self, token: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            data = await self._post(
                client,
                "signInWithCustomToken",
                {"token": token, "returnSecureToken": True},
            )
            id_token = data.get("idToken")
            if not id_token:
                raise IdentityError("signInWithCustomToken response has no idToken")

            lookup = await self._post(client, "lookup", {"idToken": id_token})

        users = lookup.get("users") or []
        if not users or not users[0].get("localId"):
            raise IdentityError("lookup response has no user")
        return users[0]["localId"]


async def bootstrap_session(
    config: AppConfig,
    store: Optional[PlanStore],
    token: Optional[str] = None,
    provider: Optional[IdentityProvider] = None,
) -> Session:
    """
    Establish the user identity for a new app session.

    Identity problems degrade to a random local id (not persisted); a missing
    store handle is fatal and raises BootstrapError.
    """
    if store is None:
        raise BootstrapError("Document store is not available")

    if config.identity_mode == "local":
        user_id = local_user_id()
        logger.info(f"[IDENTITY] Local identity {user_id}")
        return Session(user_id, store, anonymous=True)

    provider = provider or IdentityProvider(config.firebase_api_key)

    try:
        if config.identity_mode == "token" and token:
            user_id = await provider.sign_in_with_token(token)
            logger.info(f"[IDENTITY] Signed in with token as {user_id}")
            return Session(user_id, store, anonymous=False)

        user_id = await provider.sign_in_anonymously()
        logger.info(f"[IDENTITY] Signed in anonymously as {user_id}")
        return Session(user_id, store, anonymous=True)

    except (IdentityError, httpx.HTTPError, ValueError) as e:
        user_id = local_user_id()
        logger.warning(f"[IDENTITY] Sign-in failed ({e}), using local id {user_id}")
        return Session(user_id, store, anonymous=True)
