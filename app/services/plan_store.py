"""
Plan Store Gateway.

Maps (user id, week) to one document under
users/{userId}/studyPlans/plan-{week} and performs full or merge writes.
Absence is a normal outcome (None); transport failures raise StoreError.
"""
import copy
from abc import ABC, abstractmethod
from typing import Dict, NamedTuple, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from app.config import StoreConfig
from app.utils.logger import logger


class StoreError(RuntimeError):
    """Read or write against the document store failed."""


class DocumentKey(NamedTuple):
    user_id: str
    week: int

    @property
    def segments(self):
        return ("users", self.user_id, "studyPlans", f"plan-{self.week}")

    @property
    def path(self) -> str:
        return "/".join(self.segments)


def key_for(user_id: str, week: int) -> DocumentKey:
    return DocumentKey(user_id=user_id, week=week)


class PlanStore(ABC):
    @abstractmethod
    def read(self, key: DocumentKey) -> Optional[dict]:
        """Stored document, or None when absent."""

    @abstractmethod
    def write_full(self, key: DocumentKey, document: dict) -> None:
        """Replace the whole document."""

    @abstractmethod
    def write_merge(self, key: DocumentKey, fields: dict) -> None:
        """Overwrite top-level fields, creating the document if needed."""


# -------------------------------------------------------------------
# In-memory backend (local development, tests)
# -------------------------------------------------------------------
class InMemoryPlanStore(PlanStore):
    def __init__(self):
        self._docs: Dict[str, dict] = {}

    def read(self, key: DocumentKey) -> Optional[dict]:
        doc = self._docs.get(key.path)
        return copy.deepcopy(doc) if doc is not None else None

    def write_full(self, key: DocumentKey, document: dict) -> None:
        self._docs[key.path] = copy.deepcopy(document)

    def write_merge(self, key: DocumentKey, fields: dict) -> None:
        doc = self._docs.setdefault(key.path, {})
        doc.update(copy.deepcopy(fields))


# -------------------------------------------------------------------
# Firestore backend
# -------------------------------------------------------------------
class FirestorePlanStore(PlanStore):
    def __init__(self, client):
        self.client = client

    def _ref(self, key: DocumentKey):
        return (
            self.client.collection("users")
            .document(key.user_id)
            .collection("studyPlans")
            .document(f"plan-{key.week}")
        )

    def read(self, key: DocumentKey) -> Optional[dict]:
        try:
            snapshot = self._ref(key).get()
        except Exception as e:
            logger.error(f"[STORE] Read failed for {key.path}: {e}")
            raise StoreError(f"Failed to read {key.path}") from e

        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def write_full(self, key: DocumentKey, document: dict) -> None:
        try:
            self._ref(key).set(document)
        except Exception as e:
            logger.error(f"[STORE] Write failed for {key.path}: {e}")
            raise StoreError(f"Failed to write {key.path}") from e

    def write_merge(self, key: DocumentKey, fields: dict) -> None:
        try:
            self._ref(key).set(fields, merge=True)
        except Exception as e:
            logger.error(f"[STORE] Merge write failed for {key.path}: {e}")
            raise StoreError(f"Failed to update {key.path}") from e


def _firestore_client(config: StoreConfig):
    try:
        app = firebase_admin.get_app()
    except ValueError:
        if config.credentials_path:
            cred = credentials.Certificate(config.credentials_path)
        else:
            cred = credentials.ApplicationDefault()
        options = {"projectId": config.project_id} if config.project_id else None
        app = firebase_admin.initialize_app(cred, options)

    return firestore.client(app)


def build_store(config: StoreConfig) -> PlanStore:
    """
    Create the store handle selected by config.backend.
    Raises StoreError when the backend cannot be initialized.
    """
    if config.backend == "memory":
        logger.info("[STORE] Using in-memory plan store")
        return InMemoryPlanStore()

    if config.backend == "firestore":
        try:
            client = _firestore_client(config)
        except Exception as e:
            logger.error(f"[STORE] Firestore initialization failed: {e}")
            raise StoreError("Failed to initialize Firestore") from e
        logger.info(f"[STORE] Using Firestore (project={config.project_id or 'default'})")
        return FirestorePlanStore(client)

    raise StoreError(f"Unknown store backend: {config.backend}")
