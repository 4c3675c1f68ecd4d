# transit_lines/api/datastore.py
"""Process-wide Firestore handle.

The client is created exactly once at application startup through
:meth:`Datastore.initialize`; everything else asks for it with
:meth:`Datastore.get`, which fails loudly if startup was skipped.
"""

import logging
import threading
from typing import Optional

from google.cloud import firestore

from transit_lines.api.config import get_firestore_config

logger = logging.getLogger(__name__)


class Datastore:
    """Typed handle around the Firestore client."""

    _instance: Optional["Datastore"] = None
    _lock = threading.Lock()

    def __init__(self, client, routes_collection: str = "routes"):
        self.client = client
        self.routes_collection = routes_collection

    @classmethod
    def initialize(cls, client=None) -> "Datastore":
        """Create the handle, or return the existing one.

        Args:
            client: Optional pre-built client (emulator or test double)

        Raises:
            RuntimeError: if a different client is supplied after startup
        """
        with cls._lock:
            if cls._instance is not None:
                if client is not None and client is not cls._instance.client:
                    raise RuntimeError("Datastore already initialized with another client")
                return cls._instance

            cfg = get_firestore_config()
            if client is None:
                if cfg["emulator_host"]:
                    logger.info(f"Using Firestore emulator at {cfg['emulator_host']}")
                client = firestore.Client(project=cfg["project_id"])

            cls._instance = cls(client, cfg["routes_collection"])
            logger.info(f"Datastore initialized (collection={cfg['routes_collection']})")
            return cls._instance

    @classmethod
    def get(cls) -> "Datastore":
        if cls._instance is None:
            raise RuntimeError("Datastore.initialize() has not been called")
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the handle (tests and process shutdown only)."""
        with cls._lock:
            cls._instance = None
