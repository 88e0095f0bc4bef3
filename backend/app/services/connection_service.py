"""
Connection service — lifecycle of destination connections.

Rules and sync options are validated here, at the boundary, so stored rule
sets are always well-formed when a job reads them.
"""
import logging
from typing import Any, Dict

import pydantic

from app.core.constants.sync import CONNECTION_ACTIVE, CONNECTION_PAUSED, PLATFORM_SHOPIFY
from app.core.exceptions import ConnectionNotFoundError, CredentialsMissingError, ValidationError
from app.db.connection_store import ConnectionStore
from app.db.job_store import JobStore
from app.schemas.connections import Connection, ConnectionCreate, MappingRules, SyncOptionsUpdate
from app.utils.secrets import Secrets

logger = logging.getLogger(__name__)


class ConnectionService:
    def __init__(self, connection_store: ConnectionStore, job_store: JobStore, secrets: Secrets) -> None:
        self._connections = connection_store
        self._jobs = job_store
        self._secrets = secrets

    def _require(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)
        return connection

    def create_connection(self, data: ConnectionCreate | Dict[str, Any]) -> Connection:
        try:
            payload = data if isinstance(data, ConnectionCreate) else ConnectionCreate.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid connection: {exc}") from exc

        row = payload.model_dump(exclude={"rules"})
        for field in ("access_token", "consumer_key", "consumer_secret"):
            row[field] = self._secrets.encrypt(row.get(field))
        row["rules"] = payload.rules
        row["status"] = CONNECTION_ACTIVE
        return self._connections.create(row)

    def update_rules(self, connection_id: str, raw_rules: Any) -> MappingRules:
        """Validate and store a rule set (JSON string, dict or MappingRules)."""
        self._require(connection_id)
        try:
            rules = MappingRules.from_raw(raw_rules)
        except (pydantic.ValidationError, ValueError) as exc:
            raise ValidationError(f"Invalid mapping rules: {exc}") from exc
        self._connections.update_rules(connection_id, rules)
        logger.info(f"Updated mapping rules for connection {connection_id}")
        return rules

    def update_sync_options(self, connection_id: str, options: SyncOptionsUpdate | Dict[str, Any]) -> None:
        self._require(connection_id)
        try:
            update = options if isinstance(options, SyncOptionsUpdate) else SyncOptionsUpdate.model_validate(options)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid sync options: {exc}") from exc
        self._connections.update_fields(connection_id, update.model_dump(exclude_none=True))

    def pause_connection(self, connection_id: str) -> int:
        """
        Cancel the connection's queued jobs, then mark it paused.

        A job already running finishes normally.

        Returns:
            int: Number of cancelled jobs
        """
        self._require(connection_id)
        cancelled = self._jobs.cancel_queued(connection_id)
        self._connections.set_status(connection_id, CONNECTION_PAUSED)
        logger.info(f"Paused connection {connection_id}, cancelled {cancelled} queued jobs")
        return cancelled

    def resume_connection(self, connection_id: str) -> None:
        self._require(connection_id)
        self._connections.set_status(connection_id, CONNECTION_ACTIVE)

    def resolve_credentials(self, connection: Connection) -> Dict[str, str]:
        """Decrypt the credentials the connection's platform needs."""
        if connection.platform == PLATFORM_SHOPIFY:
            token = self._secrets.decrypt(connection.access_token)
            if not token:
                raise CredentialsMissingError("Shopify access token missing")
            return {"access_token": token}

        key = self._secrets.decrypt(connection.consumer_key)
        secret = self._secrets.decrypt(connection.consumer_secret)
        if not key or not secret:
            raise CredentialsMissingError("WooCommerce consumer key/secret missing")
        return {"consumer_key": key, "consumer_secret": secret}
