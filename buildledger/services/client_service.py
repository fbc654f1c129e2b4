from __future__ import annotations
from pathlib import Path
from typing import List, Optional
import logging

from pydantic import ValidationError

from buildledger.ledger.errors import NotFoundError
from buildledger.models.client import Client
from buildledger.services.session_service import SessionService
from buildledger.settings import default_data_dir
from buildledger.storage.repo import JsonRepository

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, session: SessionService, data_dir: Optional[str | Path] = None):
        base = Path(data_dir) if data_dir else default_data_dir()
        self.repo = JsonRepository(base / "clients.json", entity_name="client", key="id")
        self.session = session

    def list_clients(self) -> List[Client]:
        user_id = self.session.get_current_user_id()
        out: List[Client] = []
        for d in self.repo.find(lambda r: r.get("user_id") == user_id):
            try:
                out.append(Client(**d))
            except ValidationError as e:
                # a broken row must not hide the others
                logger.warning("Skipping invalid client %s: %s", d.get("id"), e)
        return sorted(out, key=lambda c: c.name.casefold())

    def add_client(self, client: Client) -> Client:
        client = client.model_copy(update={"user_id": self.session.get_current_user_id()})
        self.repo.add(client.model_dump(mode="json"))
        logger.info("Client %s created", client.id)
        return client

    def update_client(self, client: Client) -> Client:
        self.get_by_id(client.id)
        client = client.model_copy(update={"user_id": self.session.get_current_user_id()})
        self.repo.update(client.model_dump(mode="json"))
        return client

    def delete_client(self, client_id: str) -> None:
        self.get_by_id(client_id)
        self.repo.delete(client_id)
        logger.info("Client %s deleted", client_id)

    def get_by_id(self, client_id: str) -> Client:
        user_id = self.session.get_current_user_id()
        d = self.repo.get_by_id(client_id)
        if d is None or d.get("user_id") != user_id:
            raise NotFoundError("client", client_id)
        return Client(**d)

    def find(self, client_id: Optional[str]) -> Optional[Client]:
        if not client_id:
            return None
        try:
            return self.get_by_id(client_id)
        except NotFoundError:
            return None
