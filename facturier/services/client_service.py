from __future__ import annotations
import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from facturier.errors import ValidationError
from facturier.models.client import Client, Company

logger = logging.getLogger(__name__)


class ClientService:
    """Fiches clients et profil de l'entreprise (simple stockage, sans invariant croisé)."""

    def __init__(
        self,
        clients: Iterable[Client] = (),
        company: Optional[Company] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._clients: List[Client] = list(clients)
        self._company = company or Company()
        self.on_change = on_change

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # ----------- clients -----------
    def list_clients(self) -> List[Client]:
        return list(self._clients)

    def get_by_id(self, client_id: str) -> Optional[Client]:
        for c in self._clients:
            if c.id == client_id:
                return c
        return None

    def add_client(self, client: Client | Mapping[str, Any]) -> Client:
        data = client.model_dump() if isinstance(client, Client) else dict(client)
        if not (str(data.get("name") or "").strip() and str(data.get("email") or "").strip()):
            raise ValidationError("Le nom et l'email du client sont obligatoires")
        try:
            c = Client.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Client invalide : {e.errors()[0]['msg']}") from e
        if self.get_by_id(c.id) is not None:
            raise ValidationError(f"Un client avec l'id {c.id} existe déjà")
        self._clients.append(c)
        logger.info("Client %s ajouté", c.name)
        self._notify()
        return c

    def update_client(self, client_id: str, fields: Mapping[str, Any]) -> Optional[Client]:
        for idx, current in enumerate(self._clients):
            if current.id != client_id:
                continue
            patch = {k: v for k, v in fields.items() if k != "id"}
            try:
                updated = Client.model_validate({**current.model_dump(), **patch})
            except PydanticValidationError as e:
                raise ValidationError(f"Client invalide : {e.errors()[0]['msg']}") from e
            self._clients[idx] = updated
            self._notify()
            return updated
        logger.debug("Mise à jour client ignorée : %s introuvable", client_id)
        return None

    def delete_client(self, client_id: str) -> bool:
        before = len(self._clients)
        self._clients = [c for c in self._clients if c.id != client_id]
        changed = len(self._clients) != before
        if changed:
            self._notify()
        return changed

    # ----------- entreprise -----------
    @property
    def company(self) -> Company:
        return self._company

    def update_company(self, fields: Mapping[str, Any]) -> Company:
        try:
            self._company = Company.model_validate({**self._company.model_dump(), **fields})
        except PydanticValidationError as e:
            raise ValidationError(f"Entreprise invalide : {e.errors()[0]['msg']}") from e
        self._notify()
        return self._company
