from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from facturier import settings as app_settings
from facturier.models.client import Client, Company
from facturier.models.invoice import Invoice, SubInvoice
from facturier.models.snapshot import AppSnapshot
from facturier.services.client_service import ClientService
from facturier.services.document_service import DocumentService
from facturier.services.invoice_repository import InvoiceRepository
from facturier.services.numbering import NumberingAllocator
from facturier.services.splitter import InvoiceSplitter
from facturier.storage.json_store import JsonStateStore

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _hydrate(model: Type[M], rows: Any, label: str) -> List[M]:
    out: List[M] = []
    for d in rows or []:
        try:
            out.append(model.model_validate(d))
        except ValidationError as e:
            # On ignore les entrées invalides pour ne pas bloquer le démarrage
            logger.warning("%s ignoré(e) au chargement : %s", label, e.errors()[0]["msg"])
    return out


class Workspace:
    """
    Assemble les services autour d'un état chargé une fois au démarrage.
    Chaque modification (factures, clients, entreprise) réécrit l'état complet.
    """

    def __init__(self, store: JsonStateStore, settings: Optional[Dict[str, Any]] = None) -> None:
        self.store = store
        self.settings = settings or {}
        first_run = not store.filepath.exists()
        raw = store.load()

        company_raw = raw.get("company")
        company = Company.model_validate(company_raw) if isinstance(company_raw, dict) else \
            Company.model_validate(app_settings.default_company(self.settings))
        clients = _hydrate(Client, raw.get("clients"), "client")
        if first_run and not clients:
            clients = [Client.model_validate(app_settings.SAMPLE_CLIENT)]

        self.invoices = InvoiceRepository(
            _hydrate(Invoice, raw.get("invoices"), "facture"),
            _hydrate(SubInvoice, raw.get("sub_invoices"), "sous-facture"),
            on_change=self.save,
        )
        self.clients = ClientService(clients, company, on_change=self.save)
        self.numbering = NumberingAllocator(self.invoices.list_invoices)
        self.splitter = InvoiceSplitter(self.invoices)
        self.documents = DocumentService(self.invoices, self.numbering, self.clients, self.settings)

        if first_run:
            self.save()

    @classmethod
    def open(cls, data_dir: Optional[os.PathLike | str] = None) -> "Workspace":
        base = Path(data_dir) if data_dir else app_settings.data_dir()
        settings = app_settings.load_settings(base)
        return cls(JsonStateStore(base / app_settings.STATE_FILE), settings)

    def snapshot(self) -> AppSnapshot:
        return AppSnapshot(
            invoices=self.invoices.list_invoices(),
            sub_invoices=self.invoices.list_sub_invoices(),
            clients=self.clients.list_clients(),
            company=self.clients.company,
        )

    def save(self) -> None:
        if self.store.save(self.snapshot().model_dump(mode="json")):
            logger.debug("État enregistré dans %s", self.store.filepath)
