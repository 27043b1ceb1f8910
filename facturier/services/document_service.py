from __future__ import annotations
import datetime as dt
import logging
from typing import Any, Dict, Optional

from facturier import settings as app_settings
from facturier.errors import ValidationError
from facturier.models.common import utcnow
from facturier.models.invoice import DocumentType, Invoice, LineItem
from facturier.services.calculator import calculate_totals
from facturier.services.client_service import ClientService
from facturier.services.invoice_repository import InvoiceRepository
from facturier.services.numbering import NumberingAllocator

logger = logging.getLogger(__name__)


class DocumentService:
    """Action « Enregistrer » du formulaire de saisie : brouillon, contrôles, totaux, numéro."""

    def __init__(
        self,
        repository: InvoiceRepository,
        numbering: NumberingAllocator,
        clients: ClientService,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.repository = repository
        self.numbering = numbering
        self.clients = clients
        self.settings = settings or {}

    def new_item(self) -> LineItem:
        return LineItem(vat_rate=app_settings.default_vat_rate(self.settings))

    def new_draft(self, document_type: DocumentType = "invoice") -> Invoice:
        """Brouillon non enregistré : prochain numéro, date du jour, une ligne vide."""
        return Invoice(
            document_type=document_type,
            number=self.numbering.generate_invoice_number(document_type),
            date=dt.date.today(),
            status="draft",
            company=self.clients.company.model_copy(deep=True),
            items=[self.new_item()],
            terms=app_settings.default_terms(self.settings),
        )

    @staticmethod
    def validate_for_save(draft: Invoice) -> None:
        if draft.client is None:
            raise ValidationError("Veuillez sélectionner un client")
        if not draft.items or any(not (it.designation or "").strip() for it in draft.items):
            raise ValidationError("Veuillez ajouter au moins un article avec une désignation")

    def save_document(self, draft: Invoice, invoice_id: Optional[str] = None) -> Invoice:
        self.validate_for_save(draft)
        totals = calculate_totals(draft.items)
        now = utcnow()
        doc = draft.model_copy(update={
            "number": draft.number or self.numbering.generate_invoice_number(draft.document_type),
            "company": self.clients.company.model_copy(deep=True),
            "updated_at": now,
            **totals.model_dump(),
        })

        if invoice_id:
            existing = self.repository.get_by_id(invoice_id)
            if existing is not None:
                fields = doc.model_dump(exclude={"id", "created_at"})
                updated = self.repository.update_invoice(invoice_id, fields)
                logger.info("Document %s mis à jour", doc.number)
                return updated  # type: ignore[return-value]
            logger.debug("Document %s introuvable, création", invoice_id)
            doc = doc.model_copy(update={"id": invoice_id})

        doc = doc.model_copy(update={"created_at": now})
        return self.repository.add_invoice(doc)
