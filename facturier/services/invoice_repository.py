from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from facturier.errors import ValidationError
from facturier.models.common import utcnow
from facturier.models.invoice import Invoice, SubInvoice
from facturier.services.calculator import calculate_totals

logger = logging.getLogger(__name__)

Document = Union[Invoice, SubInvoice]

_TOTAL_FIELDS = ("total_ht", "total_vat", "total_ttc")


class InvoiceRepository:
    """
    Collections en mémoire des factures et sous-factures.
    - Seul point de mutation : la cohérence mère/filles (statut complet/incomplet)
      est recalculée ici à chaque changement de statut d'une sous-facture.
    - Les id inconnus en modification/suppression sont ignorés (no-op).
    - `on_change` est appelé une fois par opération effectivement appliquée.
    """

    def __init__(
        self,
        invoices: Iterable[Invoice] = (),
        sub_invoices: Iterable[SubInvoice] = (),
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._invoices: List[Invoice] = list(invoices)
        parent_ids = {inv.id for inv in self._invoices}
        self._sub_invoices: List[SubInvoice] = []
        for sub in sub_invoices:
            if sub.parent_id not in parent_ids:
                logger.warning("Sous-facture orpheline %s ignorée (mère %s absente)", sub.id, sub.parent_id)
                continue
            self._sub_invoices.append(sub)
        self.on_change = on_change

    # ----------- lecture -----------
    def list_invoices(self) -> List[Invoice]:
        return list(self._invoices)

    def list_sub_invoices(self) -> List[SubInvoice]:
        return list(self._sub_invoices)

    def all_documents(self) -> List[Document]:
        return [*self._invoices, *self._sub_invoices]

    def sub_invoices_of(self, parent_id: str) -> List[SubInvoice]:
        return [s for s in self._sub_invoices if s.parent_id == parent_id]

    def get_by_id(self, obj_id: str) -> Optional[Document]:
        for inv in self._invoices:
            if inv.id == obj_id:
                return inv
        for sub in self._sub_invoices:
            if sub.id == obj_id:
                return sub
        return None

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # ----------- CRUD -----------
    def add_invoice(self, invoice: Invoice) -> Invoice:
        if isinstance(invoice, SubInvoice):
            raise ValidationError("Une sous-facture se crée uniquement par division d'une facture")
        if self.get_by_id(invoice.id) is not None:
            raise ValidationError(f"Un document avec l'id {invoice.id} existe déjà")
        # le numéro vient de l'allocateur : pas de contrôle bloquant ici
        if any(i.number == invoice.number and i.document_type == invoice.document_type for i in self._invoices):
            logger.warning("Numéro %s déjà utilisé pour le type %s", invoice.number, invoice.document_type)
        self._invoices.append(invoice)
        logger.info("Document %s ajouté (%s)", invoice.number, invoice.document_type)
        self._notify()
        return invoice

    def add_sub_invoices(self, batch: Iterable[SubInvoice]) -> List[SubInvoice]:
        subs = list(batch)
        seen = set()
        for sub in subs:
            parent = self.get_by_id(sub.parent_id)
            if parent is None or isinstance(parent, SubInvoice):
                raise ValidationError(f"Facture mère {sub.parent_id} introuvable")
            if sub.id in seen or self.get_by_id(sub.id) is not None:
                raise ValidationError(f"Un document avec l'id {sub.id} existe déjà")
            seen.add(sub.id)
        self._sub_invoices.extend(subs)
        for parent_id in {s.parent_id for s in subs}:
            self._refresh_parent_status(parent_id)
        if subs:
            self._notify()
        return subs

    def update_invoice(self, obj_id: str, fields: Mapping[str, Any]) -> Optional[Document]:
        updated = self._apply_update(obj_id, fields)
        if updated is not None:
            self._notify()
        return updated

    def delete_invoice(self, obj_id: str) -> bool:
        before = len(self._invoices)
        self._invoices = [i for i in self._invoices if i.id != obj_id]
        if len(self._invoices) == before:
            logger.debug("Suppression ignorée : %s n'est pas une facture de premier niveau", obj_id)
            return False
        children = len(self._sub_invoices)
        self._sub_invoices = [s for s in self._sub_invoices if s.parent_id != obj_id]
        logger.info("Document %s supprimé (%d sous-facture(s))", obj_id, children - len(self._sub_invoices))
        self._notify()
        return True

    # ----------- statuts -----------
    def toggle_paid_status(self, obj_id: str) -> Optional[Document]:
        """Payé <-> envoyé. Une facture divisée délègue le suivi du paiement à ses filles."""
        doc = self.get_by_id(obj_id)
        if doc is None:
            logger.debug("Bascule payé ignorée : %s introuvable", obj_id)
            return None
        if not isinstance(doc, SubInvoice) and self.sub_invoices_of(doc.id):
            raise ValidationError(
                f"La facture {doc.number} est divisée : le paiement se suit sur ses sous-factures"
            )
        new_status = "sent" if doc.status == "paid" else "paid"
        return self.update_invoice(obj_id, {"status": new_status})

    def toggle_cancelled_status(self, obj_id: str) -> Optional[Document]:
        doc = self.get_by_id(obj_id)
        if doc is None:
            logger.debug("Bascule annulation ignorée : %s introuvable", obj_id)
            return None
        if not isinstance(doc, SubInvoice):
            raise ValidationError("Seule une sous-facture peut être annulée ou réactivée")
        new_status = "sent" if doc.status == "cancelled" else "cancelled"
        return self.update_invoice(obj_id, {"status": new_status})

    # ----------- interne -----------
    def _apply_update(self, obj_id: str, fields: Mapping[str, Any]) -> Optional[Document]:
        patch: Dict[str, Any] = {k: v for k, v in fields.items() if k != "id"}
        for coll in (self._invoices, self._sub_invoices):
            for idx, current in enumerate(coll):
                if current.id != obj_id:
                    continue
                merged = {**current.model_dump(), **patch, "updated_at": utcnow()}
                try:
                    updated = type(current).model_validate(merged)
                except PydanticValidationError as e:
                    raise ValidationError(f"Document {obj_id} invalide : {e.errors()[0]['msg']}") from e
                # lignes modifiées sans totaux fournis : on recalcule
                if "items" in patch and not any(k in patch for k in _TOTAL_FIELDS):
                    updated = updated.model_copy(update=calculate_totals(updated.items).model_dump())
                coll[idx] = updated  # type: ignore[index]
                if isinstance(updated, SubInvoice) and updated.status != current.status:
                    self._refresh_parent_status(updated.parent_id)
                return updated
        logger.debug("Mise à jour ignorée : %s introuvable", obj_id)
        return None

    def _refresh_parent_status(self, parent_id: str) -> None:
        parent = self.get_by_id(parent_id)
        siblings = self.sub_invoices_of(parent_id)
        if parent is None or not siblings:
            return
        all_paid = all(s.status == "paid" for s in siblings)
        if all_paid and parent.status not in ("paid", "complet"):
            logger.info("Facture mère %s : toutes les sous-factures sont payées", parent.number)
            self._apply_update(parent_id, {"status": "complet"})
        elif not all_paid and parent.status == "complet":
            logger.info("Facture mère %s : paiement incomplet", parent.number)
            self._apply_update(parent_id, {"status": "incomplet"})
