from __future__ import annotations
import logging
from typing import Iterable, List, Mapping, Sequence, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from facturier.errors import NotFoundError, ValidationError
from facturier.models.common import utcnow
from facturier.models.invoice import InvoiceStatus, SubInvoice
from facturier.services.invoice_repository import InvoiceRepository

logger = logging.getLogger(__name__)

TOLERANCE = 0.01
MIN_SPLITS = 2
MAX_SPLITS = 10
# rétro-calcul HT/TVA des sous-factures à taux fixe, indépendamment des lignes
SPLIT_VAT_RATE = 0.2


class Split(BaseModel):
    percentage: float = Field(ge=0)
    amount: float


SplitLike = Union[Split, Mapping[str, float]]


# ---------- Aides à la saisie ----------
def amount_for_percentage(total_ttc: float, percentage: float) -> float:
    return total_ttc * percentage / 100


def percentage_for_amount(total_ttc: float, amount: float) -> float:
    if not total_ttc:
        return 0.0
    return amount / total_ttc * 100


def even_splits(total_ttc: float, count: int = MIN_SPLITS) -> List[Split]:
    """Répartition égale proposée à l'ouverture de l'éditeur (50/50 par défaut)."""
    if count < 1:
        raise ValidationError("Au moins une part est nécessaire")
    pct = 100 / count
    return [Split(percentage=pct, amount=amount_for_percentage(total_ttc, pct)) for _ in range(count)]


def next_split(total_ttc: float, splits: Sequence[Split]) -> Split:
    """Part suivante = reste à répartir (jamais négatif)."""
    pct = max(0.0, 100 - sum(s.percentage for s in splits))
    amount = max(0.0, total_ttc - sum(s.amount for s in splits))
    return Split(percentage=pct, amount=amount)


class SplitSummary(BaseModel):
    total_percentage: float
    total_amount: float
    difference: float
    percentage_ok: bool
    amount_ok: bool

    @property
    def is_valid(self) -> bool:
        return self.percentage_ok and self.amount_ok


def split_summary(total_ttc: float, splits: Sequence[Split]) -> SplitSummary:
    total_pct = sum(s.percentage for s in splits)
    total_amount = sum(s.amount for s in splits)
    return SplitSummary(
        total_percentage=total_pct,
        total_amount=total_amount,
        difference=total_amount - total_ttc,
        percentage_ok=abs(total_pct - 100) < TOLERANCE,
        amount_ok=abs(total_amount - total_ttc) < TOLERANCE,
    )


# ---------- Division ----------
class InvoiceSplitter:
    def __init__(self, repository: InvoiceRepository) -> None:
        self.repository = repository

    def split_invoice(
        self,
        parent_id: str,
        splits: Iterable[SplitLike],
        status: InvoiceStatus = "sent",
    ) -> List[str]:
        try:
            parts = [s if isinstance(s, Split) else Split.model_validate(s) for s in splits]
        except PydanticValidationError as e:
            raise ValidationError(f"Répartition invalide : {e.errors()[0]['msg']}") from e
        parent = self.repository.get_by_id(parent_id)
        if parent is None or isinstance(parent, SubInvoice):
            raise NotFoundError("Facture", parent_id)
        if self.repository.sub_invoices_of(parent_id):
            raise ValidationError(f"La facture {parent.number} est déjà divisée")

        summary = split_summary(parent.total_ttc, parts)
        if not summary.is_valid:
            raise ValidationError(
                "Les pourcentages doivent totaliser 100% et les montants doivent "
                "correspondre au total de la facture "
                f"({summary.total_percentage:.2f}% / {summary.total_amount:.2f} pour {parent.total_ttc:.2f})"
            )
        if not MIN_SPLITS <= len(parts) <= MAX_SPLITS:
            logger.warning("Division de %s en %d parts (plage conseillée %d-%d)",
                           parent.number, len(parts), MIN_SPLITS, MAX_SPLITS)

        now = utcnow()
        base = parent.model_dump(exclude={"id", "number", "items", "status", "created_at", "updated_at",
                                          "total_ht", "total_vat", "total_ttc"})
        subs: List[SubInvoice] = []
        for n, part in enumerate(parts, start=1):
            ratio = part.percentage / 100
            # quantités proratisées ; remises fixes recopiées telles quelles
            items = [it.model_copy(update={"quantity": it.quantity * ratio}) for it in parent.items]
            subs.append(SubInvoice(
                **base,
                id=f"{parent_id}-sub-{n}",
                number=f"{parent.number}-{n}",
                parent_id=parent_id,
                split_percentage=part.percentage,
                items=items,
                status=status,
                total_ht=part.amount / (1 + SPLIT_VAT_RATE),
                total_vat=part.amount * SPLIT_VAT_RATE / (1 + SPLIT_VAT_RATE),
                total_ttc=part.amount,
                created_at=now,
                updated_at=now,
            ))

        self.repository.add_sub_invoices(subs)
        logger.info("Facture %s divisée en %d sous-factures", parent.number, len(subs))
        return [s.id for s in subs]
