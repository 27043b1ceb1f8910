from __future__ import annotations
import re
from typing import Callable, Iterable, Optional

from facturier.errors import ValidationError
from facturier.models.invoice import Invoice

PREFIXES = {"invoice": "FA", "quote": "DE", "proforma": "PR"}

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_sequence(tail: str) -> Optional[int]:
    # lecture tolérante : chiffres de tête uniquement ("0012b" -> 12, "abc" -> None)
    m = _LEADING_INT.match(tail)
    return int(m.group(1)) if m else None


class NumberingAllocator:
    """Numérotation séquentielle par type de document (FA0001, DE0001, PR0001).

    Ne lit que les factures de premier niveau ; les sous-factures portent le
    numéro de leur mère suffixé et ne comptent pas dans la séquence.
    Aucune réservation : deux appels sans enregistrement entre les deux
    renvoient le même numéro.
    """

    def __init__(self, invoices: Callable[[], Iterable[Invoice]]) -> None:
        self._invoices = invoices

    def generate_invoice_number(self, document_type: str) -> str:
        prefix = PREFIXES.get(document_type)
        if prefix is None:
            raise ValidationError(f"Type de document inconnu : {document_type}")
        max_n = 0
        found = False
        for inv in self._invoices():
            if inv.document_type != document_type:
                continue
            n = _parse_sequence((inv.number or "").replace(prefix, "", 1))
            if n is None:
                continue
            if not found or n > max_n:
                max_n = n
                found = True
        next_n = max_n + 1 if found else 1
        return f"{prefix}{next_n:04d}"
