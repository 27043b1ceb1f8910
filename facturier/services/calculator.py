from __future__ import annotations
from typing import Iterable

from pydantic import BaseModel

from facturier.models.invoice import LineItem


class Totals(BaseModel):
    total_ht: float = 0.0
    total_vat: float = 0.0
    total_ttc: float = 0.0


# ---------- Ligne ----------
def line_gross(item: LineItem) -> float:
    return item.quantity * item.unit_price


def discount_amount(item: LineItem) -> float:
    """Remise effective de la ligne.

    En pourcentage elle s'applique au brut ; en montant fixe elle est prise
    telle quelle (sans plafonnement au brut de la ligne).
    """
    if item.discount_type == "percentage":
        return line_gross(item) * item.discount / 100
    return item.discount


def line_net_ht(item: LineItem) -> float:
    return line_gross(item) - discount_amount(item)


def line_vat(item: LineItem) -> float:
    return line_net_ht(item) * item.vat_rate / 100


def line_total_ttc(item: LineItem) -> float:
    return line_net_ht(item) + line_vat(item)


# ---------- Document ----------
def calculate_totals(items: Iterable[LineItem]) -> Totals:
    total_ht = 0.0
    total_vat = 0.0
    for it in items:
        total_ht += line_net_ht(it)
        total_vat += line_vat(it)
    return Totals(total_ht=total_ht, total_vat=total_vat, total_ttc=total_ht + total_vat)


# ---------- Formats ----------
def format_currency(amount: float) -> str:
    """1234.5 -> '1 234,50 €' (arrondi à l'affichage uniquement)."""
    try:
        txt = f"{float(amount):,.2f}"
    except (TypeError, ValueError):
        return "0,00 €"
    return txt.replace(",", " ").replace(".", ",") + " €"
