from __future__ import annotations
import datetime as dt
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .common import TimeStamped, gen_id
from .client import Client, Company

DocumentType = Literal["invoice", "quote", "proforma"]
InvoiceStatus = Literal["draft", "sent", "paid", "overdue", "split", "complet", "incomplet", "cancelled"]
DiscountType = Literal["percentage", "fixed_amount"]

# anciennes valeurs de remise rencontrées dans les exports JSON
_DISCOUNT_ALIASES = {"amount": "fixed_amount", "fixedAmount": "fixed_amount"}


class LineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    designation: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0
    vat_rate: float = 20.0
    discount: float = 0.0
    discount_type: DiscountType = "percentage"

    @field_validator("discount_type", mode="before")
    @classmethod
    def _legacy_discount_type(cls, v):
        return _DISCOUNT_ALIASES.get(v, v)


class Invoice(TimeStamped):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    document_type: DocumentType = "invoice"
    number: str = ""
    date: dt.date = Field(default_factory=dt.date.today)
    due_date: Optional[dt.date] = None

    client: Optional[Client] = None
    company: Company = Field(default_factory=Company)

    items: List[LineItem] = Field(default_factory=list)
    signature: Optional[str] = None
    notes: str = ""
    terms: str = ""
    status: InvoiceStatus = "draft"

    # totaux en cache, jamais arrondis (arrondi à l'affichage seulement)
    total_ht: float = 0.0
    total_vat: float = 0.0
    total_ttc: float = 0.0

    @property
    def is_sub_invoice(self) -> bool:
        return False


class SubInvoice(Invoice):
    parent_id: str
    # pas de borne haute : une part peut dépasser 100 de la tolérance de division
    split_percentage: float = Field(default=0.0, ge=0)

    @property
    def is_sub_invoice(self) -> bool:
        return True
