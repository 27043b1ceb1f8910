from __future__ import annotations
from typing import List
from pydantic import BaseModel, ConfigDict, Field
from .client import Client, Company
from .invoice import Invoice, SubInvoice


class AppSnapshot(BaseModel):
    """État complet persisté : un seul blob JSON chargé au démarrage, réécrit à chaque modification."""
    model_config = ConfigDict(extra="ignore")

    invoices: List[Invoice] = Field(default_factory=list)
    sub_invoices: List[SubInvoice] = Field(default_factory=list)
    clients: List[Client] = Field(default_factory=list)
    company: Company = Field(default_factory=Company)
