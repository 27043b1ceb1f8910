from __future__ import annotations
from pydantic import BaseModel

from facturier.services.invoice_repository import InvoiceRepository


class DashboardSummary(BaseModel):
    paid_invoices: int = 0
    pending_invoices: int = 0
    quotes: int = 0
    revenue: float = 0.0


def dashboard_summary(repository: InvoiceRepository) -> DashboardSummary:
    docs = repository.all_documents()
    invoices = [d for d in docs if d.document_type == "invoice"]
    # CA = factures mères payées + sous-factures payées
    revenue = sum(i.total_ttc for i in repository.list_invoices()
                  if i.document_type == "invoice" and i.status == "paid")
    revenue += sum(s.total_ttc for s in repository.list_sub_invoices() if s.status == "paid")
    return DashboardSummary(
        paid_invoices=sum(1 for d in invoices if d.status == "paid"),
        pending_invoices=sum(1 for d in invoices if d.status == "sent"),
        quotes=sum(1 for i in repository.list_invoices() if i.document_type == "quote"),
        revenue=revenue,
    )
