"""
Fixtures communes : dépôt en mémoire, fabriques de lignes/factures, workspace sur tmp_path.
"""
from datetime import datetime, timezone

import pytest

from facturier.models.client import Client, Company
from facturier.models.invoice import Invoice, LineItem
from facturier.services.calculator import calculate_totals
from facturier.services.invoice_repository import InvoiceRepository
from facturier.services.splitter import InvoiceSplitter
from facturier.services.workspace import Workspace

LONG_AGO = datetime(2020, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def client():
    return Client(id="c1", name="Client Exemple SARL", email="contact@clientexemple.fr")


@pytest.fixture
def make_item():
    def _make(**kw):
        data = dict(designation="Prestation", quantity=1, unit_price=100, vat_rate=20)
        data.update(kw)
        return LineItem(**data)
    return _make


@pytest.fixture
def make_invoice(client, make_item):
    counter = {"n": 0}

    def _make(items=None, **kw):
        counter["n"] += 1
        items = items if items is not None else [make_item()]
        data = dict(
            id=f"inv-{counter['n']}",
            number=f"FA{counter['n']:04d}",
            client=client,
            company=Company(name="Mon Entreprise"),
            items=items,
            status="sent",
            created_at=LONG_AGO,
            updated_at=LONG_AGO,
            **calculate_totals(items).model_dump(),
        )
        data.update(kw)
        return Invoice(**data)
    return _make


@pytest.fixture
def changes():
    """Compteur d'appels on_change."""
    calls = []
    return calls


@pytest.fixture
def repo(changes):
    return InvoiceRepository(on_change=lambda: changes.append(1))


@pytest.fixture
def splitter(repo):
    return InvoiceSplitter(repo)


@pytest.fixture
def invoice_300(repo, make_invoice, make_item):
    """Facture de 300,00 TTC (250 HT + 50 TVA) déjà enregistrée."""
    inv = make_invoice(items=[make_item(unit_price=250)])
    repo.add_invoice(inv)
    return inv


@pytest.fixture
def split_three(repo, splitter, invoice_300):
    splitter.split_invoice(invoice_300.id, [
        {"percentage": 50, "amount": 150},
        {"percentage": 25, "amount": 75},
        {"percentage": 25, "amount": 75},
    ])
    return invoice_300


@pytest.fixture
def workspace(tmp_path):
    return Workspace.open(tmp_path)
