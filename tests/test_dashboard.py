import pytest

from facturier.services.dashboard import dashboard_summary


def test_empty_repository(repo):
    summary = dashboard_summary(repo)
    assert (summary.paid_invoices, summary.pending_invoices, summary.quotes) == (0, 0, 0)
    assert summary.revenue == 0


def test_counts_and_revenue(repo, split_three, make_invoice):
    repo.toggle_paid_status(f"{split_three.id}-sub-1")
    repo.add_invoice(make_invoice(status="paid"))
    repo.add_invoice(make_invoice(status="sent", document_type="quote"))
    repo.add_invoice(make_invoice(status="paid", document_type="proforma"))

    summary = dashboard_summary(repo)
    assert summary.paid_invoices == 2
    # parent + deux sous-factures encore envoyées
    assert summary.pending_invoices == 3
    assert summary.quotes == 1
    assert summary.revenue == pytest.approx(120 + 150)


def test_completed_parent_is_not_counted_twice(repo, split_three):
    for n in (1, 2, 3):
        repo.toggle_paid_status(f"{split_three.id}-sub-{n}")
    summary = dashboard_summary(repo)
    assert repo.get_by_id(split_three.id).status == "complet"
    assert summary.revenue == pytest.approx(300)
