from datetime import datetime, timezone

import pytest

from facturier.errors import ValidationError
from facturier.models.invoice import SubInvoice
from facturier.services.invoice_repository import InvoiceRepository

LONG_AGO = datetime(2020, 1, 1, tzinfo=timezone.utc)


class TestCrud:

    def test_add_and_get(self, repo, make_invoice, changes):
        inv = repo.add_invoice(make_invoice())
        assert repo.get_by_id(inv.id) is inv
        assert repo.list_invoices() == [inv]
        assert len(changes) == 1

    def test_duplicate_id_is_rejected(self, repo, make_invoice):
        inv = make_invoice()
        repo.add_invoice(inv)
        with pytest.raises(ValidationError):
            repo.add_invoice(inv.model_copy())

    def test_duplicate_number_is_accepted(self, repo, make_invoice):
        repo.add_invoice(make_invoice(number="FA0001"))
        repo.add_invoice(make_invoice(number="FA0001"))
        assert len(repo.list_invoices()) == 2

    def test_sub_invoice_cannot_be_added_directly(self, repo, invoice_300):
        sub = SubInvoice(**invoice_300.model_dump(exclude={"id"}), id="x", parent_id=invoice_300.id)
        with pytest.raises(ValidationError):
            repo.add_invoice(sub)

    def test_update_merges_and_touches(self, repo, make_invoice):
        inv = repo.add_invoice(make_invoice(notes="avant"))
        updated = repo.update_invoice(inv.id, {"notes": "après", "status": "overdue"})
        assert updated.notes == "après"
        assert updated.status == "overdue"
        assert updated.number == inv.number
        assert updated.updated_at > LONG_AGO
        assert repo.get_by_id(inv.id).notes == "après"

    def test_update_ignores_id_in_patch(self, repo, make_invoice):
        inv = repo.add_invoice(make_invoice())
        repo.update_invoice(inv.id, {"id": "autre", "notes": "n"})
        assert repo.get_by_id(inv.id).notes == "n"
        assert repo.get_by_id("autre") is None

    def test_update_unknown_id_is_noop(self, repo, make_invoice, changes):
        repo.add_invoice(make_invoice())
        assert repo.update_invoice("nope", {"notes": "x"}) is None
        assert len(changes) == 1

    def test_update_with_invalid_value_is_a_validation_error(self, repo, make_invoice, changes):
        inv = repo.add_invoice(make_invoice())
        with pytest.raises(ValidationError):
            repo.update_invoice(inv.id, {"status": "inconnu"})
        assert repo.get_by_id(inv.id).status == "sent"
        assert len(changes) == 1

    def test_update_items_recomputes_totals(self, repo, make_invoice, make_item):
        inv = repo.add_invoice(make_invoice())
        updated = repo.update_invoice(inv.id, {"items": [make_item(quantity=2, unit_price=50, discount=10)]})
        assert updated.total_ht == pytest.approx(90)
        assert updated.total_vat == pytest.approx(18)
        assert updated.total_ttc == pytest.approx(108)

    def test_update_with_explicit_totals_keeps_them(self, repo, make_invoice, make_item):
        inv = repo.add_invoice(make_invoice())
        updated = repo.update_invoice(inv.id, {"items": [make_item(unit_price=1)], "total_ht": 5,
                                               "total_vat": 1, "total_ttc": 6})
        assert (updated.total_ht, updated.total_vat, updated.total_ttc) == (5, 1, 6)

    def test_update_finds_sub_invoices(self, repo, split_three):
        sub_id = f"{split_three.id}-sub-2"
        updated = repo.update_invoice(sub_id, {"notes": "relance"})
        assert isinstance(updated, SubInvoice)
        assert updated.parent_id == split_three.id
        assert repo.get_by_id(sub_id).notes == "relance"

    def test_delete_cascades_to_sub_invoices(self, repo, split_three):
        assert len(repo.sub_invoices_of(split_three.id)) == 3
        assert repo.delete_invoice(split_three.id) is True
        assert repo.get_by_id(split_three.id) is None
        assert repo.list_sub_invoices() == []
        assert all(repo.get_by_id(f"{split_three.id}-sub-{n}") is None for n in (1, 2, 3))

    def test_delete_keeps_other_families(self, repo, splitter, split_three, make_invoice, make_item):
        other = repo.add_invoice(make_invoice(items=[make_item(unit_price=250)]))
        splitter.split_invoice(other.id, [{"percentage": 50, "amount": 150}, {"percentage": 50, "amount": 150}])
        repo.delete_invoice(split_three.id)
        assert [s.parent_id for s in repo.list_sub_invoices()] == [other.id, other.id]

    def test_delete_unknown_id_is_noop(self, repo, make_invoice, changes):
        repo.add_invoice(make_invoice())
        assert repo.delete_invoice("nope") is False
        assert len(repo.list_invoices()) == 1
        assert len(changes) == 1

    def test_sub_invoice_is_not_deleted_directly(self, repo, split_three):
        assert repo.delete_invoice(f"{split_three.id}-sub-1") is False
        assert len(repo.list_sub_invoices()) == 3

    def test_orphan_sub_invoices_are_dropped_on_load(self, invoice_300):
        orphan = SubInvoice(**invoice_300.model_dump(exclude={"id"}), id="o-sub-1", parent_id="absent")
        repo = InvoiceRepository([invoice_300], [orphan])
        assert repo.list_sub_invoices() == []


class TestStatusPropagation:

    def test_toggle_paid_on_simple_invoice(self, repo, make_invoice):
        inv = repo.add_invoice(make_invoice(status="sent"))
        assert repo.toggle_paid_status(inv.id).status == "paid"
        assert repo.toggle_paid_status(inv.id).status == "sent"

    def test_toggle_paid_from_draft(self, repo, make_invoice):
        inv = repo.add_invoice(make_invoice(status="draft"))
        assert repo.toggle_paid_status(inv.id).status == "paid"

    def test_split_invoice_delegates_payment(self, repo, split_three):
        with pytest.raises(ValidationError):
            repo.toggle_paid_status(split_three.id)
        assert repo.get_by_id(split_three.id).status == "sent"

    def test_toggle_unknown_id_is_noop(self, repo):
        assert repo.toggle_paid_status("nope") is None
        assert repo.toggle_cancelled_status("nope") is None

    def test_all_children_paid_completes_parent(self, repo, split_three):
        pid = split_three.id
        repo.toggle_paid_status(f"{pid}-sub-1")
        repo.toggle_paid_status(f"{pid}-sub-2")
        assert repo.get_by_id(pid).status == "sent"
        repo.toggle_paid_status(f"{pid}-sub-3")
        assert repo.get_by_id(pid).status == "complet"

    def test_unpaying_a_child_reverts_parent(self, repo, split_three):
        pid = split_three.id
        for n in (1, 2, 3):
            repo.toggle_paid_status(f"{pid}-sub-{n}")
        repo.toggle_paid_status(f"{pid}-sub-2")
        assert repo.get_by_id(f"{pid}-sub-2").status == "sent"
        assert repo.get_by_id(pid).status == "incomplet"
        repo.toggle_paid_status(f"{pid}-sub-2")
        assert repo.get_by_id(pid).status == "complet"

    def test_parent_already_paid_is_left_alone(self, repo, split_three):
        pid = split_three.id
        repo.update_invoice(pid, {"status": "paid"})
        for n in (1, 2, 3):
            repo.toggle_paid_status(f"{pid}-sub-{n}")
        assert repo.get_by_id(pid).status == "paid"
        repo.toggle_paid_status(f"{pid}-sub-1")
        assert repo.get_by_id(pid).status == "paid"

    def test_incomplete_family_does_not_touch_non_complet_parent(self, repo, split_three):
        pid = split_three.id
        repo.toggle_paid_status(f"{pid}-sub-1")
        repo.toggle_paid_status(f"{pid}-sub-1")
        assert repo.get_by_id(pid).status == "sent"

    def test_cancelled_child_counts_as_unpaid(self, repo, split_three):
        pid = split_three.id
        repo.toggle_cancelled_status(f"{pid}-sub-3")
        repo.toggle_paid_status(f"{pid}-sub-1")
        repo.toggle_paid_status(f"{pid}-sub-2")
        assert repo.get_by_id(f"{pid}-sub-3").status == "cancelled"
        assert repo.get_by_id(pid).status == "sent"

    def test_cancelling_a_paid_child_reverts_parent(self, repo, split_three):
        pid = split_three.id
        for n in (1, 2, 3):
            repo.toggle_paid_status(f"{pid}-sub-{n}")
        repo.toggle_cancelled_status(f"{pid}-sub-1")
        assert repo.get_by_id(pid).status == "incomplet"

    def test_toggle_cancelled_round_trip(self, repo, split_three):
        sub_id = f"{split_three.id}-sub-1"
        assert repo.toggle_cancelled_status(sub_id).status == "cancelled"
        assert repo.toggle_cancelled_status(sub_id).status == "sent"

    def test_cancel_toggle_is_for_sub_invoices_only(self, repo, invoice_300):
        with pytest.raises(ValidationError):
            repo.toggle_cancelled_status(invoice_300.id)

    def test_status_set_through_update_also_propagates(self, repo, split_three):
        pid = split_three.id
        for n in (1, 2, 3):
            repo.update_invoice(f"{pid}-sub-{n}", {"status": "paid"})
        assert repo.get_by_id(pid).status == "complet"

    def test_one_notification_per_toggle(self, repo, split_three, changes):
        before = len(changes)
        for n in (1, 2, 3):
            repo.toggle_paid_status(f"{split_three.id}-sub-{n}")
        assert len(changes) - before == 3
