import json

from facturier import settings as app_settings
from facturier.services.workspace import Workspace


def _state(tmp_path):
    return json.loads((tmp_path / app_settings.STATE_FILE).read_text(encoding="utf-8"))


def _save_invoice(ws, unit_price=250):
    client = ws.clients.list_clients()[0]
    draft = ws.documents.new_draft()
    draft = draft.model_copy(update={"client": client, "items": [ws.documents.new_item().model_copy(
        update={"designation": "Sonorisation", "unit_price": unit_price})]})
    return ws.documents.save_document(draft)


class TestFirstRun:

    def test_seeds_sample_client_and_company(self, workspace, tmp_path):
        [client] = workspace.clients.list_clients()
        assert client.id == app_settings.SAMPLE_CLIENT["id"]
        assert workspace.clients.company.name == app_settings.DEFAULT_COMPANY["name"]
        state = _state(tmp_path)
        assert state["clients"][0]["email"] == "contact@clientexemple.fr"
        assert state["invoices"] == []

    def test_company_from_settings(self, tmp_path):
        (tmp_path / app_settings.SETTINGS_FILE).write_text(
            json.dumps({"company": {"name": "Sonolight"}, "default_terms": "Comptant"}), encoding="utf-8")
        ws = Workspace.open(tmp_path)
        assert ws.clients.company.name == "Sonolight"
        assert ws.clients.company.siret == app_settings.DEFAULT_COMPANY["siret"]
        assert ws.documents.new_draft().terms == "Comptant"

    def test_deleted_sample_client_is_not_recreated(self, workspace, tmp_path):
        workspace.clients.delete_client(app_settings.SAMPLE_CLIENT["id"])
        assert Workspace.open(tmp_path).clients.list_clients() == []


class TestPersistence:

    def test_every_mutation_is_saved(self, workspace, tmp_path):
        inv = _save_invoice(workspace)
        assert _state(tmp_path)["invoices"][0]["id"] == inv.id
        workspace.invoices.toggle_paid_status(inv.id)
        assert _state(tmp_path)["invoices"][0]["status"] == "paid"

    def test_reopen_restores_everything(self, workspace, tmp_path):
        inv = _save_invoice(workspace)
        workspace.splitter.split_invoice(inv.id, [{"percentage": 50, "amount": 150},
                                                 {"percentage": 50, "amount": 150}])
        workspace.clients.update_company({"phone": "04 00 00 00 00"})

        ws = Workspace.open(tmp_path)
        reloaded = ws.invoices.get_by_id(inv.id)
        assert reloaded == inv
        assert [s.id for s in ws.invoices.sub_invoices_of(inv.id)] == [f"{inv.id}-sub-1", f"{inv.id}-sub-2"]
        assert ws.clients.company.phone == "04 00 00 00 00"
        assert ws.numbering.generate_invoice_number("invoice") == "FA0002"

    def test_cascade_is_persisted(self, workspace, tmp_path):
        inv = _save_invoice(workspace)
        workspace.splitter.split_invoice(inv.id, [{"percentage": 50, "amount": 150},
                                                 {"percentage": 50, "amount": 150}])
        workspace.invoices.delete_invoice(inv.id)
        state = _state(tmp_path)
        assert state["invoices"] == []
        assert state["sub_invoices"] == []

    def test_invalid_records_are_skipped(self, tmp_path):
        (tmp_path / app_settings.STATE_FILE).write_text(json.dumps({
            "invoices": [{"id": "ok", "number": "FA0001"}, {"id": "ko", "status": "inconnu"}],
            "clients": [{"id": "c", "name": "Sans email"}],
        }), encoding="utf-8")
        ws = Workspace.open(tmp_path)
        assert [i.id for i in ws.invoices.list_invoices()] == ["ok"]
        assert ws.clients.list_clients() == []
