import json
from datetime import date

from facturier.storage.json_store import EMPTY_STATE, JsonStateStore


def _backups(tmp_path):
    return sorted(tmp_path.glob("state.*.bak.json"))


def test_missing_file_gives_empty_state(tmp_path):
    store = JsonStateStore(tmp_path / "state.json")
    assert store.load() == EMPTY_STATE


def test_round_trip(tmp_path):
    store = JsonStateStore(tmp_path / "state.json")
    assert store.save({"invoices": [{"id": "a", "date": date(2024, 3, 1)}], "clients": []}) is True
    data = store.load()
    assert data["invoices"] == [{"id": "a", "date": "2024-03-01"}]
    # clés absentes complétées
    assert data["sub_invoices"] == []
    assert data["company"] is None


def test_unchanged_content_is_not_rewritten(tmp_path):
    store = JsonStateStore(tmp_path / "state.json")
    snap = {"invoices": [], "clients": [{"id": "1"}]}
    assert store.save(snap) is True
    assert store.save(snap) is False
    assert _backups(tmp_path) == []


def test_backup_rotation(tmp_path):
    store = JsonStateStore(tmp_path / "state.json", backup_keep=2)
    for n in range(5):
        store.save({"invoices": [{"id": str(n)}]})
    backups = _backups(tmp_path)
    assert len(backups) == 2
    assert json.loads(backups[-1].read_text(encoding="utf-8"))["invoices"] == [{"id": "3"}]
    assert store.load()["invoices"] == [{"id": "4"}]


def test_backups_disabled(tmp_path):
    store = JsonStateStore(tmp_path / "state.json", backup_enabled=False)
    store.save({"invoices": []})
    store.save({"invoices": [{"id": "1"}]})
    assert _backups(tmp_path) == []


def test_corrupt_file_is_set_aside(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{pas du json", encoding="utf-8")
    store = JsonStateStore(path)
    assert store.load() == EMPTY_STATE
    assert (tmp_path / "state.corrupt.json").read_text(encoding="utf-8") == "{pas du json"


def test_unexpected_top_level_value(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert JsonStateStore(path).load() == EMPTY_STATE


def test_no_temp_file_left(tmp_path):
    store = JsonStateStore(tmp_path / "sub" / "state.json")
    store.save({"invoices": []})
    assert sorted(p.name for p in (tmp_path / "sub").iterdir()) == ["state.json"]
