# =============================================================================
# tests/unit/test_backup.py
# Unit Tests for backup export and import
# =============================================================================

import io
import json
from datetime import date

import pytest

from stock_core.data.backup import backup_filename, export_snapshot, load_backup
from stock_core.errors import BackupError
from stock_core.models import Category, Snapshot


class TestExport:

    def test_filename_contains_date(self):
        assert backup_filename(date(2024, 3, 9)) == "nabil_inventory_backup_2024-03-09.json"

    def test_export_writes_readable_json(self, tmp_path, sample_snapshot):
        path = export_snapshot(sample_snapshot, tmp_path / "backups", day=date(2024, 1, 2))

        assert path.name == "nabil_inventory_backup_2024-01-02.json"
        text = path.read_text(encoding="utf-8")
        assert text.startswith("{\n  ")
        data = json.loads(text)
        assert set(data) == {"categories", "products", "sales", "earnings"}
        assert data["products"][0]["categoryId"] == "c1"

    def test_export_keeps_non_ascii(self, tmp_path):
        snapshot = Snapshot(categories=[Category(id="c1", name="Épices")])
        path = export_snapshot(snapshot, tmp_path)

        assert "Épices" in path.read_text(encoding="utf-8")

    def test_export_then_load(self, tmp_path, sample_snapshot):
        path = export_snapshot(sample_snapshot, tmp_path)
        assert load_backup(path).normalized() == sample_snapshot.normalized()


class TestLoad:

    def test_from_dict(self, sample_snapshot):
        snapshot = load_backup(sample_snapshot.to_dict())
        assert snapshot.earnings == 680.0

    def test_from_json_text(self):
        snapshot = load_backup('{"categories": [{"id": "c1", "name": "Spices"}]}')

        assert [c.name for c in snapshot.categories] == ["Spices"]
        assert snapshot.products == []
        assert snapshot.earnings == 0.0

    def test_from_string_path(self, tmp_path):
        path = tmp_path / "backup.json"
        path.write_text('{"earnings": 12.5}', encoding="utf-8")

        assert load_backup(str(path)).earnings == 12.5

    def test_from_uploaded_file(self):
        upload = io.BytesIO(b'{"sales": [], "earnings": 3}')
        assert load_backup(upload).earnings == 3.0

    def test_from_bytes(self):
        assert load_backup(b'{"products": []}').is_empty

    def test_missing_file(self, tmp_path):
        with pytest.raises(BackupError) as exc_info:
            load_backup(tmp_path / "nope.json")
        assert exc_info.value.code == "DATA_002"

    def test_invalid_json(self):
        with pytest.raises(BackupError, match="not valid JSON"):
            load_backup(b"{not json")

    def test_invalid_utf8(self, tmp_path):
        raw = b'{"categories": [], "earnings": "\xff"}'

        with pytest.raises(BackupError, match="UTF-8"):
            load_backup(raw)
        with pytest.raises(BackupError, match="UTF-8"):
            load_backup(io.BytesIO(raw))

        path = tmp_path / "latin1.json"
        path.write_bytes(raw)
        with pytest.raises(BackupError):
            load_backup(path)

    def test_not_an_object(self):
        with pytest.raises(BackupError, match="JSON object"):
            load_backup(b"[1, 2, 3]")

    def test_no_expected_keys(self):
        with pytest.raises(BackupError) as exc_info:
            load_backup({"customers": []})
        assert exc_info.value.details["found"] == ["customers"]

    def test_malformed_record(self):
        with pytest.raises(BackupError, match="Malformed"):
            load_backup({"categories": [{"name": "no id"}]})

    def test_unsupported_source(self):
        with pytest.raises(BackupError, match="Unsupported"):
            load_backup(42)
