"""
Atomic write helper tests.
"""

import json

import pytest

from helpers.atomic_write import AtomicWriteError, atomic_write_json, atomic_write_text


class TestAtomicWrite:
    def test_writes_json_and_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "store.json"

        atomic_write_json(target, {"1": {"2": {"server": "INX", "map": "Fjordur"}}})

        assert json.loads(target.read_text(encoding="utf-8"))["1"]["2"]["map"] == "Fjordur"

    def test_replaces_existing_file(self, tmp_path):
        target = tmp_path / "store.json"
        target.write_text("old", encoding="utf-8")

        atomic_write_text(target, "new")

        assert target.read_text(encoding="utf-8") == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

    def test_unserializable_data_raises_and_keeps_file(self, tmp_path):
        target = tmp_path / "store.json"
        target.write_text("{}", encoding="utf-8")

        with pytest.raises(AtomicWriteError):
            atomic_write_json(target, {"bad": object()})

        assert target.read_text(encoding="utf-8") == "{}"
