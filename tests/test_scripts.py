"""
Tests for the command-line scripts.
"""

import json
from datetime import date

import pytest

from conftest import make_record
from epi.core.schema import Child
from epi.core.store import ReplicatedStore
from scripts import defaulters as defaulters_script
from scripts import sync as sync_script


@pytest.fixture
def paths(tmp_path, monkeypatch):
    monkeypatch.delenv("OFFLINE_MODE", raising=False)
    return str(tmp_path / "local.db"), str(tmp_path / "remote" / "remote.db")


class TestSyncScript:
    """Test the one-shot sync command."""

    def test_sync_copies_local_children(self, paths, capsys):
        local_path, remote_path = paths
        local = ReplicatedStore.from_path(local_path)
        local.initialize()
        local.children.upsert(Child(id="c1", full_name="Awa Jallow", dob=date(2024, 1, 1)))
        (ReplicatedStore.from_path(remote_path)).initialize()

        code = sync_script.main(["--local", local_path, "--remote", remote_path, "--verbose"])

        assert code == 0
        output = capsys.readouterr().out
        assert "Sync completed at" in output
        assert "children: local=1 remote=0 merged=1" in output
        assert [c.id for c in ReplicatedStore.from_path(remote_path).children.list()] == ["c1"]
        assert local.get_last_sync() is not None

    def test_offline_exit_code(self, paths, capsys):
        local_path, remote_path = paths
        code = sync_script.main(["--local", local_path, "--remote", remote_path, "--offline"])
        assert code == 2
        assert "offline" in capsys.readouterr().out

    def test_offline_mode_env(self, paths, monkeypatch):
        local_path, remote_path = paths
        monkeypatch.setenv("OFFLINE_MODE", "true")
        assert sync_script.main(["--local", local_path, "--remote", remote_path]) == 2


class TestDefaultersScript:
    """Test the defaulter listing command."""

    def test_no_defaulters(self, tmp_path, capsys):
        db = str(tmp_path / "local.db")
        ReplicatedStore.from_path(db).initialize()
        assert defaulters_script.main(["--db", db]) == 0
        assert "No defaulters" in capsys.readouterr().out

    def test_json_output(self, tmp_path, capsys):
        db = str(tmp_path / "local.db")
        store = ReplicatedStore.from_path(db)
        store.initialize()
        store.children.upsert(Child(id="c1", full_name="Awa Jallow", dob=date(2024, 1, 1),
                                    health_center="Sukuta Health Centre"))
        store.records.replace_all([make_record("r1", "bcg")])

        assert defaulters_script.main(["--db", db, "--json", "-f", "Sukuta Health Centre"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data[0]["child_id"] == "c1"
        missed = [entry["vaccine_id"] for entry in data[0]["missed"]]
        assert "bcg" not in missed
        assert "hepb" in missed
