"""End-to-end migration runs against the fake bucket and database."""

import pytest

from prompto_pipeline import clients, migration
from prompto_pipeline.batch_writer import MigrationMode
from prompto_pipeline.migration import Migration, classify_files, to_write_record
from prompto_pipeline.storage_reader import StorageReader
from tests.fakes import FakeBucket, FakeFirestore


def test_classify_files():
    groups = classify_files([
        "pt_category.json", "Category_list.json", "prompts_Music.json",
        "promptDetails_Music.json", "PromptDetails_Art.json", "readme.json",
    ])
    assert groups.categories == ["pt_category.json", "Category_list.json"]
    assert groups.prompts == ["prompts_Music.json"]
    assert groups.prompt_details == ["promptDetails_Music.json", "PromptDetails_Art.json"]
    assert groups.unrecognized == ["readme.json"]


class TestToWriteRecord:
    def test_id_becomes_key_and_is_stripped(self):
        record = to_write_record({"_id": "a1", "id": "ignored", "prompt": "x"}, {"categoryId": "c"})
        assert record.doc_id == "a1"
        assert "_id" not in record.data and "id" not in record.data
        assert record.data["categoryId"] == "c"
        assert "createdAt" in record.data and "updatedAt" in record.data

    def test_falls_back_to_id(self):
        assert to_write_record({"id": 12, "prompt": "x"}).doc_id == "12"

    @pytest.mark.parametrize("item", [{"prompt": "no key"}, {"_id": ""}, "not a dict"])
    def test_records_without_key_are_dropped(self, item):
        assert to_write_record(item) is None


class TestMigrationRun:
    def test_fresh_run_links_and_keys_everything(self, db, reader):
        summary = Migration(db, reader).run("auto")

        assert summary.mode == MigrationMode.FRESH
        assert summary.categories.succeeded == 2
        assert summary.prompts.succeeded == 4
        assert summary.prompt_details.succeeded == 2
        assert summary.unlinked_files == ["prompts_Unknown.json"]

        prompts = db.data["prompts"]
        assert prompts["m1"]["categoryId"] == "cat1"
        assert prompts["t1"]["categoryId"] == "cat2"      # lowercase file name
        assert "categoryId" not in prompts["u1"]

        details = db.data["promptDetails"]
        assert set(details) <= set(prompts)               # detail key ≡ prompt key
        assert details["m1"]["fullprompt"] == "A guitarist playing at sunset"
        assert "_id" not in details["m1"]

    def test_second_auto_run_skips_everything(self, db, reader):
        Migration(db, reader).run("fresh")
        db.data["prompts"]["m1"]["prompt"] = "edited by hand"

        summary = Migration(db, reader).run("auto")

        assert summary.mode == MigrationMode.UPDATE
        assert summary.total.succeeded == 0
        assert summary.total.skipped == 8
        assert db.data["prompts"]["m1"]["prompt"] == "edited by hand"

    def test_force_run_overwrites_but_keeps_extra_fields(self, db, reader):
        Migration(db, reader).run("fresh")
        db.data["prompts"]["m1"]["likes"] = 10
        db.data["prompts"]["m1"]["prompt"] = "edited by hand"

        Migration(db, reader).run("force")

        assert db.data["prompts"]["m1"]["prompt"] == "Guitar at sunset"
        assert db.data["prompts"]["m1"]["likes"] == 10

    def test_links_to_existing_categories_in_update_mode(self):
        db = FakeFirestore({"categories": {"cat9": {"name": "Music"}}})
        bucket = FakeBucket({"prompts_Music.json": [{"_id": "m1", "prompt": "Guitar at sunset"}]})
        Migration(db, StorageReader(bucket, "data/")).run("update")
        assert db.data["prompts"]["m1"]["categoryId"] == "cat9"

    def test_falls_back_to_source_categories_when_writes_fail(self, db, reader):
        db.fail_commits = {1}
        summary = Migration(db, reader).run("fresh")
        assert summary.categories.failed == 2
        assert db.data["prompts"]["m1"]["categoryId"] == "cat1"

    def test_records_without_id_are_skipped(self, db):
        bucket = FakeBucket({"prompts_Music.json": [{"_id": "a"}, {"prompt": "no id"}]})
        summary = Migration(db, StorageReader(bucket, "data/")).run("fresh")
        assert summary.prompts.succeeded == 1
        assert summary.prompts.failed == 0

    def test_empty_bucket(self, db):
        assert Migration(db, StorageReader(FakeBucket(), "data/")).run("fresh") is None


class TestMain:
    @pytest.fixture
    def patched(self, monkeypatch, db, bucket):
        monkeypatch.setattr(clients, "load_credentials", lambda *a, **k: None)
        monkeypatch.setattr(clients, "firestore_client", lambda *a, **k: db)
        monkeypatch.setattr(clients, "storage_bucket", lambda *a, **k: bucket)
        monkeypatch.setattr(migration.Config, "DATA_FOLDER", "data/")
        return db

    def test_main_success(self, patched, capsys):
        assert migration.main(["fresh"]) == 0
        out = capsys.readouterr().out
        assert "MIGRATION COMPLETE" in out
        assert "categoryId (Ascending), createdAt (Descending)" in out
        assert len(patched.data["prompts"]) == 4

    def test_main_unknown_mode_exits_1(self, patched):
        assert migration.main(["sideways"]) == 1
        assert patched.data == {}
