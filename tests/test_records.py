"""Tests for the JSON-file analysis record store."""

import pytest

from config.schemas import AnalysisRecord, DiarizationResult, SpeakerCharacteristic, Utterance
from services.storage.records import RecordNotFoundError, RecordStore, validate_record_id


def make_record(record_id="rec-1", created_at="2026-01-05T10:00:00.000Z", **kwargs):
    return AnalysisRecord(
        id=record_id,
        created_at=created_at,
        file_name=f"{record_id}.wav",
        diarization_result=DiarizationResult(utterances=[
            Utterance(speaker=0, text="Hello team"),
            Utterance(speaker=2, text="Hi"),
        ]),
        **kwargs,
    )


@pytest.fixture
def store(tmp_path):
    return RecordStore(tmp_path / "analyses")


class TestRecordIds:
    @pytest.mark.parametrize("record_id", ["abc", "a1-b2_c3", "3f2a9c1e-0b7d-4c55-9a43-17e0f2d1b6aa"])
    def test_valid(self, record_id):
        assert validate_record_id(record_id) == record_id

    @pytest.mark.parametrize("record_id", ["", "../etc/passwd", "a/b", "a.json", "has space"])
    def test_invalid(self, record_id):
        with pytest.raises(ValueError):
            validate_record_id(record_id)


class TestRecordStore:
    def test_save_and_get(self, store):
        record = make_record(speaker_characteristics={2: SpeakerCharacteristic(description="glasses", confidence=0.9)})
        store.save(record)
        loaded = store.get("rec-1")
        assert loaded == record
        assert loaded.diarization_result.utterances[1].speaker_index == 2
        assert loaded.speaker_characteristics[2].description == "glasses"

    def test_file_uses_camel_case(self, store):
        store.save(make_record())
        raw = (store.data_dir / "rec-1.json").read_text(encoding="utf-8")
        assert '"diarizationResult"' in raw
        assert '"createdAt"' in raw
        assert '"speaker": 0' in raw

    def test_save_requires_id(self, store):
        with pytest.raises(ValueError):
            store.save(make_record(record_id=None))

    def test_get_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.get("nope")

    def test_get_invalid_id(self, store):
        with pytest.raises(ValueError):
            store.get("../secret")

    def test_list_newest_first(self, store):
        store.save(make_record("old", "2026-01-01T00:00:00.000Z"))
        store.save(make_record("new", "2026-03-01T00:00:00.000Z"))
        store.save(make_record("mid", "2026-02-01T00:00:00.000Z"))
        assert [item.id for item in store.list_items()] == ["new", "mid", "old"]

    def test_list_empty_when_dir_missing(self, store):
        assert store.list_items() == []

    def test_list_skips_unreadable_files(self, store):
        store.save(make_record())
        (store.data_dir / "broken.json").write_text("{not json", encoding="utf-8")
        assert [item.id for item in store.list_items()] == ["rec-1"]

    def test_hide_and_unhide(self, store):
        store.save(make_record())
        store.set_hidden("rec-1", hidden=True)
        assert store.get("rec-1").hidden is True
        assert store.list_items(include_hidden=False) == []
        assert store.list_items()[0].hidden is True

        store.set_hidden("rec-1", hidden=False)
        assert store.get("rec-1").hidden is False

    def test_hide_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.set_hidden("ghost", hidden=True)

    def test_delete(self, store):
        store.save(make_record())
        store.delete("rec-1")
        with pytest.raises(RecordNotFoundError):
            store.get("rec-1")
        with pytest.raises(RecordNotFoundError):
            store.delete("rec-1")

    def test_clear_all(self, store):
        store.save(make_record("one"))
        store.save(make_record("two"))
        assert store.clear_all() == []
        assert store.list_items() == []

    def test_clear_all_without_dir(self, store):
        assert store.clear_all() == []
