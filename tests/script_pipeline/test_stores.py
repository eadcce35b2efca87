"""Tests for script document stores."""

import json
import pytest

from script_pipeline.models import SceneScript, SceneStatus, ScriptDocument
from script_pipeline.stores import InMemoryScriptStore, JsonScriptStore


def _document(chapter_number, bodies=("WIDE SHOT: a",)):
    return ScriptDocument(
        chapter_number=chapter_number,
        chapter_title=f"Chapter {chapter_number}",
        scenes=[
            SceneScript(segment_index=i, scene_number=i + 1, title=f"Scene {i + 1}", body=body)
            for i, body in enumerate(bodies)
        ],
    )


@pytest.mark.unit
class TestInMemoryScriptStore:

    @pytest.mark.asyncio
    async def test_empty_novel(self):
        assert await InMemoryScriptStore().load_existing_scripts("novel") == []

    @pytest.mark.asyncio
    async def test_save_replaces_and_copies(self):
        store = InMemoryScriptStore()
        docs = [_document(1), _document(2)]

        await store.save_scripts("novel", docs)
        docs[0].chapter_title = "mutated"
        loaded = await store.load_existing_scripts("novel")

        assert [d.chapter_number for d in loaded] == [1, 2]
        assert loaded[0].chapter_title == "Chapter 1"
        assert store.save_count == 1


@pytest.mark.unit
class TestJsonScriptStore:

    @pytest.mark.asyncio
    async def test_missing_file_loads_empty(self, test_output_dir):
        assert await JsonScriptStore(test_output_dir).load_existing_scripts("novel") == []

    @pytest.mark.asyncio
    async def test_save_then_load(self, test_output_dir):
        store = JsonScriptStore(test_output_dir / "nested")
        docs = [_document(1, ("A", "B")), _document(3)]

        await store.save_scripts("My Novel/1", docs)
        loaded = await store.load_existing_scripts("My Novel/1")

        assert store.path_for("My Novel/1").name == "My_Novel_1.json"
        assert [d.chapter_number for d in loaded] == [1, 3]
        assert loaded[0].full_text == "A\n\nB"
        assert loaded[0].generated_at == docs[0].generated_at

    @pytest.mark.asyncio
    async def test_file_layout(self, test_output_dir):
        store = JsonScriptStore(test_output_dir)
        await store.save_scripts("novel", [_document(1, ("场景",))])

        payload = json.loads(store.path_for("novel").read_text(encoding="utf-8"))

        assert payload["novel_id"] == "novel"
        assert "saved_at" in payload
        assert payload["scripts"][0]["full_text"] == "场景"
        assert "场景" in store.path_for("novel").read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_legacy_entries_are_upgraded(self, test_output_dir):
        store = JsonScriptStore(test_output_dir)
        store.path_for("novel").write_text(json.dumps({
            "novel_id": "novel",
            "scripts": [{
                "chapter_number": 5,
                "chapter_title": "Old",
                "script_content": "[SCENE 1: EXT. - ROAD]\nShot: a\n\n[SCENE 2: INT. - INN]\nShot: b",
            }],
        }), encoding="utf-8")

        loaded = await store.load_existing_scripts("novel")

        assert len(loaded) == 1
        doc = loaded[0]
        assert [s.title for s in doc.scenes] == ["EXT. - ROAD", "INT. - INN"]
        assert [s.body for s in doc.scenes] == ["Shot: a", "Shot: b"]
        assert all(s.status == SceneStatus.SUCCESS for s in doc.scenes)

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_ioerror(self, test_output_dir):
        store = JsonScriptStore(test_output_dir)
        store.path_for("novel").write_text("{not json", encoding="utf-8")

        with pytest.raises(IOError, match="Failed to load scripts"):
            await store.load_existing_scripts("novel")

    @pytest.mark.asyncio
    async def test_write_failure_raises_ioerror(self, test_output_dir):
        blocker = test_output_dir / "blocker"
        blocker.write_text("file, not a directory")
        store = JsonScriptStore(blocker)

        with pytest.raises(IOError, match="Failed to save scripts"):
            await store.save_scripts("novel", [_document(1)])
