"""
Unit tests for the folder API routes.

This module tests the HTTP handlers end to end through aiohttp's test server:
response envelopes, status codes for each error family, and data consistency.
"""

import json
from contextlib import asynccontextmanager

import pytest
from aiohttp.test_utils import TestClient, TestServer

from launchpad_folders.api_routes import (
    API_PREFIX,
    create_app,
    create_error_response,
    create_success_response,
)
from launchpad_folders.core.blob_store import MemoryBlobStore
from launchpad_folders.core.storage import FolderStore
from launchpad_folders.preferences import Preferences, load_preferences


class FailingBlobStore(MemoryBlobStore):
    async def set(self, key, value):
        raise OSError("read-only file system")


@asynccontextmanager
async def api_client(store, **kwargs):
    async with TestClient(TestServer(create_app(store, **kwargs))) as client:
        yield client


def url(path):
    return f"{API_PREFIX}{path}"


class TestResponseHelpers:
    """Test the standard response envelope."""

    def test_success_response(self):
        response = create_success_response("Done", {"a": 1}, status=201)
        assert response.status == 201
        assert json.loads(response.text) == {"success": True, "message": "Done", "data": {"a": 1}, "errors": []}

    def test_error_response(self):
        response = create_error_response("Bad", ["detail"])
        assert response.status == 400
        body = json.loads(response.text)
        assert body["success"] is False
        assert body["errors"] == ["detail"]


class TestFolderEndpoints:
    """Test folder CRUD endpoints."""

    @pytest.mark.asyncio
    async def test_list_folders_sorted(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.get(url("/folders"))
            body = await resp.json()

        assert resp.status == 200
        assert [f["name"] for f in body["data"]] == ["Personal", "Projects", "Work"]

    @pytest.mark.asyncio
    async def test_list_top_level_folders_with_sort_override(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.get(url("/folders"), params={"topLevel": "1", "primary": "none"})
            body = await resp.json()

        assert [f["id"] for f in body["data"]] == ["work", "personal"]

    @pytest.mark.asyncio
    async def test_create_folder_with_urls(self, store):
        async with api_client(store) as client:
            resp = await client.post(url("/folders"), json={"name": "Reading", "urls": "x.com\n[Docs](docs.python.org)"})
            body = await resp.json()

        assert resp.status == 201
        items = body["data"]["items"]
        assert [(i["name"], i["url"]) for i in items] == [("x.com", "https://x.com"),
                                                           ("Docs", "https://docs.python.org")]

    @pytest.mark.asyncio
    async def test_create_folder_uses_default_color(self, store):
        async with api_client(store, preferences=Preferences(default_color="#00FF00")) as client:
            resp = await client.post(url("/folders"), json={"name": "Green"})
            body = await resp.json()

        assert body["data"]["color"] == "#00FF00"

    @pytest.mark.asyncio
    async def test_create_nested_folder(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.post(url("/folders"), json={"name": "Sub", "parentId": "personal"})
            child = (await resp.json())["data"]

        personal = await seeded_store.get_folder_by_id("personal")
        assert personal.nested_folder_ids() == [child["id"]]

    @pytest.mark.asyncio
    async def test_create_folder_requires_name(self, store):
        async with api_client(store) as client:
            resp = await client.post(url("/folders"), json={"name": "  "})
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, store):
        async with api_client(store) as client:
            resp = await client.post(url("/folders"), data="{oops", headers={"Content-Type": "application/json"})
            body = await resp.json()

        assert resp.status == 400
        assert body["success"] is False

    @pytest.mark.asyncio
    async def test_non_utf8_body_gets_error_envelope(self, store):
        async with api_client(store) as client:
            resp = await client.post(url("/folders"), data=b'{"name": "\xff"}',
                                     headers={"Content-Type": "application/json"})
            body = await resp.json()

        assert resp.status == 400
        assert body["success"] is False
        assert body["errors"]

    @pytest.mark.asyncio
    async def test_get_missing_folder_is_404(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.get(url("/folders/ghost"))
        assert resp.status == 404

    @pytest.mark.asyncio
    async def test_update_folder(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.put(url("/folders/personal"), json={"name": "Home", "color": ""})
            body = await resp.json()

        assert body["data"]["name"] == "Home"
        assert "color" not in body["data"]

    @pytest.mark.asyncio
    async def test_update_creating_cycle_is_400(self, seeded_store):
        items = [{"type": "folder", "name": "Work", "folderId": "work"}]
        async with api_client(seeded_store) as client:
            resp = await client.put(url("/folders/projects"), json={"items": items})
            body = await resp.json()

        assert resp.status == 400
        assert body["message"] == "Nesting not allowed"

    @pytest.mark.asyncio
    async def test_delete_folder(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.delete(url("/folders/projects"))

        assert resp.status == 200
        assert (await seeded_store.get_folder_by_id("work")).nested_folder_ids() == []

    @pytest.mark.asyncio
    async def test_storage_failure_is_500(self):
        async with api_client(FolderStore(FailingBlobStore())) as client:
            resp = await client.post(url("/folders"), json={"name": "A"})
            body = await resp.json()

        assert resp.status == 500
        assert body["message"] == "Failed to create folder"


class TestItemEndpoints:
    """Test item endpoints."""

    @pytest.mark.asyncio
    async def test_add_items_skips_duplicates_by_default(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.post(url("/folders/work/items"), json={"urls": "github.com\nnew.com"})
            body = await resp.json()

        assert resp.status == 201
        assert body["data"]["skipped"] == 1
        assert [i["url"] for i in body["data"]["added"]] == ["https://new.com"]

    @pytest.mark.asyncio
    async def test_add_items_with_duplicates_allowed(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.post(url("/folders/work/items"),
                                     json={"urls": "github.com", "allowDuplicates": True})
            body = await resp.json()

        assert body["data"]["skipped"] == 0

    @pytest.mark.asyncio
    async def test_add_application(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.post(url("/folders/personal/items"),
                                     json={"applications": ["/Applications/Notes.app"]})
            body = await resp.json()

        assert body["data"]["added"][0]["type"] == "application"

    @pytest.mark.asyncio
    async def test_sorted_items(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.get(url("/folders/work/items"), params={"primary": "recent-asc"})
            body = await resp.json()

        assert [i["id"] for i in body["data"]] == ["w1", "w2", "w3"]

    @pytest.mark.asyncio
    async def test_remove_missing_item_is_404(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.delete(url("/folders/work/items/ghost"))
        assert resp.status == 404

    @pytest.mark.asyncio
    async def test_duplicate_and_move(self, seeded_store):
        async with api_client(seeded_store) as client:
            dup = await (await client.post(url("/folders/work/items/w1/duplicate"))).json()
            resp = await client.post(url(f"/folders/work/items/{dup['data']['id']}/move"),
                                     json={"destinationId": "personal"})

        assert resp.status == 200
        personal = await seeded_store.get_folder_by_id("personal")
        assert [item.url for item in personal.items] == ["https://github.com"]

    @pytest.mark.asyncio
    async def test_move_destinations(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.get(url("/folders/work/items/w3/destinations"))
            body = await resp.json()

        assert [f["id"] for f in body["data"]] == ["personal"]

    @pytest.mark.asyncio
    async def test_record_item_access(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.post(url("/folders/work/items/w2/access"))
            body = await resp.json()

        assert body["data"]["recorded"] is True
        assert (await seeded_store.get_folder_by_id("work")).find_item("w2").last_used > 100

    @pytest.mark.asyncio
    async def test_dedupe_and_empty(self, seeded_store):
        async with api_client(seeded_store) as client:
            await client.post(url("/folders/work/items"), json={"urls": "github.com", "allowDuplicates": True})
            dedupe = await (await client.post(url("/folders/work/dedupe"))).json()
            empty = await (await client.post(url("/folders/work/empty"))).json()

        assert dedupe["data"]["removed"] == 1
        assert empty["data"]["removed"] == 3


class TestNestingAndUrlEndpoints:
    """Test nesting, candidates and URL collection."""

    @pytest.mark.asyncio
    async def test_nest_and_candidates(self, seeded_store):
        async with api_client(seeded_store) as client:
            candidates = await (await client.get(url("/folders/projects/nesting-candidates"))).json()
            resp = await client.post(url("/folders/projects/nest"), json={"childId": "personal"})
            again = await client.post(url("/folders/work/nest"), json={"childId": "personal"})

        assert [f["id"] for f in candidates["data"]] == ["personal"]
        assert resp.status == 201
        assert again.status == 400

    @pytest.mark.asyncio
    async def test_urls_markdown_and_list(self, seeded_store):
        async with api_client(seeded_store) as client:
            markdown = await (await client.get(url("/folders/work/urls"))).json()
            flat = await (await client.get(url("/folders/work/urls"), params={"format": "list"})).json()
            bad = await client.get(url("/folders/work/urls"), params={"format": "csv"})

        assert markdown["data"]["text"] == "- **Work**\n  - https://github.com\n  - **Projects**\n    - https://x.com"
        assert flat["data"]["text"] == "https://x.com\nhttps://github.com"
        assert bad.status == 400

    @pytest.mark.asyncio
    async def test_integrity_report(self, seeded_store):
        async with api_client(seeded_store) as client:
            body = await (await client.get(url("/integrity"))).json()
        assert body["data"]["isValid"] is True


class TestBackupEndpoints:
    """Test export and import endpoints."""

    @pytest.mark.asyncio
    async def test_export_folder(self, seeded_store):
        async with api_client(seeded_store) as client:
            body = await (await client.get(url("/folders/work/export"))).json()

        document = body["data"]
        assert [f["id"] for f in document["folders"]] == ["work", "projects"]
        assert document["preferences"]["sortPrimary"] == "alphabetical-asc"

    @pytest.mark.asyncio
    async def test_export_then_import_into_new_store(self, seeded_store, store):
        async with api_client(seeded_store) as client:
            document = (await (await client.get(url("/export"))).json())["data"]
        async with api_client(store) as client:
            resp = await client.post(url("/import"), json={"mode": "merge", "document": document})
            body = await resp.json()

        assert body["data"]["imported"] == 3
        assert await store.load() == await seeded_store.load()

    @pytest.mark.asyncio
    async def test_replace_requires_confirmation(self, seeded_store):
        document = {"version": 1, "folders": []}
        async with api_client(seeded_store) as client:
            body = await (await client.post(url("/import"), json={"mode": "replace", "document": document})).json()

        assert body["data"]["cancelled"] is True
        assert len(await seeded_store.load()) == 3

    @pytest.mark.asyncio
    async def test_invalid_import_is_400(self, seeded_store):
        async with api_client(seeded_store) as client:
            resp = await client.post(url("/import"), json={"document": {"version": 1}})
            body = await resp.json()

        assert resp.status == 400
        assert body["errors"]

    @pytest.mark.asyncio
    async def test_imported_preferences_saved(self, store, temp_data_dir):
        document = {"version": 1, "folders": [{"id": "a", "name": "A", "items": []}],
                    "preferences": {"folderContentsViewType": "grid"}}
        async with api_client(store, preferences_dir=str(temp_data_dir)) as client:
            await client.post(url("/import"), json={"document": document})

        assert load_preferences(str(temp_data_dir)).view_type == "grid"

    @pytest.mark.asyncio
    async def test_preferences_save_failure_keeps_import_success(self, store, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        document = {"version": 1, "folders": [{"id": "a", "name": "A", "items": []}],
                    "preferences": {"viewType": "grid"}}
        preferences = Preferences()

        async with api_client(store, preferences=preferences, preferences_dir=str(blocker / "data")) as client:
            resp = await client.post(url("/import"), json={"document": document})
            body = await resp.json()

        assert resp.status == 200
        assert body["success"] is True
        assert body["data"]["imported"] == 1
        assert body["data"]["preferencesError"]
        assert preferences.view_type == "grid"
        assert [f.id for f in await store.load()] == ["a"]
