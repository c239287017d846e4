"""Tests for the single-target destructive tools and their previews."""

import pytest

from conftest import IMMICH_URL, broken, envelope, missing, ok
from immich_mcp.tools.activities import ActivityTools, CreateActivityInput, DeleteActivityInput
from immich_mcp.tools.albums import AlbumAssetsInput, AlbumTools, CreateAlbumInput, DeleteAlbumInput
from immich_mcp.tools.people import MergePeopleInput, PeopleTools
from immich_mcp.tools.shared_links import CreateSharedLinkInput, DeleteSharedLinkInput, SharedLinkTools
from immich_mcp.tools.tags import CreateTagInput, DeleteTagInput, TagTools


class TestAlbumDelete:

    @pytest.fixture
    def tools(self, client, settings):
        return AlbumTools(client, settings)

    @pytest.mark.asyncio
    async def test_preview(self, tools, client):
        client.get_album.return_value = ok({"id": "al1", "albumName": "Italy 2024", "assetCount": 42, "shared": True})

        body = envelope(await tools.delete(DeleteAlbumInput(id="al1")))

        assert body["error"]["code"] == "CONFIRMATION_REQUIRED"
        assert body["error"]["message"].startswith("Album deletion requires confirmation.")
        assert body["error"]["details"] == {
            "album_id": "al1",
            "album_name": "Italy 2024",
            "asset_count": 42,
            "shared": True,
        }
        client.get_album.assert_awaited_once_with("al1", without_assets=True)
        client.delete_album.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_album_is_not_found_not_confirmation(self, tools, client):
        client.get_album.return_value = missing()

        body = envelope(await tools.delete(DeleteAlbumInput(id="gone")))

        assert body["error"]["code"] == "NOT_FOUND"
        client.delete_album.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirmed(self, tools, client):
        client.delete_album.return_value = ok(None, 204)

        body = envelope(await tools.delete(DeleteAlbumInput(id="al1", confirm=True)))

        assert body["result"] == {"deleted": True, "album_id": "al1"}
        client.delete_album.assert_awaited_once_with("al1")

    @pytest.mark.asyncio
    async def test_confirmed_delete_reports_upstream_failure(self, tools, client):
        client.delete_album.return_value = broken(403, "Permission denied.")

        body = envelope(await tools.delete(DeleteAlbumInput(id="al1", confirm=True)))

        assert body["error"]["code"] == "UPSTREAM_ERROR"
        assert body["error"]["details"]["status"] == 403

    @pytest.mark.asyncio
    async def test_create_shares_with_editors(self, tools, client):
        client.create_album.return_value = ok({"id": "al2"}, 201)

        await tools.create(CreateAlbumInput(album_name="Trip", asset_ids="a1,a2", shared_with_user_ids="u1"))

        client.create_album.assert_awaited_once_with(
            {"albumName": "Trip", "assetIds": ["a1", "a2"], "albumUsers": [{"userId": "u1", "role": "editor"}]}
        )

    @pytest.mark.asyncio
    async def test_add_assets_splits_outcome(self, tools, client):
        client.add_assets_to_album.return_value = ok(
            [{"id": "a1", "success": True}, {"id": "a2", "success": False, "error": "duplicate"}]
        )

        body = envelope(await tools.add_assets(AlbumAssetsInput(album_id="al1", asset_ids="a1,a2")))

        assert body["result"]["succeeded"] == ["a1"]
        assert body["result"]["failed"] == [{"id": "a2", "error": "duplicate"}]


class TestPeopleMerge:

    @pytest.fixture
    def tools(self, client, settings):
        return PeopleTools(client, settings)

    @pytest.mark.asyncio
    async def test_preview_fetches_at_most_five_sources(self, tools, client):
        client.get_person.side_effect = lambda person_id: ok({"id": person_id, "name": person_id.upper()})
        sources = ",".join(f"s{i}" for i in range(8))

        body = envelope(await tools.merge(MergePeopleInput(target_id="t", source_ids=sources)))

        details = body["error"]["details"]
        assert body["error"]["code"] == "CONFIRMATION_REQUIRED"
        assert details["target"] == {"id": "t", "name": "T"}
        assert len(details["sources"]) == 5
        assert details["source_count"] == 8
        assert client.get_person.await_count == 6
        client.merge_people.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_target(self, tools, client):
        client.get_person.return_value = missing()

        body = envelope(await tools.merge(MergePeopleInput(target_id="t", source_ids="s1")))

        assert body["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_confirmed_merges_once(self, tools, client):
        client.merge_people.return_value = ok([{"id": "s1", "success": True}, {"id": "s2", "success": True}])

        body = envelope(await tools.merge(MergePeopleInput(target_id="t", source_ids="s1,s2", confirm=True)))

        assert body["result"]["merged_count"] == 2
        client.merge_people.assert_awaited_once_with("t", ["s1", "s2"])
        client.get_person.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_target_among_sources(self, tools, client):
        body = envelope(await tools.merge(MergePeopleInput(target_id="t", source_ids="s1,t", confirm=True)))

        assert body["error"]["code"] == "VALIDATION"
        client.merge_people.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_sources(self, tools, client):
        body = envelope(await tools.merge(MergePeopleInput(target_id="t", source_ids=" ,")))

        assert body["error"]["code"] == "VALIDATION"


class TestTagDelete:

    @pytest.fixture
    def tools(self, client, settings):
        return TagTools(client, settings)

    @pytest.mark.asyncio
    async def test_preview(self, tools, client):
        client.get_tag.return_value = ok({"id": "t1", "name": "Italy", "value": "Travel/Italy"})

        body = envelope(await tools.delete(DeleteTagInput(id="t1")))

        assert body["error"]["details"] == {"tag_id": "t1", "name": "Italy", "value": "Travel/Italy"}
        client.delete_tag.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirmed(self, tools, client):
        client.delete_tag.return_value = ok(None, 204)

        body = envelope(await tools.delete(DeleteTagInput(id="t1", confirm=True)))

        assert body["result"] == {"deleted": True, "tag_id": "t1"}

    @pytest.mark.asyncio
    async def test_create_rejects_bad_color(self, tools, client):
        body = envelope(await tools.create(CreateTagInput(name="x", color="red")))

        assert body["error"]["code"] == "VALIDATION"
        client.create_tag.assert_not_awaited()


class TestSharedLinkDelete:

    @pytest.fixture
    def tools(self, client, settings):
        return SharedLinkTools(client, settings)

    @pytest.mark.asyncio
    async def test_preview(self, tools, client):
        client.get_shared_link.return_value = ok(
            {"id": "l1", "key": "k3y", "type": "ALBUM", "album": {"albumName": "Trip", "assetCount": 7}, "assets": []}
        )

        body = envelope(await tools.delete(DeleteSharedLinkInput(id="l1")))

        assert body["error"]["details"] == {
            "link_id": "l1",
            "key": "k3y",
            "type": "ALBUM",
            "album_name": "Trip",
            "asset_count": 7,
        }
        client.delete_shared_link.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirmed(self, tools, client):
        client.delete_shared_link.return_value = ok(None, 204)

        body = envelope(await tools.delete(DeleteSharedLinkInput(id="l1", confirm=True)))

        assert body["result"]["deleted"] is True

    @pytest.mark.asyncio
    async def test_create_returns_share_url(self, tools, client):
        client.create_shared_link.return_value = ok({"id": "l2", "key": "abc", "type": "INDIVIDUAL"}, 201)

        body = envelope(await tools.create(CreateSharedLinkInput(asset_ids="a1")))

        assert body["result"]["share_url"] == f"{IMMICH_URL}/share/abc"

    @pytest.mark.asyncio
    async def test_album_link_needs_album(self, tools, client):
        body = envelope(await tools.create(CreateSharedLinkInput(type="ALBUM")))

        assert body["error"]["code"] == "VALIDATION"
        client.create_shared_link.assert_not_awaited()


class TestActivityDelete:

    @pytest.fixture
    def tools(self, client, settings):
        return ActivityTools(client, settings)

    @pytest.mark.asyncio
    async def test_preview_without_album(self, tools, client):
        body = envelope(await tools.delete(DeleteActivityInput(id="ac1")))

        assert body["error"]["code"] == "CONFIRMATION_REQUIRED"
        assert body["error"]["details"] == {"activity_id": "ac1"}
        client.delete_activity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_preview_with_album_finds_activity(self, tools, client):
        comment = {"id": "ac1", "type": "comment", "comment": "Nice!"}
        client.list_activities.return_value = ok([{"id": "other", "type": "like"}, comment])

        body = envelope(await tools.delete(DeleteActivityInput(id="ac1", album_id="al1")))

        assert body["error"]["details"] == {"activity_id": "ac1", "activity": comment}

    @pytest.mark.asyncio
    async def test_preview_with_album_missing_activity(self, tools, client):
        client.list_activities.return_value = ok([])

        body = envelope(await tools.delete(DeleteActivityInput(id="ac1", album_id="al1")))

        assert body["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_confirmed(self, tools, client):
        client.delete_activity.return_value = ok(None, 204)

        body = envelope(await tools.delete(DeleteActivityInput(id="ac1", confirm=True)))

        assert body["result"] == {"deleted": True, "activity_id": "ac1"}
        client.delete_activity.assert_awaited_once_with("ac1")

    @pytest.mark.asyncio
    async def test_comment_requires_text(self, tools, client):
        body = envelope(await tools.create(CreateActivityInput(album_id="al1")))

        assert body["error"]["code"] == "VALIDATION"
        client.create_activity.assert_not_awaited()
