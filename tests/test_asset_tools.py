"""Tests for the asset tools, with the Immich client mocked."""

import base64

import pytest

from conftest import IMMICH_URL, broken, envelope, missing, ok
from immich_mcp.tools.assets import (
    AssetIdInput,
    AssetTools,
    BulkUpdateAssetsInput,
    DeleteAssetsInput,
    ListAssetsInput,
    UpdateAssetInput,
    UploadAssetInput,
    UploadFromPathInput,
)


@pytest.fixture
def tools(client, settings):
    return AssetTools(client, settings)


def asset(asset_id, name="IMG_0001.jpg"):
    return {
        "id": asset_id,
        "type": "IMAGE",
        "originalFileName": name,
        "fileCreatedAt": "2025-01-15T10:00:00.000Z",
        "isFavorite": False,
        "isArchived": False,
        "isTrashed": False,
        "thumbhash": "abc",
        "exifInfo": {"make": "Canon", "model": "EOS R5"},
    }


class TestReads:

    @pytest.mark.asyncio
    async def test_list_returns_summaries(self, tools, client):
        client.list_assets.return_value = ok([asset("a1"), asset("a2")])

        body = envelope(await tools.list_assets(ListAssetsInput(size=5000, is_favorite=True)))

        assert body["ok"] is True
        assert [item["id"] for item in body["result"]] == ["a1", "a2"]
        assert "exifInfo" not in body["result"][0]
        assert body["meta"]["immich_base_url"] == IMMICH_URL
        assert client.list_assets.await_args.kwargs["size"] == 1000
        assert client.list_assets.await_args.kwargs["is_favorite"] is True

    @pytest.mark.asyncio
    async def test_list_rejects_bad_date(self, tools, client):
        body = envelope(await tools.list_assets(ListAssetsInput(updated_after="yesterday-ish")))

        assert body["error"]["code"] == "VALIDATION"
        client.list_assets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_missing_asset(self, tools, client):
        client.get_asset.return_value = missing()

        body = envelope(await tools.get_asset(AssetIdInput(id="nope")))

        assert body["ok"] is False
        assert body["error"]["code"] == "NOT_FOUND"
        assert body["error"]["message"] == "Asset with ID nope not found"

    @pytest.mark.asyncio
    async def test_get_upstream_failure_carries_status(self, tools, client):
        client.get_asset.return_value = broken(500)

        body = envelope(await tools.get_asset(AssetIdInput(id="a1")))

        assert body["error"]["code"] == "UPSTREAM_ERROR"
        assert body["error"]["details"]["status"] == 500

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_upstream_error(self, tools, client):
        client.get_asset.side_effect = KeyError("boom")

        body = envelope(await tools.get_asset(AssetIdInput(id="a1")))

        assert body["ok"] is False
        assert body["error"]["code"] == "UPSTREAM_ERROR"
        assert "KeyError" in body["error"]["message"]

    @pytest.mark.asyncio
    async def test_blank_id_is_validation_error(self, tools, client):
        body = envelope(await tools.get_asset(AssetIdInput(id="   ")))

        assert body["error"]["code"] == "VALIDATION"
        client.get_asset.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exif(self, tools, client):
        client.get_asset.return_value = ok(asset("a1"))

        body = envelope(await tools.get_exif(AssetIdInput(id="a1")))

        assert body["result"] == {"asset_id": "a1", "exif": {"make": "Canon", "model": "EOS R5"}}

    @pytest.mark.asyncio
    async def test_exif_missing(self, tools, client):
        client.get_asset.return_value = ok({"id": "a1"})

        body = envelope(await tools.get_exif(AssetIdInput(id="a1")))

        assert body["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_download_urls(self, tools, client):
        client.get_asset.return_value = ok(asset("a1", "beach.jpg"))

        original = envelope(await tools.download_original(AssetIdInput(id="a1")))
        thumbnail = envelope(await tools.download_thumbnail(AssetIdInput(id="a1")))

        assert original["result"]["download_url"] == f"{IMMICH_URL}/api/assets/a1/original"
        assert original["result"]["original_file_name"] == "beach.jpg"
        assert thumbnail["result"]["preview_url"].endswith("/thumbnail?size=preview")


class TestUploads:

    @pytest.mark.asyncio
    async def test_base64_upload(self, tools, client):
        client.upload_asset.return_value = ok({"id": "new-1", "status": "created"}, 201)
        content = base64.b64encode(b"jpeg-bytes").decode()

        body = envelope(await tools.upload(UploadAssetInput(file_content=content, file_name="a.jpg")))

        assert body["result"] == {
            "asset_id": "new-1",
            "status": "created",
            "duplicate": False,
            "original_file_name": "a.jpg",
        }
        client.upload_asset.assert_awaited_once_with(b"jpeg-bytes", "a.jpg", favorite=None, archived=None)

    @pytest.mark.asyncio
    async def test_invalid_base64(self, tools, client):
        body = envelope(await tools.upload(UploadAssetInput(file_content="not base64!!", file_name="a.jpg")))

        assert body["error"]["code"] == "VALIDATION"
        client.upload_asset.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upload_from_missing_path(self, tools, client, tmp_path):
        body = envelope(await tools.upload_from_path(UploadFromPathInput(file_path=str(tmp_path / "x.jpg"))))

        assert body["error"]["code"] == "VALIDATION"
        client.upload_asset_from_path.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upload_from_path(self, tools, client, tmp_path):
        photo = tmp_path / "beach.jpg"
        photo.write_bytes(b"jpeg")
        client.upload_asset_from_path.return_value = ok({"id": "new-2", "status": "duplicate"})

        body = envelope(await tools.upload_from_path(UploadFromPathInput(file_path=str(photo), is_favorite=True)))

        assert body["result"]["duplicate"] is True
        client.upload_asset_from_path.assert_awaited_once_with(photo, favorite=True, archived=None)


class TestUpdates:

    @pytest.mark.asyncio
    async def test_update_sends_only_given_fields(self, tools, client):
        client.update_asset.return_value = ok(asset("a1"))

        await tools.update(UpdateAssetInput(id="a1", is_favorite=True, rating=4))

        client.update_asset.assert_awaited_once_with("a1", {"isFavorite": True, "rating": 4})

    @pytest.mark.asyncio
    async def test_update_without_changes(self, tools, client):
        body = envelope(await tools.update(UpdateAssetInput(id="a1")))

        assert body["error"]["code"] == "VALIDATION"
        client.update_asset.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_rating_out_of_range(self, tools, client):
        body = envelope(await tools.update(UpdateAssetInput(id="a1", rating=9)))

        assert body["error"]["code"] == "VALIDATION"


class TestBulkUpdate:

    @pytest.mark.asyncio
    async def test_defaults_only_preview(self, tools, client):
        body = envelope(await tools.bulk_update(BulkUpdateAssetsInput(ids="1,2,3")))

        assert body["ok"] is True
        assert body["result"]["executed"] is False
        assert body["result"]["affected_ids"] == ["1", "2", "3"]
        assert body["meta"]["warnings"]
        assert "dry_run=false" in body["meta"]["warnings"][0]
        client.bulk_update_assets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirm_alone_still_previews(self, tools, client):
        body = envelope(await tools.bulk_update(BulkUpdateAssetsInput(ids="1", is_favorite=True, confirm=True)))

        assert body["result"]["executed"] is False
        client.bulk_update_assets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_approved_executes_once(self, tools, client):
        client.bulk_update_assets.return_value = ok(None, 204)

        body = envelope(
            await tools.bulk_update(
                BulkUpdateAssetsInput(ids="1, 2", is_favorite=True, dry_run=False, confirm=True)
            )
        )

        assert body["result"] == {"affected_ids": ["1", "2"], "warnings": [], "executed": True}
        assert "warnings" not in body["meta"]
        client.bulk_update_assets.assert_awaited_once_with(["1", "2"], {"isFavorite": True})

    @pytest.mark.asyncio
    async def test_no_ids(self, tools, client):
        body = envelope(await tools.bulk_update(BulkUpdateAssetsInput(ids=" , ", dry_run=False, confirm=True)))

        assert body["error"]["code"] == "VALIDATION"
        client.bulk_update_assets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_approved_without_changes(self, tools, client):
        body = envelope(await tools.bulk_update(BulkUpdateAssetsInput(ids="1", dry_run=False, confirm=True)))

        assert body["error"]["code"] == "VALIDATION"
        client.bulk_update_assets.assert_not_awaited()


class TestDelete:

    @pytest.mark.asyncio
    async def test_unconfirmed_returns_preview(self, tools, client):
        client.get_asset.side_effect = [ok(asset("a1", "one.jpg")), missing(), ok(asset("a3", "three.jpg"))]

        body = envelope(await tools.delete(DeleteAssetsInput(ids="a1,a2,a3")))

        assert body["ok"] is False
        assert body["error"]["code"] == "CONFIRMATION_REQUIRED"
        assert "confirm=true" in body["error"]["message"]
        details = body["error"]["details"]
        assert details["asset_count"] == 3
        assert [entry["originalFileName"] for entry in details["preview"]] == ["one.jpg", "three.jpg"]
        client.delete_assets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_preview_is_capped(self, tools, client):
        client.get_asset.return_value = ok(asset("x"))
        ids = ",".join(f"a{i}" for i in range(15))

        body = envelope(await tools.delete(DeleteAssetsInput(ids=ids)))

        assert len(body["error"]["details"]["preview"]) == 10
        assert body["error"]["details"]["asset_count"] == 15
        assert client.get_asset.await_count == 10

    @pytest.mark.asyncio
    async def test_nothing_found(self, tools, client):
        client.get_asset.return_value = missing()

        body = envelope(await tools.delete(DeleteAssetsInput(ids="a1,a2")))

        assert body["error"]["code"] == "NOT_FOUND"
        client.delete_assets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirmed_deletes_once(self, tools, client):
        client.delete_assets.return_value = ok(None, 204)

        body = envelope(await tools.delete(DeleteAssetsInput(ids="a1,a2", force=True, confirm=True)))

        assert body["result"] == {"deleted": True, "asset_count": 2, "asset_ids": ["a1", "a2"], "force": True}
        client.delete_assets.assert_awaited_once_with(["a1", "a2"], force=True)
        client.get_asset.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explicit_dry_run_holds_confirmed_delete(self, tools, client):
        client.get_asset.return_value = ok(asset("a1"))

        body = envelope(await tools.delete(DeleteAssetsInput(ids="a1", confirm=True, dry_run=True)))

        assert body["error"]["code"] == "CONFIRMATION_REQUIRED"
        client.delete_assets.assert_not_awaited()


@pytest.mark.asyncio
async def test_statistics(tools, client):
    client.get_asset_statistics.return_value = ok({"images": 10, "videos": 2, "total": 12})

    body = envelope(await tools.statistics())

    assert body["result"]["total"] == 12
