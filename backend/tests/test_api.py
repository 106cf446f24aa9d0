"""Integration tests for the HTTP API."""

import re

import pytest
from httpx import ASGITransport, AsyncClient

from sitedeploy.api.deps import get_deploy_service, get_preview_proxy
from sitedeploy.config import get_settings
from sitedeploy.main import app
from sitedeploy.services.deploy import DeployService
from sitedeploy.services.preview import PreviewProxy
from sitedeploy.services.signing import URLSigner

from helpers import SITE_FILES, FakeStorage, storage_backend


async def _deploy(client: AsyncClient, site_dir, name: str = "Acme", **extra):
    payload = {"source_dir": str(site_dir), "logical_name": name, "target": "qiniu", **extra}
    return await client.post("/api/v1/deployments", json=payload)


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_reports_flags_only(self, client: AsyncClient):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["qiniu"] == {
            "access_key": True,
            "secret_key": True,
            "bucket": True,
            "domain": False,
            "configured": True,
        }
        assert data["github"]["configured"] is False
        assert "test-sk" not in response.text


class TestDeployEndpoint:
    @pytest.mark.asyncio
    async def test_deploy_then_preview(self, client: AsyncClient, site_dir):
        response = await _deploy(client, site_dir)

        assert response.status_code == 200
        data = response.json()
        result = data["qiniu"]
        assert re.fullmatch(r"Acme-[0-9a-f]{8}", result["dir_name"])
        assert result["uploaded_count"] == 3
        assert result["failed_count"] == 0
        assert data["is_existing"] is False
        assert data["record"]["storage_prefix"] == result["dir_name"]
        assert data["record"]["preview_url"] == f"http://testserver/preview/{result['dir_name']}/"

        preview = await client.get(f"/preview/{result['dir_name']}/index.html")
        assert preview.status_code == 200
        assert preview.headers["content-type"].startswith("text/html")
        assert preview.content == SITE_FILES["index.html"].encode("utf-8")

        css = await client.get(f"/preview/{result['dir_name']}/css/style.css")
        assert css.headers["content-type"].startswith("text/css")
        assert css.text == SITE_FILES["css/style.css"]

        directory = await client.get(f"/preview/{result['dir_name']}/")
        assert directory.content == preview.content

    @pytest.mark.asyncio
    async def test_existing_deploy_is_returned_without_upload(self, client: AsyncClient, storage: FakeStorage, site_dir):
        first = (await _deploy(client, site_dir)).json()
        uploads = len(storage.put_order)

        second = (await _deploy(client, site_dir)).json()

        assert second["is_existing"] is True
        assert second["record"]["id"] == first["record"]["id"]
        assert len(storage.put_order) == uploads

    @pytest.mark.asyncio
    async def test_forced_redeploy_refreshes_record(self, client: AsyncClient, storage: FakeStorage, site_dir):
        first = (await _deploy(client, site_dir)).json()

        second = (await _deploy(client, site_dir, force_redeploy=True)).json()

        assert second["is_existing"] is False
        assert second["record"]["id"] == first["record"]["id"]
        assert second["qiniu"]["dir_name"] == first["qiniu"]["dir_name"]
        assert len(storage.put_order) == 6
        history = (await client.get("/api/v1/history")).json()
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_partial_failure_still_succeeds(self, client: AsyncClient, storage: FakeStorage, deploy_service, site_dir):
        prefix = deploy_service.resolve_prefix("Acme")
        storage.fail_keys.add(f"{prefix}/js/main.js")

        data = (await _deploy(client, site_dir)).json()

        assert data["qiniu"]["success"] is True
        assert data["qiniu"]["uploaded_count"] == 2
        assert data["qiniu"]["failed_count"] == 1
        assert data["record"]["failed_count"] == 1

    @pytest.mark.asyncio
    async def test_all_failed_is_an_error(self, client: AsyncClient, storage: FakeStorage, deploy_service, site_dir):
        prefix = deploy_service.resolve_prefix("Acme")
        storage.fail_keys.update(f"{prefix}/{p}" for p in SITE_FILES)

        response = await _deploy(client, site_dir)

        assert response.status_code == 502
        assert set(response.json()["errors"]) == set(SITE_FILES)
        assert (await client.get("/api/v1/history")).json() == []

    @pytest.mark.asyncio
    async def test_missing_source_dir(self, client: AsyncClient, tmp_path):
        response = await _deploy(client, tmp_path / "nope")
        assert response.status_code == 400
        assert (await client.get("/api/v1/history")).json() == []

    @pytest.mark.asyncio
    async def test_missing_configuration(self, client: AsyncClient, unconfigured_settings, site_dir):
        app.dependency_overrides[get_deploy_service] = lambda: DeployService(
            unconfigured_settings, storage=FakeStorage()
        )

        response = await _deploy(client, site_dir)

        assert response.status_code == 500
        assert "QINIU_ACCESS_KEY" in response.json()["missing"]

    @pytest.mark.asyncio
    async def test_no_target_records_only(self, client: AsyncClient, storage: FakeStorage, site_dir):
        response = await client.post(
            "/api/v1/deployments",
            json={"source_dir": str(site_dir), "logical_name": "Acme", "metadata": {"business": "widgets"}},
        )

        data = response.json()
        assert data["record"]["target"] == "none"
        assert data["record"]["storage_prefix"] is None
        assert data["record"]["metadata"] == {"business": "widgets"}
        assert storage.put_order == []

    @pytest.mark.asyncio
    async def test_github_target_without_token(self, client: AsyncClient, site_dir):
        response = await client.post(
            "/api/v1/deployments",
            json={"source_dir": str(site_dir), "logical_name": "Acme", "target": "github"},
        )
        assert response.status_code == 500
        assert response.json()["missing"] == ["GITHUB_TOKEN", "GITHUB_USERNAME"]

    @pytest.mark.asyncio
    async def test_teardown_endpoint(self, client: AsyncClient, storage: FakeStorage, site_dir):
        prefix = (await _deploy(client, site_dir)).json()["qiniu"]["dir_name"]

        response = await client.delete(f"/api/v1/deployments/{prefix}")

        assert response.json() == {"deleted_count": 3, "total_count": 3}
        assert storage.objects == {}


class TestPreviewEndpoint:
    @pytest.mark.asyncio
    async def test_missing_object_is_404(self, client: AsyncClient):
        response = await client.get("/preview/Acme-00000000/index.html")
        assert response.status_code == 404
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_rejected_signature_shows_attempted_url(self, client: AsyncClient, settings, signer, storage):
        storage.objects["Acme-00000000/index.html"] = b"<h1>hi</h1>"
        wrong_signer = URLSigner("test-ak", "wrong-sk", settings.qiniu_default_domain)
        app.dependency_overrides[get_preview_proxy] = lambda: PreviewProxy(
            settings, signer=wrong_signer, transport=storage_backend(signer, storage)
        )

        response = await client.get("/preview/Acme-00000000/")

        assert response.status_code == 401
        assert response.json()["attempted_url"].startswith("http://sites.z0.qiniucs.com/Acme-00000000/index.html?e=")


class TestHistoryEndpoints:
    @pytest.mark.asyncio
    async def test_list_get_update(self, client: AsyncClient, site_dir):
        record_id = (await _deploy(client, site_dir)).json()["record"]["id"]

        listed = (await client.get("/api/v1/history")).json()
        assert [r["id"] for r in listed] == [record_id]

        fetched = await client.get(f"/api/v1/history/{record_id}")
        assert fetched.status_code == 200

        patched = await client.patch(f"/api/v1/history/{record_id}", json={"metadata": {"note": "hi"}})
        assert patched.status_code == 200
        assert patched.json()["metadata"] == {"note": "hi"}

    @pytest.mark.asyncio
    async def test_unknown_id(self, client: AsyncClient):
        assert (await client.get("/api/v1/history/missing")).status_code == 404
        assert (await client.patch("/api/v1/history/missing", json={"public_url": "x"})).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_tears_down_storage(self, client: AsyncClient, storage: FakeStorage, site_dir):
        record_id = (await _deploy(client, site_dir)).json()["record"]["id"]

        response = await client.delete(f"/api/v1/history/{record_id}")

        assert response.status_code == 200
        assert response.json()["deleted"] is True
        assert response.json()["teardown"] == {"deleted_count": 3, "total_count": 3}
        assert storage.objects == {}
        assert (await client.get("/api/v1/history")).json() == []

    @pytest.mark.asyncio
    async def test_delete_survives_teardown_failure(self, client: AsyncClient, storage: FakeStorage, site_dir):
        from sitedeploy.core.exceptions import UpstreamError

        record_id = (await _deploy(client, site_dir)).json()["record"]["id"]
        storage.list_error = UpstreamError("listing failed")

        response = await client.delete(f"/api/v1/history/{record_id}")

        assert response.status_code == 200
        assert response.json()["teardown"] is None
        assert (await client.get("/api/v1/history")).json() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_twice(self, client: AsyncClient):
        for _ in range(2):
            response = await client.delete("/api/v1/history/missing")
            assert response.status_code == 200
            assert response.json()["deleted"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["metadata", "logical_name"])
    async def test_null_update_rejected(self, client: AsyncClient, site_dir, field):
        response = await client.post(
            "/api/v1/deployments",
            json={"source_dir": str(site_dir), "logical_name": "Acme", "metadata": {"business": "widgets"}},
        )
        record = response.json()["record"]

        patched = await client.patch(f"/api/v1/history/{record['id']}", json={field: None})

        assert patched.status_code == 422
        stored = (await client.get(f"/api/v1/history/{record['id']}")).json()
        assert stored["metadata"] == {"business": "widgets"}
        assert stored["logical_name"] == "Acme"


class TestServerFaults:
    @pytest.mark.asyncio
    async def test_history_write_failure_is_a_server_error(self, settings, tmp_path, site_dir):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        settings.history_file = str(blocker / "history.json")
        app.dependency_overrides[get_settings] = lambda: settings

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        try:
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                response = await ac.post(
                    "/api/v1/deployments",
                    json={"source_dir": str(site_dir), "logical_name": "Acme"},
                )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert "Site directory" not in response.text
