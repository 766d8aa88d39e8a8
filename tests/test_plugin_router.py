"""HTTP surface each plugin mounts under /api/{module}."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import DEVICE, ok


@pytest.fixture
def client(plugin):
    app = FastAPI()
    app.include_router(plugin.api_router(), prefix=f"/api/{plugin.module_name}")
    return TestClient(app)


class TestActionsRoutes:
    def test_list_actions(self, client):
        resp = client.get("/api/orfast_ndi/actions")
        assert resp.status_code == 200
        body = resp.json()
        assert body["set_channel"]["label"] == "Set NDI Channel"
        assert body["get_ndi_sources"]["options"] == []

    def test_run_action_posts_to_device(self, client, rest):
        rest.reply("POST", f"{DEVICE}/v1/OUT1", ok())
        resp = client.post("/api/orfast_ndi/actions/set_channel_and_audio",
                           json={"vo": "OUT1", "ndi": "CAM1", "audio": "mute"})
        assert resp.status_code == 200
        assert resp.json()["ok"] is True
        assert rest.calls == [("POST", f"{DEVICE}/v1/OUT1", {"ndisource": "CAM1", "mute_audio": True})]

    def test_run_action_without_body(self, client, rest):
        resp = client.post("/api/orfast_ndi/actions/get_ndi_sources")
        assert resp.status_code == 200
        assert rest.calls == [("GET", f"{DEVICE}/v1/ndi", None)]

    def test_unknown_action_is_404(self, client, rest):
        resp = client.post("/api/orfast_ndi/actions/reboot", json={})
        assert resp.status_code == 404
        assert rest.calls == []


class TestConfigRoutes:
    def test_get_config(self, client):
        body = client.get("/api/orfast_ndi/config").json()
        assert body["values"] == {"host": "10.0.0.5", "port": 4242, "polling_rate": 10000}
        assert [f["id"] for f in body["fields"]] == ["info", "host", "port", "polling_rate"]

    def test_put_config_rearms_polling(self, client, scheduler, plugin):
        resp = client.put("/api/orfast_ndi/config", json={"host": "10.0.0.6", "port": 4242, "polling_rate": 2000})
        assert resp.status_code == 200
        assert plugin.config.host == "10.0.0.6"
        assert [job.seconds for job in scheduler.jobs] == [2.0]

    def test_put_invalid_config_is_422(self, client, plugin):
        resp = client.put("/api/orfast_ndi/config", json={"host": "10.0.0.6", "port": 70000})
        assert resp.status_code == 422
        assert plugin.config.port == 4242


class TestStatusRoute:
    def test_status_reflects_failures(self, client, rest):
        client.post("/api/orfast_ndi/actions/set_audio", json={"vo": "OUT1", "audio": "mute"})
        body = client.get("/api/orfast_ndi/status").json()
        assert body["status"] == "error"
        assert body["log"][-1]["message"] == "10.0.0.5 : ECONNREFUSED: Connection refused"
