"""
Integration tests for the FastAPI application.
Uses httpx.AsyncClient with the ASGI transport (no running server needed).
Fixtures are provided by tests/conftest.py.
"""

from __future__ import annotations

import asyncio

from lumin.api.app import VERSION, create_app


async def _wait_for_daily_total(client, expected: int) -> dict:
    # statistics writes go through the executor
    body = {}
    for _ in range(50):
        body = (await client.get("/statistics/daily")).json()
        if body["total_breaks"] == expected:
            break
        await asyncio.sleep(0.02)
    return body


class TestHealth:
    async def test_health_ok(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["app"] == "lumin"
        assert body["version"] == VERSION
        assert body["enabled"] is True


class TestStateEndpoint:
    async def test_state_returns_valid_schema(self, client):
        r = await client.get("/state")
        assert r.status_code == 200
        body = r.json()
        assert body["enabled"] is True
        assert body["on_break"] is False
        assert body["current_break"] is None
        assert set(body["next_breaks"]) == {"regular", "micro", "water"}
        assert body["next_custom_breaks"] == []

    async def test_next_breaks_follow_default_intervals(self, client):
        body = (await client.get("/state")).json()
        now = body["timestamp"]
        nb = body["next_breaks"]
        assert 1190 < nb["regular"] - now <= 1200
        assert 290 < nb["micro"] - now <= 300
        assert 1790 < nb["water"] - now <= 1800


class TestBreaksEndpoint:
    async def test_start_break_now(self, client):
        r = await client.post("/breaks/start")
        assert r.status_code == 200
        assert r.json() == {"status": "started", "on_break": True}

        body = (await client.get("/state")).json()
        assert body["on_break"] is True
        current = body["current_break"]
        assert current["kind"] == "regular"
        assert current["title"] == "Look away from the screen"
        assert current["duration"] == 20
        assert current["countdown"] in ("00:20", "00:19")

    async def test_second_start_is_ignored(self, client):
        await client.post("/breaks/start")
        r = await client.post("/breaks/start")
        assert r.json()["status"] == "ignored"

    async def test_skip_current_break(self, client):
        await client.post("/breaks/start")
        r = await client.post("/breaks/current/skip")
        assert r.status_code == 200
        assert r.json() == {"status": "skipped", "on_break": False}
        assert (await client.get("/state")).json()["current_break"] is None

        body = await _wait_for_daily_total(client, 1)
        assert body["total_breaks"] == 1
        assert body["completed_breaks"] == 0

    async def test_skip_without_break_returns_404(self, client):
        r = await client.post("/breaks/current/skip")
        assert r.status_code == 404

    async def test_skip_next_reschedules_regular(self, client):
        before = (await client.get("/state")).json()["next_breaks"]
        await asyncio.sleep(0.01)
        r = await client.post("/breaks/skip-next")
        assert r.json()["status"] == "rescheduled"
        after = (await client.get("/state")).json()["next_breaks"]
        assert after["regular"] > before["regular"]
        assert after["water"] == before["water"]

    async def test_disable_and_enable(self, client):
        r = await client.put("/breaks/enabled", json={"enabled": False})
        assert r.json() == {"enabled": False}
        state = (await client.get("/state")).json()
        assert all(v is None for v in state["next_breaks"].values())
        assert (await client.post("/breaks/start")).json()["status"] == "ignored"

        await client.put("/breaks/enabled", json={"enabled": True})
        state = (await client.get("/state")).json()
        assert all(v is not None for v in state["next_breaks"].values())

    async def test_disable_dismisses_current_break(self, client):
        await client.post("/breaks/start")
        await client.put("/breaks/enabled", json={"enabled": False})
        state = (await client.get("/state")).json()
        assert state["on_break"] is False
        assert (await client.post("/breaks/current/skip")).status_code == 404


class TestCustomBreaksEndpoint:
    async def test_create_and_list(self, client):
        r = await client.post("/custom-breaks", json={
            "name": "Stretch", "icon": "figure", "interval": 600, "duration": 30,
        })
        assert r.status_code == 201
        saved = r.json()
        assert saved["adjusted"] is False
        assert saved["custom_break"]["name"] == "Stretch"
        assert saved["custom_break"]["next_fire_at"] is not None

        listed = (await client.get("/custom-breaks")).json()
        assert [b["id"] for b in listed] == [saved["custom_break"]["id"]]

        state = (await client.get("/state")).json()
        assert [b["name"] for b in state["next_custom_breaks"]] == ["Stretch"]

    async def test_create_clamps_and_flags(self, client):
        r = await client.post("/custom-breaks", json={
            "name": "Blink", "interval": 10, "duration": 7200,
        })
        saved = r.json()
        assert saved["adjusted"] is True
        assert saved["custom_break"]["interval"] == 60
        assert saved["custom_break"]["duration"] == 3600
        assert saved["custom_break"]["icon"] == "star"

    async def test_create_rejects_empty_name(self, client):
        r = await client.post("/custom-breaks", json={"name": "", "interval": 600, "duration": 30})
        assert r.status_code == 422

    async def test_create_rejects_non_finite_interval(self, client):
        r = await client.post(
            "/custom-breaks",
            content='{"name": "Stretch", "interval": NaN, "duration": 30}',
            headers={"content-type": "application/json"},
        )
        assert r.status_code == 422
        assert (await client.get("/custom-breaks")).json() == []

    async def test_update(self, client):
        created = (await client.post("/custom-breaks", json={
            "name": "Stretch", "interval": 600, "duration": 30,
        })).json()["custom_break"]
        r = await client.put(f"/custom-breaks/{created['id']}", json={
            "name": "Walk", "interval": 900, "duration": 60, "enabled": False,
        })
        assert r.status_code == 200
        updated = r.json()["custom_break"]
        assert updated["name"] == "Walk"
        assert updated["enabled"] is False
        assert updated["next_fire_at"] is None

    async def test_update_unknown_returns_404(self, client):
        r = await client.put(
            "/custom-breaks/00000000-0000-0000-0000-000000000000",
            json={"name": "Walk", "interval": 900, "duration": 60},
        )
        assert r.status_code == 404

    async def test_delete(self, client):
        created = (await client.post("/custom-breaks", json={
            "name": "Stretch", "interval": 600, "duration": 30,
        })).json()["custom_break"]
        r = await client.delete(f"/custom-breaks/{created['id']}")
        assert r.status_code == 200
        assert (await client.get("/custom-breaks")).json() == []
        r = await client.delete(f"/custom-breaks/{created['id']}")
        assert r.status_code == 404


class TestStatisticsEndpoint:
    async def test_daily_empty(self, client):
        r = await client.get("/statistics/daily")
        assert r.status_code == 200
        body = r.json()
        assert body["total_breaks"] == 0
        assert body["completion_rate"] == 0.0

    async def test_daily_for_given_day(self, client):
        r = await client.get("/statistics/daily", params={"day": "2026-01-05"})
        assert r.json()["date"] == "2026-01-05"

    async def test_weekly_has_seven_days(self, client):
        r = await client.get("/statistics/weekly", params={"ending": "2026-01-07"})
        days = r.json()
        assert len(days) == 7
        assert days[0]["date"] == "2026-01-01"
        assert days[-1]["date"] == "2026-01-07"

    async def test_summary(self, client):
        await client.post("/custom-breaks", json={"name": "Stretch", "interval": 600, "duration": 30})
        r = await client.get("/statistics/summary")
        assert r.status_code == 200
        body = r.json()
        assert body["taken_by_kind"] == {
            "regular": 0, "micro": 0, "water": 0, "custom:Stretch": 0,
        }
        assert body["most_active_day"] is None

    async def test_reset(self, client):
        await client.post("/breaks/start")
        await client.post("/breaks/current/skip")
        await _wait_for_daily_total(client, 1)
        r = await client.delete("/statistics")
        assert r.json() == {"status": "reset"}
        assert (await client.get("/statistics/daily")).json()["total_breaks"] == 0


class TestStateWebSocket:
    def test_pushes_snapshot_on_break_start(self, tmp_path):
        from fastapi.testclient import TestClient

        with TestClient(create_app(data_dir=tmp_path)) as tc:
            with tc.websocket_connect("/state/ws") as ws:
                assert ws.receive_json()["on_break"] is False
                assert tc.post("/breaks/start").json()["status"] == "started"
                for _ in range(5):
                    if ws.receive_json()["on_break"]:
                        break
                else:
                    raise AssertionError("no on_break snapshot pushed")
