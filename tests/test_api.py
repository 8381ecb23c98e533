import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_application
from domains.core import reset_service_registry


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.app_dir = Path(self._tmp.name)
        reset_service_registry()
        app = create_application(Settings(APP_DIR=self.app_dir, LOG_LEVEL="WARNING"))
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        reset_service_registry()
        self._tmp.cleanup()

    def create(self, title="Note", content="") -> dict:
        response = self.client.post("/api/v1/notes", json={"title": title, "content": content})
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]


class TestNotesApi(ApiTestCase):
    def test_health(self):
        self.assertEqual(self.client.get("/health").json()["status"], "healthy")

    def test_create_get_update_list(self):
        note = self.create("Groceries", "milk")
        self.assertEqual(note["width"], 320)

        fetched = self.client.get(f"/api/v1/notes/{note['id']}").json()["data"]
        self.assertEqual(fetched["title"], "Groceries")

        response = self.client.patch(
            f"/api/v1/notes/{note['id']}", json={"content": "milk, eggs", "position_x": 20}
        )
        self.assertEqual(response.status_code, 200)
        updated = response.json()["data"]
        self.assertEqual(updated["content"], "milk, eggs")
        self.assertEqual(updated["title"], "Groceries")
        self.assertEqual(updated["position_x"], 20)

        listed = self.client.get("/api/v1/notes").json()["data"]
        self.assertEqual([n["id"] for n in listed], [note["id"]])

    def test_empty_title_becomes_untitled(self):
        self.assertEqual(self.create("   ")["title"], "Untitled")

    def test_missing_note_is_404_with_code(self):
        response = self.client.get("/api/v1/notes/does-not-exist")
        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["code"], "NOT_FOUND")

    def test_invalid_updates_are_400(self):
        note = self.create()
        for payload in ({"color": "red"}, {"width": "wide"}, {"is_pinned": "yes"}, {"title": 5}):
            with self.subTest(payload=payload):
                response = self.client.patch(f"/api/v1/notes/{note['id']}", json=payload)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

    def test_oversized_content_is_400(self):
        response = self.client.post("/api/v1/notes", json={"title": "big", "content": "x" * 1_000_001})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

    def test_hide_pin_and_unhide_all(self):
        a = self.create("a")
        b = self.create("b")

        hidden = self.client.post(f"/api/v1/notes/{a['id']}/toggle-hidden").json()["data"]
        self.assertEqual(hidden, {"is_hidden": True})
        visible = self.client.get("/api/v1/notes").json()["data"]
        self.assertEqual([n["id"] for n in visible], [b["id"]])
        everything = self.client.get("/api/v1/notes", params={"include_hidden": True}).json()["data"]
        self.assertEqual(len(everything), 2)

        pinned = self.client.post(f"/api/v1/notes/{b['id']}/toggle-pinned").json()["data"]
        self.assertEqual(pinned, {"is_pinned": True})

        count = self.client.post("/api/v1/notes/unhide-all").json()["data"]["count"]
        self.assertEqual(count, 1)

    def test_search(self):
        self.create("Meeting", "")
        self.create("Todo", "remember the meeting room")
        hits = self.client.get("/api/v1/notes/search", params={"q": "MEETING"}).json()["data"]

        self.assertEqual([h["note"]["title"] for h in hits], ["Meeting", "Todo"])
        self.assertEqual(hits[0]["match_context"], "")
        self.assertIn("meeting", hits[1]["match_context"])

    def test_stats(self):
        self.create()
        stats = self.client.get("/api/v1/notes/stats").json()["data"]
        self.assertEqual(stats["active"], 1)
        self.assertEqual(stats["root"], str((self.app_dir / "data").resolve()))


class TestTrashApi(ApiTestCase):
    def test_delete_restore_purge(self):
        note = self.create("temporary")

        self.assertEqual(self.client.delete(f"/api/v1/notes/{note['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/v1/notes/{note['id']}").status_code, 404)
        trash = self.client.get("/api/v1/trash").json()["data"]
        self.assertEqual([n["id"] for n in trash], [note["id"]])
        self.assertIsNotNone(trash[0]["deleted_at"])

        restored = self.client.post(f"/api/v1/trash/{note['id']}/restore").json()["data"]
        self.assertIsNone(restored["deleted_at"])

        self.client.delete(f"/api/v1/notes/{note['id']}")
        self.assertEqual(self.client.delete(f"/api/v1/trash/{note['id']}").status_code, 200)
        self.assertEqual(self.client.get("/api/v1/trash").json()["data"], [])
        self.assertEqual(self.client.delete(f"/api/v1/trash/{note['id']}").status_code, 404)


class TestSettingsApi(ApiTestCase):
    def test_get_save_reset(self):
        body = self.client.get("/api/v1/settings").json()["data"]
        self.assertEqual(body["config"]["auto_save_interval"], 30)

        response = self.client.put("/api/v1/settings", json={"font_size": 20})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["config"]["font_size"], 20)

        response = self.client.put("/api/v1/settings", json={"font_size": "huge"})
        self.assertEqual(response.status_code, 400)

        reset = self.client.delete("/api/v1/settings").json()["data"]
        self.assertEqual(reset["config"]["font_size"], 16)

    def test_changing_data_path_switches_store(self):
        note = self.create("stays in old root")
        new_root = self.app_dir / "relocated"

        body = self.client.put("/api/v1/settings", json={"data_path": str(new_root)}).json()["data"]
        self.assertEqual(body["data_dir"], str(new_root))
        self.assertEqual(self.client.get("/api/v1/notes").json()["data"], [])

        self.client.put("/api/v1/settings", json={"data_path": "./data"})
        listed = self.client.get("/api/v1/notes").json()["data"]
        self.assertEqual([n["id"] for n in listed], [note["id"]])


class TestNotesWebSocket(ApiTestCase):
    def test_streams_change_events(self):
        with self.client.websocket_connect("/api/v1/ws/notes") as ws:
            hello = ws.receive_json()
            self.assertEqual(hello["type"], "connected")

            note = self.create("pushed")
            event = ws.receive_json()
            self.assertEqual(event["type"], "note_changed")
            self.assertEqual(event["note_id"], note["id"])
            self.assertEqual(event["action"], "created")
            self.assertTrue(event["reload_list"])

    def test_backlog_overflow_resyncs_and_keeps_streaming(self):
        notes = [self.create(f"n{i}") for i in range(3)]
        for note in notes:
            self.client.post(f"/api/v1/notes/{note['id']}/toggle-hidden")

        with self.client.websocket_connect("/api/v1/ws/notes") as ws:
            ws.receive_json()
            with mock.patch("domains.note_hub.services.events.MAX_PENDING_EVENTS", 1):
                response = self.client.post("/api/v1/notes/unhide-all")
            self.assertEqual(response.json()["data"]["count"], 3)

            resync = ws.receive_json()
            self.assertEqual(resync["type"], "notes_invalidated")
            self.assertTrue(resync["reload_list"])
            self.assertNotIn("root", resync)

            note = self.create("after resync")
            event = ws.receive_json()
            self.assertEqual((event["type"], event["note_id"]), ("note_changed", note["id"]))

    def test_draft_autosave(self):
        note = self.create("draft", "v0")
        with self.client.websocket_connect("/api/v1/ws/notes") as ws:
            ws.receive_json()

            ws.send_json({"type": "draft", "note_id": note["id"], "title": "draft", "content": "v1"})
            self.assertEqual(ws.receive_json()["type"], "draft_accepted")

            ws.send_json({"type": "close_draft"})
            messages = {}
            for _ in range(2):
                message = ws.receive_json()
                messages[message["type"]] = message
            self.assertTrue(messages["draft_closed"]["saved"])
            self.assertEqual(messages["note_changed"]["action"], "updated")

        fetched = self.client.get(f"/api/v1/notes/{note['id']}").json()["data"]
        self.assertEqual(fetched["content"], "v1")

    def test_bad_messages_get_error_replies(self):
        with self.client.websocket_connect("/api/v1/ws/notes") as ws:
            ws.receive_json()
            ws.send_json({"type": "draft", "note_id": 1})
            self.assertEqual(ws.receive_json()["code"], "VALIDATION_ERROR")
            ws.send_json({"type": "launch"})
            self.assertEqual(ws.receive_json()["type"], "error")
            ws.send_json({"type": "ping"})
            self.assertEqual(ws.receive_json()["type"], "pong")


if __name__ == "__main__":
    unittest.main(verbosity=2)
