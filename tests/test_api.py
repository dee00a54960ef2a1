"""
HTTP tests for the FastAPI gateway.

The app runs its lifespan inside TestClient, so tables are created and the
reaper is started and stopped exactly as in production.
"""

import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from chatroom.database import build_engine
from chatroom.main import create_app

from support import make_settings


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        db_engine = build_engine(f"sqlite+aiosqlite:///{Path(self._tmp.name) / 'api.db'}")
        self.app = create_app(make_settings(), db_engine=db_engine)
        self.client = TestClient(self.app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        self._tmp.cleanup()

    def register(self, name):
        return self.client.post("/participants", json={"name": name})

    def send(self, user, to, text, type="message"):
        return self.client.post(
            "/messages",
            json={"to": to, "text": text, "type": type},
            headers={"User": user},
        )


class TestParticipantsApi(ApiTestCase):

    def test_register_and_list(self):
        response = self.register("Ana")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["name"], "Ana")
        self.assertIn("lastStatus", response.json())

        listed = self.client.get("/participants").json()
        self.assertEqual([p["name"] for p in listed], ["Ana"])

    def test_duplicate_is_conflict(self):
        self.register("Ana")
        self.assertEqual(self.register("Ana").status_code, 409)

    def test_invalid_names(self):
        self.assertEqual(self.register("<b></b>").status_code, 422)
        self.assertEqual(self.register("Todos").status_code, 422)
        self.assertEqual(self.client.post("/participants", json={}).status_code, 422)

    def test_heartbeat(self):
        self.register("Ana")
        self.assertEqual(self.client.post("/status", headers={"User": "Ana"}).status_code, 200)
        self.assertEqual(self.client.post("/status", headers={"User": "Bia"}).status_code, 404)
        self.assertEqual(self.client.post("/status").status_code, 422)

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})


class TestMessagesApi(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.register("Ana")
        self.register("Bia")

    def test_send_and_list_with_limit(self):
        response = self.send("Ana", "Todos", "oi galera")
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["from"], "Ana")
        self.assertEqual(body["to"], "Todos")
        self.assertEqual(body["type"], "message")

        self.send("Ana", "Bia", "psiu", "private_message")

        messages = self.client.get("/messages", headers={"User": "Bia"}).json()
        self.assertEqual(
            [(m["from"], m["text"]) for m in messages],
            [
                ("Ana", "entra na sala..."),
                ("Bia", "entra na sala..."),
                ("Ana", "oi galera"),
                ("Ana", "psiu"),
            ],
        )

        last = self.client.get("/messages?limit=1", headers={"User": "Bia"}).json()
        self.assertEqual([m["text"] for m in last], ["psiu"])

    def test_send_rejections(self):
        self.assertEqual(self.send("Ghost", "Todos", "oi").status_code, 422)
        self.assertEqual(self.send("Ana", "Todos", "oi", "status").status_code, 422)
        self.assertEqual(self.send("Ana", "Todos", "<p></p>").status_code, 422)
        self.assertEqual(
            self.client.post("/messages", json={"to": "Todos", "text": "oi", "type": "message"}).status_code,
            422,
        )

    def test_invalid_limit(self):
        for query in ("limit=0", "limit=-1", "limit=abc"):
            response = self.client.get(f"/messages?{query}", headers={"User": "Ana"})
            self.assertEqual(response.status_code, 422, query)

    def test_utf8_identity_header(self):
        self.register("José")
        response = self.send("José".encode("utf-8"), "Todos", "olá")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["from"], "José")

    def test_update_and_delete_ownership(self):
        msg_id = self.send("Ana", "Todos", "oi").json()["id"]
        payload = {"to": "Bia", "text": "editado", "type": "private_message"}

        response = self.client.put(f"/messages/{msg_id}", json=payload, headers={"User": "Bia"})
        self.assertEqual(response.status_code, 401)
        response = self.client.put("/messages/9999", json=payload, headers={"User": "Ana"})
        self.assertEqual(response.status_code, 404)

        response = self.client.put(f"/messages/{msg_id}", json=payload, headers={"User": "Ana"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["text"], "editado")

        self.assertEqual(
            self.client.delete(f"/messages/{msg_id}", headers={"User": "Bia"}).status_code, 401
        )
        self.assertEqual(
            self.client.delete(f"/messages/{msg_id}", headers={"User": "Ana"}).status_code, 200
        )
        self.assertEqual(
            self.client.delete(f"/messages/{msg_id}", headers={"User": "Ana"}).status_code, 404
        )


if __name__ == "__main__":
    unittest.main()
