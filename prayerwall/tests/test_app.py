import os
import tempfile
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from prayerwall.app import create_app
from prayerwall.db import InMemoryDbClient, PostgresDbClient
from prayerwall.dependencies import get_db_client
from prayerwall.schemas import MAX_INT


class PrayerWallApiTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        self.client = TestClient(app)

    def _create_challenge(self, **overrides):
        body = {"title": "Lent", "prayerType": "Rosary", "totalTarget": 100}
        body.update(overrides)
        response = self.client.post("/api/admin/challenges", json=body)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_create_and_list_intentions(self):
        response = self.client.post(
            "/api/intentions", json={"content": "Test", "name": "Anon"}
        )
        self.assertEqual(response.status_code, 201)
        created = response.json()
        self.assertEqual(created["content"], "Test")
        self.assertEqual(created["name"], "Anon")
        self.assertIsNone(created["prayerType"])

        listing = self.client.get("/api/intentions").json()
        self.assertEqual(len(listing), 1)
        item = listing[0]
        self.assertEqual(item["id"], created["id"])
        self.assertEqual(item["hailMaryCount"], 0)
        self.assertEqual(item["ourFatherCount"], 0)
        self.assertEqual(item["rosaryCount"], 0)
        self.assertFalse(item["isPrinted"])
        self.assertIn("createdAt", item)

    def test_create_intention_ignores_counter_fields(self):
        response = self.client.post(
            "/api/intentions", json={"content": "Test", "hailMaryCount": 50}
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["hailMaryCount"], 0)

    def test_create_intention_requires_content(self):
        response = self.client.post("/api/intentions", json={"name": "Anon"})
        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertIn("message", payload)
        self.assertEqual(payload["field"], "content")

        response = self.client.post("/api/intentions", json={"content": ""})
        self.assertEqual(response.status_code, 400)

    def test_pray_increments_matching_counter(self):
        intention = self.client.post("/api/intentions", json={"content": "x"}).json()
        url = f"/api/intentions/{intention['id']}/pray"

        self.assertEqual(self.client.post(url, json={"type": "hailMary"}).status_code, 200)
        self.client.post(url, json={"type": "hailMary"})
        self.client.post(url, json={"type": "ourFather"})
        response = self.client.post(url, json={"type": "rosary"})

        payload = response.json()
        self.assertEqual(payload["hailMaryCount"], 2)
        self.assertEqual(payload["ourFatherCount"], 1)
        self.assertEqual(payload["rosaryCount"], 1)

    def test_pray_rejects_unknown_type(self):
        intention = self.client.post("/api/intentions", json={"content": "x"}).json()
        response = self.client.post(
            f"/api/intentions/{intention['id']}/pray", json={"type": "novena"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.get_intention(intention["id"]).hail_mary_count, 0)

    def test_pray_unknown_intention_is_404(self):
        response = self.client.post("/api/intentions/999/pray", json={"type": "hailMary"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"message": "Intention not found"})

    def test_mark_printed(self):
        intention = self.client.post("/api/intentions", json={"content": "x"}).json()
        response = self.client.post(f"/api/admin/intentions/{intention['id']}/printed")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["isPrinted"])

        missing = self.client.post("/api/admin/intentions/999/printed")
        self.assertEqual(missing.status_code, 404)

    def test_active_challenge_is_null_when_empty(self):
        response = self.client.get("/api/challenges/active")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json())

    def test_new_challenge_replaces_active_one(self):
        first = self._create_challenge(title="First")
        self.assertTrue(first["isActive"])
        self.assertEqual(first["currentCount"], 0)
        second = self._create_challenge(title="Second")

        active = self.client.get("/api/challenges/active").json()
        self.assertEqual(active["id"], second["id"])

        listing = self.client.get("/api/admin/challenges").json()
        self.assertEqual([c["id"] for c in listing], [second["id"], first["id"]])
        self.assertEqual([c["isActive"] for c in listing], [True, False])

    def test_inactive_create_keeps_current_active(self):
        first = self._create_challenge(title="First")
        draft = self._create_challenge(title="Draft", isActive=False)
        self.assertFalse(draft["isActive"])
        active = self.client.get("/api/challenges/active").json()
        self.assertEqual(active["id"], first["id"])

    def test_create_challenge_validation(self):
        response = self.client.post(
            "/api/admin/challenges",
            json={"title": "Lent", "prayerType": "Rosary", "totalTarget": 0},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "totalTarget")

        response = self.client.post(
            "/api/admin/challenges", json={"prayerType": "Rosary", "totalTarget": 5}
        )
        self.assertEqual(response.status_code, 400)

    def test_update_activation_only(self):
        first = self._create_challenge(title="First")
        second = self._create_challenge(title="Second")

        response = self.client.put(
            f"/api/admin/challenges/{first['id']}", json={"isActive": True}
        )
        self.assertEqual(response.status_code, 200)
        updated = response.json()
        self.assertTrue(updated["isActive"])
        self.assertEqual(updated["title"], "First")

        self.assertFalse(self.db.get_challenge(second["id"]).is_active)
        self.assertEqual(
            self.client.get("/api/challenges/active").json()["id"], first["id"]
        )

    def test_update_fields_and_errors(self):
        challenge = self._create_challenge()
        url = f"/api/admin/challenges/{challenge['id']}"

        response = self.client.put(url, json={"title": "Advent", "totalTarget": 500})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["title"], "Advent")
        self.assertEqual(response.json()["totalTarget"], 500)
        self.assertTrue(response.json()["isActive"])

        self.assertEqual(self.client.put(url, json={"title": None}).status_code, 400)
        self.assertEqual(self.client.put(url, json={"totalTarget": -1}).status_code, 400)
        self.assertEqual(
            self.client.put("/api/admin/challenges/999", json={"title": "x"}).status_code,
            404,
        )

    def test_delete_challenge(self):
        challenge = self._create_challenge()
        response = self.client.delete(f"/api/admin/challenges/{challenge['id']}")
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.content, b"")

        self.assertEqual(self.client.get("/api/admin/challenges").json(), [])
        self.assertIsNone(self.client.get("/api/challenges/active").json())

        again = self.client.delete(f"/api/admin/challenges/{challenge['id']}")
        self.assertEqual(again.status_code, 404)

    def test_increment_challenge(self):
        challenge = self._create_challenge()
        url = f"/api/challenges/{challenge['id']}/increment"

        response = self.client.post(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["currentCount"], 1)

        response = self.client.post(url, json={"amount": 10})
        self.assertEqual(response.json()["currentCount"], 11)

        self.assertEqual(self.client.post(url, json={"amount": 0}).status_code, 400)
        self.assertEqual(
            self.client.post("/api/challenges/999/increment").status_code, 404
        )

    @patch("prayerwall.dependencies.get_settings")
    def test_admin_token_enforced_when_configured(self, mock_settings):
        mock_settings.return_value = type("Settings", (), {"admin_token": "s3cret"})()

        self.assertEqual(self.client.get("/api/admin/challenges").status_code, 403)
        wrong = self.client.get(
            "/api/admin/challenges", headers={"X-Admin-Token": "nope"}
        )
        self.assertEqual(wrong.status_code, 403)
        ok = self.client.get(
            "/api/admin/challenges", headers={"X-Admin-Token": "s3cret"}
        )
        self.assertEqual(ok.status_code, 200)

        # Public routes stay open.
        self.assertEqual(self.client.get("/api/intentions").status_code, 200)

    def test_storage_failure_is_generic_500(self):
        failure = OperationalError(
            "SELECT * FROM intentions", {}, Exception("could not connect to db-host:5432")
        )
        with patch.object(self.db, "list_intentions", side_effect=failure):
            response = self.client.get("/api/intentions")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"message": "Internal Server Error"})
        self.assertNotIn("db-host", response.text)

    def test_error_bodies_documented_in_openapi(self):
        paths = self.client.get("/openapi.json").json()["paths"]
        pray = paths["/api/intentions/{intention_id}/pray"]["post"]["responses"]
        ref = pray["404"]["content"]["application/json"]["schema"]["$ref"]
        self.assertTrue(ref.endswith("/ErrorResponse"))
        delete = paths["/api/admin/challenges/{challenge_id}"]["delete"]["responses"]
        self.assertIn("403", delete)


class SqlBackedApiTests(unittest.TestCase):
    """Runs the API on the SQL client so column limits are exercised."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmpdir.name, "prayerwall.db")
        self.db = PostgresDbClient(f"sqlite+pysqlite:///{path}")
        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        self.client = TestClient(app)

    def tearDown(self):
        self.db.engine.dispose()
        self.tmpdir.cleanup()

    def test_oversized_increment_amount_rejected(self):
        challenge = self.db.create_challenge("Lent", "Rosary", 100)
        url = f"/api/challenges/{challenge.id}/increment"

        response = self.client.post(url, json={"amount": 2**63})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "amount")
        self.assertEqual(self.db.get_challenge(challenge.id).current_count, 0)

        response = self.client.post(url, json={"amount": MAX_INT})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["currentCount"], MAX_INT)

    def test_oversized_total_target_rejected(self):
        response = self.client.post(
            "/api/admin/challenges",
            json={"title": "Lent", "prayerType": "Rosary", "totalTarget": 2**63},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "totalTarget")
        self.assertEqual(self.db.list_challenges(), [])

        challenge = self.db.create_challenge("Lent", "Rosary", 100)
        response = self.client.put(
            f"/api/admin/challenges/{challenge.id}",
            json={"totalTarget": MAX_INT + 1},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.get_challenge(challenge.id).total_target, 100)


if __name__ == "__main__":
    unittest.main()
