import csv
import io
import unittest

from fastapi.testclient import TestClient

from cestas.app import create_app
from cestas.auth import create_user
from cestas.cache import InMemoryQueryCache
from cestas.constants import UserRole
from cestas.db import InMemoryDbClient
from cestas.dependencies import get_cache_client, get_db_client, get_storage_client
from cestas.storage import InMemoryStorageClient


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        self.db = get_db_client()
        if isinstance(self.db, InMemoryDbClient):
            self.db.reset()
        cache = get_cache_client()
        if isinstance(cache, InMemoryQueryCache):
            cache.reset()
        storage = get_storage_client()
        if isinstance(storage, InMemoryStorageClient):
            storage.reset()

        self.institution = self.db.create_institution(
            name="Centro Social Esperança",
            address="Rua da Esperança, 100",
            phone="(11) 91234-5678",
            inventory={"baskets": 5},
        )
        self.other_institution = self.db.create_institution(
            name="Associação Comunitária Unidos",
            address="Av. Solidariedade, 200",
            phone="(11) 91234-5679",
            inventory={"baskets": 40},
        )
        create_user(
            self.db,
            email="admin@example.org",
            name="Admin",
            password="admin-pass",
            role=UserRole.ADMIN,
        )
        create_user(
            self.db,
            email="staff@example.org",
            name="Staff",
            password="staff-pass",
            institution_id=self.institution.institution_id,
        )
        self.admin_headers = self._login("admin@example.org", "admin-pass")
        self.staff_headers = self._login("staff@example.org", "staff-pass")

    def _login(self, email, password):
        response = self.client.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        self.assertEqual(response.status_code, 200)
        return {"Authorization": f"Bearer {response.json()['token']}"}

    def _create_family(self, name="Família Santos", phone="(11) 98765-4321"):
        response = self.client.post(
            "/api/families",
            json={
                "name": name,
                "address": "Rua das Palmeiras, 123",
                "phone": phone,
                "members": 4,
                "income": 1200.0,
            },
            headers=self.staff_headers,
        )
        self.assertEqual(response.status_code, 201)
        return response.json()

    def _deliver(self, family_id, basket_count=1, headers=None, **extra):
        return self.client.post(
            "/api/deliveries",
            json={"family_id": family_id, "basket_count": basket_count, **extra},
            headers=headers or self.staff_headers,
        )


class AuthApiTests(BackendApiTests):
    def test_login_rejects_wrong_password(self):
        response = self.client.post(
            "/api/auth/login",
            json={"email": "admin@example.org", "password": "nope"},
        )
        self.assertEqual(response.status_code, 401)

    def test_requests_without_token_are_rejected(self):
        self.assertEqual(self.client.get("/api/families").status_code, 401)
        response = self.client.get(
            "/api/families", headers={"Authorization": "Bearer bogus"}
        )
        self.assertEqual(response.status_code, 401)

    def test_me_includes_institution(self):
        response = self.client.get("/api/auth/me", headers=self.staff_headers)
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["email"], "staff@example.org")
        self.assertEqual(payload["role"], "normal")
        self.assertEqual(payload["institution"]["id"], self.institution.institution_id)

    def test_logout_invalidates_token(self):
        response = self.client.post("/api/auth/logout", headers=self.staff_headers)
        self.assertEqual(response.status_code, 200)
        response = self.client.get("/api/auth/me", headers=self.staff_headers)
        self.assertEqual(response.status_code, 401)

    def test_admin_creates_user(self):
        response = self.client.post(
            "/api/users",
            json={
                "email": "novo@example.org",
                "name": "Novo",
                "password": "secret1",
                "institution_id": self.other_institution.institution_id,
            },
            headers=self.admin_headers,
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(
            response.json()["institution"]["name"], "Associação Comunitária Unidos"
        )
        self._login("novo@example.org", "secret1")

    def test_create_user_errors(self):
        duplicate = self.client.post(
            "/api/users",
            json={
                "email": "STAFF@example.org",
                "name": "Dup",
                "password": "secret1",
                "institution_id": self.institution.institution_id,
            },
            headers=self.admin_headers,
        )
        self.assertEqual(duplicate.status_code, 409)

        missing_institution = self.client.post(
            "/api/users",
            json={"email": "x@example.org", "name": "X", "password": "secret1"},
            headers=self.admin_headers,
        )
        self.assertEqual(missing_institution.status_code, 400)

        unknown_institution = self.client.post(
            "/api/users",
            json={
                "email": "y@example.org",
                "name": "Y",
                "password": "secret1",
                "institution_id": "missing",
            },
            headers=self.admin_headers,
        )
        self.assertEqual(unknown_institution.status_code, 404)

    def test_normal_user_cannot_create_users(self):
        response = self.client.post(
            "/api/users",
            json={"email": "z@example.org", "name": "Z", "password": "secret1"},
            headers=self.staff_headers,
        )
        self.assertEqual(response.status_code, 403)


class FamilyApiTests(BackendApiTests):
    def test_list_filters_by_status_and_search(self):
        santos = self._create_family()
        self._create_family(name="Família Rodrigues", phone="(11) 98765-4322")
        self.assertEqual(self._deliver(santos["id"]).status_code, 201)

        response = self.client.get(
            "/api/families", params={"status": "active"}, headers=self.staff_headers
        )
        names = [f["name"] for f in response.json()["families"]]
        self.assertEqual(names, ["Família Rodrigues"])

        response = self.client.get(
            "/api/families", params={"status": "blocked"}, headers=self.staff_headers
        )
        names = [f["name"] for f in response.json()["families"]]
        self.assertEqual(names, ["Família Santos"])

        response = self.client.get(
            "/api/families", params={"search": "4322"}, headers=self.staff_headers
        )
        names = [f["name"] for f in response.json()["families"]]
        self.assertEqual(names, ["Família Rodrigues"])

        response = self.client.get(
            "/api/families", params={"search": "SANTOS"}, headers=self.staff_headers
        )
        self.assertEqual(len(response.json()["families"]), 1)

    def test_create_family_validates_input(self):
        response = self.client.post(
            "/api/families",
            json={"name": "X", "address": "Y", "phone": "1", "members": 0},
            headers=self.staff_headers,
        )
        self.assertEqual(response.status_code, 422)

    def test_update_family(self):
        family = self._create_family()
        response = self.client.put(
            f"/api/families/{family['id']}",
            json={"members": 6},
            headers=self.staff_headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["members"], 6)
        self.assertEqual(response.json()["name"], "Família Santos")

        missing = self.client.put(
            "/api/families/missing", json={"members": 2}, headers=self.staff_headers
        )
        self.assertEqual(missing.status_code, 404)

    def test_unblock_is_admin_only(self):
        family = self._create_family()
        self._deliver(family["id"])

        response = self.client.post(
            f"/api/families/{family['id']}/unblock", headers=self.staff_headers
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.post(
            f"/api/families/{family['id']}/unblock", headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "active")
        self.assertIsNone(response.json()["blocked_until"])

    def test_family_delivery_history(self):
        family = self._create_family()
        self._deliver(family["id"], basket_count=2)
        response = self.client.get(
            f"/api/families/{family['id']}/deliveries", headers=self.staff_headers
        )
        self.assertEqual(response.status_code, 200)
        deliveries = response.json()["deliveries"]
        self.assertEqual(len(deliveries), 1)
        self.assertEqual(deliveries[0]["items"]["baskets"], 2)

    def test_release_expired_is_admin_only(self):
        response = self.client.post(
            "/api/families/release-expired", headers=self.staff_headers
        )
        self.assertEqual(response.status_code, 403)
        response = self.client.post(
            "/api/families/release-expired", headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["released"], 0)


class DeliveryApiTests(BackendApiTests):
    def test_delivery_blocks_family_and_updates_stock(self):
        family = self._create_family()
        response = self._deliver(
            family["id"],
            basket_count=2,
            other_items="Leite (2L), Arroz (5kg)",
            block_period_days=45,
        )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["family"]["status"], "blocked")
        self.assertIsNotNone(payload["family"]["blocked_until"])
        self.assertEqual(payload["institution"]["inventory"]["baskets"], 3)
        self.assertEqual(
            payload["delivery"]["items"]["others"], ["Leite (2L)", "Arroz (5kg)"]
        )

        institutions = self.client.get(
            "/api/institutions", headers=self.staff_headers
        ).json()["institutions"]
        self.assertEqual(institutions[0]["inventory"]["baskets"], 3)

    def test_blocked_family_is_rejected(self):
        family = self._create_family()
        self.assertEqual(self._deliver(family["id"]).status_code, 201)
        response = self._deliver(family["id"])
        self.assertEqual(response.status_code, 409)
        self.assertIn("blocked", response.json()["detail"])

    def test_insufficient_stock_is_rejected(self):
        family = self._create_family()
        response = self._deliver(family["id"], basket_count=6)
        self.assertEqual(response.status_code, 409)

    def test_invalid_block_period_is_rejected(self):
        family = self._create_family()
        response = self._deliver(family["id"], block_period_days=7)
        self.assertEqual(response.status_code, 409)

    def test_normal_user_cannot_deliver_for_other_institution(self):
        family = self._create_family()
        response = self._deliver(
            family["id"], institution_id=self.other_institution.institution_id
        )
        self.assertEqual(response.status_code, 403)

    def test_admin_delivers_for_named_institution(self):
        family = self._create_family()
        response = self._deliver(
            family["id"],
            headers=self.admin_headers,
            institution_id=self.other_institution.institution_id,
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["institution"]["inventory"]["baskets"], 39)

    def test_deliveries_are_scoped_by_role(self):
        santos = self._create_family()
        rodrigues = self._create_family(name="Família Rodrigues", phone="2")
        self._deliver(santos["id"])
        self._deliver(
            rodrigues["id"],
            headers=self.admin_headers,
            institution_id=self.other_institution.institution_id,
        )

        staff_view = self.client.get("/api/deliveries", headers=self.staff_headers)
        self.assertEqual(len(staff_view.json()["deliveries"]), 1)
        admin_view = self.client.get("/api/deliveries", headers=self.admin_headers)
        self.assertEqual(len(admin_view.json()["deliveries"]), 2)

        forbidden = self.client.get(
            "/api/deliveries",
            params={"institution_id": self.other_institution.institution_id},
            headers=self.staff_headers,
        )
        self.assertEqual(forbidden.status_code, 403)


class InstitutionApiTests(BackendApiTests):
    def test_normal_user_sees_only_own_institution(self):
        response = self.client.get("/api/institutions", headers=self.staff_headers)
        ids = [i["id"] for i in response.json()["institutions"]]
        self.assertEqual(ids, [self.institution.institution_id])

        response = self.client.get(
            f"/api/institutions/{self.other_institution.institution_id}",
            headers=self.staff_headers,
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.get("/api/institutions", headers=self.admin_headers)
        self.assertEqual(len(response.json()["institutions"]), 2)

    def test_create_institution_is_admin_only(self):
        body = {"name": "Nova", "address": "Rua C", "phone": "3", "baskets": 10}
        response = self.client.post(
            "/api/institutions", json=body, headers=self.staff_headers
        )
        self.assertEqual(response.status_code, 403)
        response = self.client.post(
            "/api/institutions", json=body, headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["inventory"], {"baskets": 10})

    def test_add_inventory_item(self):
        response = self.client.post(
            f"/api/institutions/{self.institution.institution_id}/inventory",
            json={"item": "Leite", "quantity": 12},
            headers=self.staff_headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["inventory"]["leite"], 12)

        response = self.client.post(
            f"/api/institutions/{self.other_institution.institution_id}/inventory",
            json={"item": "Leite", "quantity": 1},
            headers=self.staff_headers,
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.post(
            f"/api/institutions/{self.institution.institution_id}/inventory",
            json={"item": "Leite", "quantity": 0},
            headers=self.staff_headers,
        )
        self.assertEqual(response.status_code, 422)

    def test_update_institution(self):
        response = self.client.put(
            f"/api/institutions/{self.institution.institution_id}",
            json={"phone": "(11) 0000-0000"},
            headers=self.admin_headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["phone"], "(11) 0000-0000")
        self.assertEqual(response.json()["inventory"]["baskets"], 5)


class DashboardAndReportApiTests(BackendApiTests):
    def test_dashboard_counts(self):
        santos = self._create_family()
        self._create_family(name="Família Rodrigues", phone="2")
        self._deliver(santos["id"], basket_count=2)

        admin = self.client.get("/api/dashboard", headers=self.admin_headers).json()
        self.assertEqual(admin["deliveries"], 1)
        self.assertEqual(admin["institutions"], 2)
        self.assertEqual(admin["active_families"], 1)
        self.assertEqual(admin["blocked_families"], 1)
        self.assertEqual(admin["monthly_baskets"][0]["baskets"], 2)
        self.assertEqual(len(admin["recent_deliveries"]), 1)

        staff = self.client.get("/api/dashboard", headers=self.staff_headers).json()
        self.assertEqual(staff["institutions"], 1)
        self.assertEqual(staff["active_families"], 0)
        self.assertEqual(staff["blocked_families"], 1)

    def test_report_summary(self):
        family = self._create_family()
        self._deliver(family["id"], basket_count=2)
        response = self.client.get("/api/reports/summary", headers=self.admin_headers)
        payload = response.json()
        self.assertEqual(payload["blocked_families"], 1)
        self.assertEqual(payload["total_baskets"], 43)
        self.assertEqual(payload["deliveries_this_month"], 1)

    def test_families_csv_export(self):
        self._create_family(name='Família "Silva", Jr.')
        response = self.client.get(
            "/api/reports/families.csv", headers=self.staff_headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        self.assertIn("familias_", response.headers["content-disposition"])
        rows = list(csv.reader(io.StringIO(response.text)))
        self.assertEqual(rows[0][1], "Nome")
        self.assertEqual(rows[1][1], 'Família "Silva", Jr.')
        self.assertEqual(rows[1][6], "Ativa")

    def test_unknown_report_kind(self):
        response = self.client.get(
            "/api/reports/unknown.csv", headers=self.staff_headers
        )
        self.assertEqual(response.status_code, 422)

    def test_archive_report_uploads_to_storage(self):
        family = self._create_family()
        self._deliver(family["id"])
        response = self.client.post(
            "/api/reports/deliveries/archive", headers=self.staff_headers
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(
            payload["path"].startswith(f"reports/{self.institution.institution_id}/")
        )
        self.assertIn(payload["path"], payload["url"])

        storage = get_storage_client()
        if isinstance(storage, InMemoryStorageClient):
            content = storage.get_bytes(payload["path"]).decode("utf-8")
            self.assertIn("Família Santos", content)


class SeedApiTests(BackendApiTests):
    def test_seed_is_admin_only_and_idempotent(self):
        response = self.client.post("/api/seed-demo-data", headers=self.staff_headers)
        self.assertEqual(response.status_code, 403)

        response = self.client.post("/api/seed-demo-data", headers=self.admin_headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["families_created"], 3)
        # Both mock institutions already exist in the fixture.
        self.assertEqual(response.json()["institutions_created"], 0)

        response = self.client.post("/api/seed-demo-data", headers=self.admin_headers)
        self.assertEqual(response.json()["families_created"], 0)
        self.assertEqual(response.json()["institutions_created"], 0)


if __name__ == "__main__":
    unittest.main()
