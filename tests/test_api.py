import unittest

from app import create_app
from config import TestConfig
from models import db
from models.audit_log import AuditLog
from tests.support import FakeClock

PASSWORD = "correct-horse-9"


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.app = create_app(TestConfig, clock=self.clock)
        self.ctx = self.app.app_context()
        self.ctx.push()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def register(self, client, email, name="Asha", registration_number="KA01AB1234", admin=False):
        payload = {
            "name": name,
            "email": email,
            "password": PASSWORD,
            "registrationNumber": registration_number,
            "phoneNumber": "9876543210",
        }
        if admin:
            payload["adminCode"] = TestConfig.ADMIN_SIGNUP_CODE
        return client.post("/auth/register", json=payload)

    def login(self, email, **register_kwargs):
        client = self.app.test_client()
        self.assertEqual(self.register(client, email, **register_kwargs).status_code, 201)
        resp = client.post("/auth/login", json={"email": email, "password": PASSWORD})
        self.assertEqual(resp.status_code, 200)
        return client

    @staticmethod
    def csrf(client):
        return {"X-CSRF-Token": client.get_cookie("csrf_token").value}

    def post(self, client, path, json=None):
        return client.post(path, json=json or {}, headers=self.csrf(client))

    def book(self, client, slot_id, hours, vehicle="KA01AB1234"):
        return self.post(client, "/slots/book",
                         {"slotId": slot_id, "hours": hours, "registrationNumber": vehicle})


class AuthApiTest(ApiTestCase):

    def test_register_login_me(self):
        client = self.login("asha@example.com")

        resp = client.get("/auth/me")

        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["email"], "asha@example.com")
        self.assertEqual(body["registrationNumber"], "KA01AB1234")
        self.assertEqual(body["roles"], ["USER"])

    def test_duplicate_email(self):
        client = self.app.test_client()
        self.register(client, "asha@example.com")

        self.assertEqual(self.register(client, "asha@example.com").status_code, 409)

    def test_wrong_password(self):
        client = self.app.test_client()
        self.register(client, "asha@example.com")

        resp = client.post("/auth/login", json={"email": "asha@example.com", "password": "nope-nope"})

        self.assertEqual(resp.status_code, 401)
        self.assertEqual(AuditLog.query.filter_by(action="LOGIN_FAIL").count(), 1)

    def test_logout_revokes_session(self):
        client = self.login("asha@example.com")

        self.assertEqual(self.post(client, "/auth/logout").status_code, 200)
        self.assertEqual(client.get("/auth/me").status_code, 401)

    def test_profile_update(self):
        client = self.login("asha@example.com")

        resp = client.put("/auth/profile", json={"registrationNumber": "mh02xy9999"},
                          headers=self.csrf(client))

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["user"]["registrationNumber"], "MH02XY9999")


class SlotsApiTest(ApiTestCase):

    def test_slot_listing_is_public(self):
        resp = self.app.test_client().get("/slots")

        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["total"], 10)
        self.assertEqual(body["available"], 10)
        self.assertEqual([s["id"] for s in body["slots"]], list(range(1, 11)))
        self.assertFalse(body["slots"][0]["booked"])

    def test_rates(self):
        body = self.app.test_client().get("/rates").get_json()

        self.assertEqual(body["currency"], "INR")
        self.assertEqual(body["rates"], [
            {"hours": 1, "amount": 50},
            {"hours": 2, "amount": 100},
            {"hours": 3, "amount": 150},
        ])

    def test_booking_requires_login(self):
        resp = self.app.test_client().post(
            "/slots/book", json={"slotId": 1, "hours": 1, "registrationNumber": "KA01AB1234"})

        self.assertEqual(resp.status_code, 401)

    def test_booking_requires_csrf_header(self):
        client = self.login("asha@example.com")

        resp = client.post("/slots/book", json={"slotId": 1, "hours": 1, "registrationNumber": "X1"})

        self.assertEqual(resp.status_code, 403)
        self.assertFalse(self.app.test_client().get("/slots").get_json()["slots"][0]["booked"])

    def test_book_slot(self):
        client = self.login("asha@example.com")

        resp = self.book(client, 3, 2, vehicle="ka01ab1234")

        self.assertEqual(resp.status_code, 201)
        booking = resp.get_json()["booking"]
        self.assertEqual(booking["slot"], 3)
        self.assertEqual(booking["amount"], 100)
        self.assertEqual(booking["status"], "active")
        self.assertEqual(booking["registrationNumber"], "KA01AB1234")

        slot = client.get("/slots").get_json()["slots"][2]
        self.assertTrue(slot["booked"])
        self.assertEqual(slot["registrationNumber"], "KA01AB1234")
        self.assertEqual(AuditLog.query.filter_by(action="BOOKING_CREATE").count(), 1)

    def test_book_rejects_bad_duration_and_taken_slot(self):
        asha = self.login("asha@example.com")
        ravi = self.login("ravi@example.com", name="Ravi")

        self.assertEqual(self.book(asha, 3, 5).status_code, 400)
        self.assertEqual(self.book(asha, 3, 1).status_code, 201)

        resp = self.book(ravi, 3, 1, vehicle="MH02XY9999")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("error", resp.get_json())

    def test_book_unknown_slot(self):
        client = self.login("asha@example.com")

        self.assertEqual(self.book(client, 99, 1).status_code, 404)

    def test_book_rejects_numbers_the_store_cannot_hold(self):
        client = self.login("asha@example.com")

        for slot_id in ("\u00b2", 10 ** 30, str(10 ** 30), -(10 ** 30)):
            resp = self.post(client, "/slots/book",
                             {"slotId": slot_id, "hours": 1, "registrationNumber": "KA01AB1234"})
            self.assertEqual(resp.status_code, 400, slot_id)

        resp = self.post(client, "/slots/book",
                         {"slotId": 1, "hours": "\u00b3", "registrationNumber": "KA01AB1234"})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(client.get("/slots").get_json()["slots"][0]["booked"])

    def test_book_missing_fields(self):
        client = self.login("asha@example.com")

        self.assertEqual(self.post(client, "/slots/book", {"slotId": 1}).status_code, 400)

    def test_locations_sorted_by_distance(self):
        client = self.app.test_client()
        asha = self.login("asha@example.com")
        self.book(asha, 5, 1)

        body = client.get("/locations?lat=28.6129&lng=77.2295").get_json()

        self.assertEqual(len(body), 10)
        self.assertEqual(body[0]["slotNumber"], 5)
        self.assertEqual(body[0]["distance"], 0.0)
        self.assertFalse(body[0]["available"])
        distances = [loc["distance"] for loc in body]
        self.assertEqual(distances, sorted(distances))

    def test_health(self):
        body = self.app.test_client().get("/health").get_json()

        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["store"], "sql")
        self.assertFalse(body["sweeper_running"])


class BookingsApiTest(ApiTestCase):

    def test_cancel_then_cancel_again(self):
        client = self.login("asha@example.com")
        self.book(client, 4, 1)

        resp = self.post(client, "/bookings/cancel", {"slotNumber": 4})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["booking"]["status"], "cancelled")
        self.assertEqual(resp.get_json()["booking"]["refundStatus"], "pending")

        self.assertEqual(self.post(client, "/bookings/cancel", {"slotNumber": 4}).status_code, 404)
        self.assertFalse(client.get("/slots").get_json()["slots"][3]["booked"])

    def test_cannot_cancel_other_users_booking(self):
        asha = self.login("asha@example.com")
        ravi = self.login("ravi@example.com", name="Ravi")
        self.book(asha, 4, 1)

        self.assertEqual(self.post(ravi, "/bookings/cancel", {"slotNumber": 4}).status_code, 404)

    def test_cancel_with_out_of_range_slot(self):
        client = self.login("asha@example.com")

        self.assertEqual(self.post(client, "/bookings/cancel", {"slotNumber": 10 ** 30}).status_code, 400)
        self.assertEqual(self.post(client, "/bookings/cancel", {"slotNumber": "\u00b2"}).status_code, 400)

    def test_my_bookings_and_history(self):
        client = self.login("asha@example.com")
        self.book(client, 1, 1)
        self.clock.advance(minutes=1)
        self.book(client, 2, 3)
        self.post(client, "/bookings/cancel", {"slotNumber": 1})

        active = client.get("/bookings/me").get_json()
        history = client.get("/history").get_json()

        self.assertEqual([b["slot"] for b in active], [2])
        self.assertEqual([(b["slot"], b["status"]) for b in history], [(2, "active"), (1, "cancelled")])

    def test_expired_hold_shows_in_history(self):
        client = self.login("asha@example.com")
        self.book(client, 6, 1)
        self.clock.advance(hours=1, minutes=1)

        with self.app.app_context():
            self.assertEqual(self.app.extensions["expiry_sweeper"].run_once(), 1)

        self.assertEqual(client.get("/bookings/me").get_json(), [])
        self.assertEqual(client.get("/history").get_json()[0]["status"], "expired")
        self.assertFalse(client.get("/slots").get_json()["slots"][5]["booked"])


class PaymentApiTest(ApiTestCase):

    def test_payment_books_slot_at_table_price(self):
        client = self.login("asha@example.com")

        resp = self.post(client, "/payment", {"slotNumber": 7, "duration": 2, "amount": 1})

        self.assertEqual(resp.status_code, 201)
        body = resp.get_json()
        self.assertEqual(body["booking"]["amount"], 100)
        self.assertEqual(body["booking"]["paymentStatus"], "completed")
        self.assertEqual(body["booking"]["id"], body["bookingId"])

    def test_payment_for_taken_slot_is_voided(self):
        asha = self.login("asha@example.com")
        ravi = self.login("ravi@example.com", name="Ravi", registration_number="MH02XY9999")
        self.book(asha, 7, 1)

        resp = self.post(ravi, "/payment", {"slotNumber": 7, "duration": 1})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(AuditLog.query.filter_by(action="PAYMENT_VOIDED").count(), 1)

    def test_payment_needs_registration_number(self):
        client = self.login("asha@example.com", registration_number=None)

        resp = self.post(client, "/payment", {"slotNumber": 7, "duration": 1})

        self.assertEqual(resp.status_code, 400)

    def test_payment_with_out_of_range_numbers(self):
        client = self.login("asha@example.com")

        self.assertEqual(self.post(client, "/payment", {"slotNumber": 10 ** 30, "duration": 1}).status_code, 400)
        self.assertEqual(self.post(client, "/payment", {"slotNumber": 7, "duration": 10 ** 30}).status_code, 400)

    def test_payment_invalid_duration(self):
        client = self.login("asha@example.com")

        self.assertEqual(self.post(client, "/payment", {"slotNumber": 7, "duration": 4}).status_code, 400)


class AdminApiTest(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.admin = self.login("admin@example.com", name="Admin", admin=True)
        self.user = self.login("asha@example.com")

    def test_admin_routes_need_admin_role(self):
        self.assertEqual(self.user.get("/admin/stats").status_code, 403)
        self.assertEqual(self.post(self.user, "/admin/release-slot/1").status_code, 403)
        self.assertEqual(self.app.test_client().get("/admin/stats").status_code, 401)

    def test_stats(self):
        self.book(self.user, 1, 1)
        self.book(self.user, 2, 3)
        self.book(self.user, 3, 2)
        self.post(self.user, "/bookings/cancel", {"slotNumber": 3})

        body = self.admin.get("/admin/stats").get_json()

        stats = body["stats"]
        self.assertEqual(stats["totalUsers"], 2)
        self.assertEqual(stats["totalRevenue"], 200)
        self.assertEqual(stats["activeBookings"], 2)
        self.assertEqual(stats["availableSlots"], 8)
        self.assertEqual(stats["occupancyRate"], 20.0)
        self.assertEqual(stats["pendingRefunds"], 1)
        self.assertEqual(len(body["bookings"]), 3)
        self.assertEqual(len(body["users"]), 2)

    def test_release_slot(self):
        self.book(self.user, 8, 2)

        resp = self.post(self.admin, "/admin/release-slot/8")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["booking"]["status"], "released")
        self.assertFalse(self.admin.get("/slots").get_json()["slots"][7]["booked"])
        self.assertEqual(self.post(self.admin, "/admin/release-slot/8").get_json()["booking"], None)
        self.assertEqual(self.post(self.admin, "/admin/release-slot/42").status_code, 404)

    def test_approve_refund(self):
        booking_id = self.book(self.user, 2, 3).get_json()["booking"]["id"]
        self.post(self.user, "/bookings/cancel", {"slotNumber": 2})

        cancellations = self.admin.get("/admin/cancellations").get_json()
        self.assertEqual(cancellations[0]["id"], booking_id)
        self.assertEqual(cancellations[0]["refundStatus"], "pending")

        resp = self.post(self.admin, "/admin/approve-refund",
                         {"refundId": booking_id, "amount": 120, "userName": "Asha"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["booking"]["refundStatus"], "approved")
        self.assertEqual(resp.get_json()["booking"]["refundAmount"], 120)

        self.assertEqual(self.post(self.admin, "/admin/approve-refund", {"refundId": 999}).status_code, 404)

    def test_admin_inputs_out_of_range(self):
        self.assertEqual(self.post(self.admin, f"/admin/release-slot/{10 ** 30}").status_code, 404)
        self.assertEqual(
            self.post(self.admin, "/admin/approve-refund", {"refundId": 10 ** 30}).status_code, 400)

        booking_id = self.book(self.user, 2, 1).get_json()["booking"]["id"]
        resp = self.post(self.admin, "/admin/approve-refund", {"refundId": booking_id, "amount": 10 ** 30})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.admin.get(f"/admin/audit-logs?user_id={10 ** 30}").status_code, 200)

    def test_booking_listing_filter(self):
        self.book(self.user, 1, 1)
        self.book(self.user, 2, 1)
        self.post(self.user, "/bookings/cancel", {"slotNumber": 1})

        active = self.admin.get("/admin/bookings?status=active").get_json()
        self.assertEqual([b["slotNumber"] for b in active], [2])
        self.assertEqual(active[0]["userEmail"], "asha@example.com")
        self.assertEqual(self.admin.get("/admin/bookings?status=bogus").status_code, 400)

    def test_audit_logs(self):
        self.book(self.user, 1, 2)

        rows = self.admin.get("/admin/audit-logs?action=booking_create").get_json()

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["entity"], "booking")
        self.assertEqual(rows[0]["metadata"], {"slot_id": 1, "hours": 2, "amount": 100})
        self.assertEqual(self.user.get("/admin/audit-logs").status_code, 403)

    def test_list_users(self):
        emails = {u["email"] for u in self.admin.get("/admin/users").get_json()}

        self.assertEqual(emails, {"admin@example.com", "asha@example.com"})



class SweeperStartupConfig(TestConfig):
    SWEEPER_ENABLED = True
    SWEEP_INTERVAL_SECONDS = 60


class SweeperStartupTest(unittest.TestCase):

    def setUp(self):
        self.app = create_app(SweeperStartupConfig)
        self.sweeper = self.app.extensions["expiry_sweeper"]

    def tearDown(self):
        self.sweeper.stop(timeout=5)
        with self.app.app_context():
            db.session.remove()
            db.drop_all()

    def test_factory_and_cli_do_not_start_the_sweeper(self):
        self.assertFalse(self.sweeper.running)

        result = self.app.test_cli_runner().invoke(args=["slots"])

        self.assertEqual(result.exit_code, 0)
        self.assertFalse(self.sweeper.running)

    def test_first_request_starts_the_sweeper_once(self):
        client = self.app.test_client()

        self.assertTrue(client.get("/health").get_json()["sweeper_running"])
        thread = self.sweeper._thread
        client.get("/slots")

        self.assertIs(self.sweeper._thread, thread)


if __name__ == "__main__":
    unittest.main()
