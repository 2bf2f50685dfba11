import json
import unittest

from fastapi.testclient import TestClient

from tracker_test_support import loan_payload, make_session_factory, override_for

import EquipmentTracker as app_module
from db.deps import get_tracker_db
from services.record_store import INITIAL_INVENTORY


class TrackerApiTests(unittest.TestCase):
    def setUp(self):
        self.session_factory = make_session_factory()
        app_module.app.dependency_overrides[get_tracker_db] = override_for(self.session_factory)
        self.client = TestClient(app_module.app)

    def tearDown(self):
        app_module.app.dependency_overrides.clear()

    def _read(self):
        response = self.client.get("/api/tracker")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "success", body)
        return body

    def _write(self, payload):
        response = self.client.post("/api/tracker", content=json.dumps(payload))
        self.assertEqual(response.status_code, 200)
        return response.json()

    def _set_total(self, device, total):
        result = self._write({"action": "updateInventory", "device": device, "newTotal": total})
        self.assertEqual(result, {"status": "success", "message": "Inventory updated."})

    def test_healthz(self):
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})
        self.assertEqual(self.client.get("/api/healthz").json(), {"status": "ok"})

    def test_first_read_creates_tables_with_seed_inventory(self):
        body = self._read()
        self.assertEqual([item["name"] for item in body["inventoryList"]], [name for name, _ in INITIAL_INVENTORY])
        for name, _ in INITIAL_INVENTORY:
            self.assertEqual(body["data"][name], {"total": 0, "rented": 0, "available": 0})
        self.assertEqual(body["transactions"], [])

    def test_stocked_device_without_loans_is_fully_available(self):
        self._set_total("O2 Generator", 5)
        body = self._read()
        self.assertEqual(body["data"]["O2 Generator"], {"total": 5, "rented": 0, "available": 5})

    def test_loan_then_return_round_trip(self):
        self._set_total("O2 Generator", 5)

        saved = self._write(loan_payload())
        self.assertEqual(saved, {"status": "success", "message": "Transaction saved successfully."})
        body = self._read()
        self.assertEqual(body["data"]["O2 Generator"], {"total": 5, "rented": 1, "available": 4})
        tx = body["transactions"][0]
        self.assertEqual(tx["row"], 2)
        self.assertEqual(tx["patientName"], "Patient A")
        self.assertEqual(tx["status"], "Delivered")
        self.assertTrue(tx["timestamp"])

        updated = self._write({"action": "updateStatus", "row": tx["row"], "status": "Received"})
        self.assertEqual(updated, {"status": "success", "message": "Status updated."})
        body = self._read()
        self.assertEqual(body["data"]["O2 Generator"], {"total": 5, "rented": 0, "available": 5})
        self.assertEqual(body["transactions"][0]["status"], "Received")

    def test_status_update_is_idempotent(self):
        self._set_total("Nebulizer", 2)
        self._write(loan_payload(device="Nebulizer"))
        for _ in range(2):
            result = self._write({"action": "updateStatus", "row": 2, "status": "Received"})
            self.assertEqual(result["status"], "success")
        body = self._read()
        self.assertEqual(body["data"]["Nebulizer"], {"total": 2, "rented": 0, "available": 2})

    def test_update_status_on_header_row_is_invalid(self):
        self._write(loan_payload())
        result = self._write({"action": "updateStatus", "row": 1, "status": "Received"})
        self.assertEqual(result["status"], "error")
        self.assertEqual(result["errorType"], "InvalidArgument")
        self.assertEqual(result["message"], "Invalid row index")

    def test_update_status_rejects_missing_or_malformed_row(self):
        for row in (None, 0, -3, "abc", 2.5):
            payload = {"action": "updateStatus", "status": "Received"}
            if row is not None:
                payload["row"] = row
            result = self._write(payload)
            self.assertEqual(result["errorType"], "InvalidArgument", row)

    def test_update_status_beyond_last_row_is_not_found(self):
        self._write(loan_payload())
        result = self._write({"action": "updateStatus", "row": 3, "status": "Received"})
        self.assertEqual(result["status"], "error")
        self.assertEqual(result["errorType"], "NotFound")
        self.assertEqual(result["message"], "Row not found")

    def test_update_status_on_huge_row_is_not_found(self):
        self._write(loan_payload())
        for row in ("9" * 400, "9" * 5000, 10**40, "12.0e3"):
            result = self._write({"action": "updateStatus", "row": row, "status": "Received"})
            self.assertEqual(result["errorType"], "NotFound", str(row)[:20])

    def test_update_inventory_for_unseen_device_appends_row(self):
        self._set_total("Wheelchair", 3)
        body = self._read()
        self.assertEqual(body["inventoryList"][-1], {"name": "Wheelchair", "total": 3, "rented": 0, "available": 3})
        self.assertEqual(len(body["inventoryList"]), len(INITIAL_INVENTORY) + 1)

    def test_update_inventory_overwrites_existing_total(self):
        self._set_total("Commode", 4)
        self._set_total("Commode", 1)
        body = self._read()
        self.assertEqual(body["data"]["Commode"]["total"], 1)
        self.assertEqual(len(body["inventoryList"]), len(INITIAL_INVENTORY))

    def test_update_inventory_rejects_negative_total(self):
        result = self._write({"action": "updateInventory", "device": "Commode", "newTotal": -1})
        self.assertEqual(result["errorType"], "InvalidArgument")

    def test_zero_stock_with_outstanding_loans_is_never_negative(self):
        self._write(loan_payload(device="Air Mattress"))
        self._write(loan_payload(device="Air Mattress", status="Not Received"))
        body = self._read()
        self.assertEqual(body["data"]["Air Mattress"], {"total": 0, "rented": 2, "available": 0})

    def test_unknown_device_is_listed_but_not_counted(self):
        self._write(loan_payload(device="Walker"))
        body = self._read()
        self.assertNotIn("Walker", body["data"])
        self.assertEqual(body["transactions"][0]["device"], "Walker")

    def test_read_returns_at_most_fifty_newest_first(self):
        for index in range(55):
            self._write(loan_payload(patient=f"Patient {index}"))
        body = self._read()
        self.assertEqual(len(body["transactions"]), 50)
        self.assertEqual(body["transactions"][0]["row"], 56)
        self.assertEqual(body["transactions"][0]["patientName"], "Patient 54")
        self.assertEqual(body["transactions"][-1]["row"], 7)
        self.assertEqual(body["data"]["O2 Generator"]["rented"], 55)

    def test_unknown_action(self):
        result = self._write({"action": "deleteEverything"})
        self.assertEqual(result, {"status": "error", "message": "Unknown action", "errorType": "UnknownAction"})

    def test_malformed_body_is_invalid_argument(self):
        response = self.client.post("/api/tracker", content="{not json")
        self.assertEqual(response.json()["errorType"], "InvalidArgument")
        response = self.client.post("/api/tracker", content=json.dumps(["addTransaction"]))
        self.assertEqual(response.json()["errorType"], "InvalidArgument")

    def test_unreachable_store_reports_structured_error(self):
        broken = make_session_factory("sqlite+pysqlite:////nonexistent-dir/tracker.db")
        app_module.app.dependency_overrides[get_tracker_db] = override_for(broken)
        response = self.client.get("/api/tracker")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "error")
        self.assertEqual(body["errorType"], "StoreUnavailable")

        result = self._write(loan_payload())
        self.assertEqual(result["errorType"], "StoreUnavailable")


if __name__ == "__main__":
    unittest.main()
