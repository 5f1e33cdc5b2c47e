import pytest
from datetime import date
from decimal import Decimal

from clinic.core.exceptions import ConcurrentUpdateError
from clinic.core.roles import RoleId
from clinic.models.invoice import Invoice
from clinic.services.billing_service import record_payment
from .conftest import GUEST_LOGIN, TestingSessionLocal, login

def _pay(client, headers, invoice_id, amount):
    return client.put(
        f"/api/v1/invoices/{invoice_id}/payment",
        json={"paid_amount": str(amount), "payment_method": "card"},
        headers=headers
    )

class TestCreateInvoice:

    def test_create_from_appointment(self, invoice, appointment):
        assert invoice["invoice_id"] == 88000001
        assert invoice["invoice_number"] == "INV-2026-00001"
        assert invoice["appointment_id"] == appointment["appointment_id"]
        assert float(invoice["amount"]) == 100.0
        assert float(invoice["total_amount"]) == 100.0
        assert float(invoice["paid_amount"]) == 0.0
        assert float(invoice["remaining_amount"]) == 100.0
        assert invoice["payment_status"] == "unpaid"
        assert invoice["created_by"] is None

    def test_discount_reduces_total(self, client, admin_headers, patient):
        response = client.post(
            "/api/v1/invoices",
            json={"patient_id": patient.patient_id, "amount": "100.00", "discount": "30.00"},
            headers=admin_headers
        )
        assert response.status_code == 201
        assert float(response.json()["total_amount"]) == 70.0

    def test_total_never_negative(self, client, admin_headers, patient):
        response = client.post(
            "/api/v1/invoices",
            json={"patient_id": patient.patient_id, "amount": "20.00", "discount": "50.00"},
            headers=admin_headers
        )
        assert response.status_code == 201
        assert float(response.json()["total_amount"]) == 0.0
        assert response.json()["payment_status"] == "unpaid"

    def test_amount_required_without_appointment(self, client, admin_headers, patient):
        response = client.post(
            "/api/v1/invoices",
            json={"patient_id": patient.patient_id},
            headers=admin_headers
        )
        assert response.status_code == 400

    def test_created_by_database_user(self, client, headers_for, patient):
        headers = headers_for(RoleId.ADMIN)
        response = client.post(
            "/api/v1/invoices",
            json={"patient_id": patient.patient_id, "amount": "45.00"},
            headers=headers
        )
        assert response.status_code == 201
        assert response.json()["created_by"] == 45000001

    def test_doctor_cannot_create(self, client, headers_for, patient):
        headers = headers_for(RoleId.DOCTOR)
        response = client.post(
            "/api/v1/invoices",
            json={"patient_id": patient.patient_id, "amount": "45.00"},
            headers=headers
        )
        assert response.status_code == 403

class TestPayments:

    def test_partial_payment(self, client, admin_headers, invoice):
        response = _pay(client, admin_headers, invoice["invoice_id"], "40.00")
        assert response.status_code == 200

        data = response.json()
        assert data["payment_status"] == "partial"
        assert data["payment_date"] is None
        assert float(data["remaining_amount"]) == 60.0

        appointment = client.get(
            f"/api/v1/appointments/{invoice['appointment_id']}", headers=admin_headers
        ).json()
        assert appointment["payment_status"] == "partial"
        assert float(appointment["paid_amount"]) == 40.0

    def test_full_payment_sets_date(self, client, admin_headers, invoice):
        response = _pay(client, admin_headers, invoice["invoice_id"], "100.00")
        assert response.status_code == 200

        data = response.json()
        assert data["payment_status"] == "paid"
        assert data["payment_date"] == date.today().isoformat()
        assert data["payment_method"] == "card"

        appointment = client.get(
            f"/api/v1/appointments/{invoice['appointment_id']}", headers=admin_headers
        ).json()
        assert appointment["payment_status"] == "paid"
        assert appointment["payment_date"] == date.today().isoformat()

    def test_payment_date_kept_on_repeat(self, client, admin_headers, invoice, db):
        _pay(client, admin_headers, invoice["invoice_id"], "100.00")
        stored = db.get(Invoice, invoice["invoice_id"])
        stored.payment_date = date(2026, 1, 15)
        db.commit()

        response = _pay(client, admin_headers, invoice["invoice_id"], "100.00")
        assert response.status_code == 200
        assert response.json()["payment_date"] == "2026-01-15"

    def test_overpayment_rejected(self, client, admin_headers, invoice):
        response = _pay(client, admin_headers, invoice["invoice_id"], "100.01")
        assert response.status_code == 400

    def test_negative_payment_rejected(self, client, admin_headers, invoice):
        response = _pay(client, admin_headers, invoice["invoice_id"], "-1")
        assert response.status_code == 400

    def test_paid_invoice_payment_locked_for_admin(self, client, admin_headers, headers_for, invoice):
        _pay(client, admin_headers, invoice["invoice_id"], "100.00")
        headers = headers_for(RoleId.ADMIN)

        response = _pay(client, headers, invoice["invoice_id"], "50.00")
        assert response.status_code == 403

    def test_stale_payment_write_conflicts(self, invoice):
        """A payment computed from an outdated read is refused."""
        stale_session = TestingSessionLocal()
        fresh_session = TestingSessionLocal()
        try:
            stale = stale_session.get(Invoice, invoice["invoice_id"])
            fresh = fresh_session.get(Invoice, invoice["invoice_id"])

            record_payment(fresh_session, fresh, Decimal("30.00"))
            fresh_session.commit()

            with pytest.raises(ConcurrentUpdateError):
                record_payment(stale_session, stale, Decimal("50.00"))
            stale_session.rollback()
        finally:
            stale_session.close()
            fresh_session.close()

class TestUpdateInvoice:

    def test_changing_amount_recomputes_status(self, client, admin_headers, headers_for, invoice):
        _pay(client, admin_headers, invoice["invoice_id"], "40.00")
        headers = headers_for(RoleId.ADMIN)

        response = client.put(
            f"/api/v1/invoices/{invoice['invoice_id']}",
            json={"amount": "40.00"},
            headers=headers
        )
        assert response.status_code == 200

        data = response.json()
        assert float(data["total_amount"]) == 40.0
        assert data["payment_status"] == "paid"
        assert data["payment_date"] is not None

    def test_paid_invoice_locked_for_admin(self, client, admin_headers, headers_for, invoice):
        _pay(client, admin_headers, invoice["invoice_id"], "100.00")
        headers = headers_for(RoleId.ADMIN)

        response = client.put(
            f"/api/v1/invoices/{invoice['invoice_id']}",
            json={"notes": "Adjusted"},
            headers=headers
        )
        assert response.status_code == 403

    def test_paid_invoice_editable_by_superadmin(self, client, admin_headers, invoice):
        _pay(client, admin_headers, invoice["invoice_id"], "100.00")

        response = client.put(
            f"/api/v1/invoices/{invoice['invoice_id']}",
            json={"notes": "Adjusted"},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["notes"] == "Adjusted"

    def test_moving_to_other_patient_checks_appointment(self, client, admin_headers, invoice):
        other = client.post(
            "/api/v1/patients",
            json={"name": "Mary Major", "email": "mary@example.com", "phone": "555-0707"},
            headers=admin_headers
        ).json()

        response = client.put(
            f"/api/v1/invoices/{invoice['invoice_id']}",
            json={"patient_id": other["patient_id"]},
            headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Appointment belongs to a different patient"

        response = client.put(
            f"/api/v1/invoices/{invoice['invoice_id']}",
            json={"patient_id": other["patient_id"], "appointment_id": None},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["patient_id"] == other["patient_id"]
        assert response.json()["appointment_id"] is None

class TestListAndDelete:

    def test_filter_by_status(self, client, admin_headers, invoice):
        response = client.get("/api/v1/invoices", params={"payment_status": "paid"}, headers=admin_headers)
        assert response.json() == []

        response = client.get("/api/v1/invoices", params={"payment_status": "unpaid"}, headers=admin_headers)
        assert len(response.json()) == 1

    def test_filter_by_doctor(self, client, admin_headers, invoice, doctor):
        response = client.get("/api/v1/invoices", params={"doctor_id": doctor.doctor_id}, headers=admin_headers)
        assert len(response.json()) == 1

    def test_patient_sees_own_invoices(self, client, headers_for, invoice, patient):
        headers = headers_for(RoleId.PATIENT, email=patient.email)
        response = client.get("/api/v1/invoices", headers=headers)
        assert [i["invoice_id"] for i in response.json()] == [invoice["invoice_id"]]

    def test_unlinked_patient_sees_nothing(self, client, headers_for, invoice):
        headers = headers_for(RoleId.PATIENT, email="stranger@example.com")

        response = client.get("/api/v1/invoices", headers=headers)
        assert response.status_code == 200
        assert response.json() == []

        response = client.get(f"/api/v1/invoices/{invoice['invoice_id']}", headers=headers)
        assert response.status_code == 404

    def test_guest_cannot_read_invoices(self, client, invoice):
        headers = login(client, **GUEST_LOGIN)
        response = client.get("/api/v1/invoices", headers=headers)
        assert response.status_code == 403

    def test_delete_requires_superadmin(self, client, headers_for, invoice):
        headers = headers_for(RoleId.ADMIN)
        response = client.delete(f"/api/v1/invoices/{invoice['invoice_id']}", headers=headers)
        assert response.status_code == 403

    def test_superadmin_deletes(self, client, admin_headers, invoice):
        response = client.delete(f"/api/v1/invoices/{invoice['invoice_id']}", headers=admin_headers)
        assert response.status_code == 200

        response = client.get(f"/api/v1/invoices/{invoice['invoice_id']}", headers=admin_headers)
        assert response.status_code == 404

if __name__ == "__main__":
    pytest.main([__file__])
