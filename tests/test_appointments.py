import pytest
from datetime import date

from clinic.core.roles import RoleId
from clinic.models.appointment import Appointment
from .conftest import USER_PASSWORD, login

def _pay_in_full(client, headers, invoice):
    response = client.put(
        f"/api/v1/invoices/{invoice['invoice_id']}/payment",
        json={"paid_amount": invoice["total_amount"], "payment_method": "cash"},
        headers=headers
    )
    assert response.status_code == 200, response.text
    return response.json()

class TestCreateAppointment:

    def test_create_prices_from_consultation_fee(self, client, appointment, patient, doctor):
        assert appointment["appointment_id"] == 55000001
        assert appointment["patient_id"] == patient.patient_id
        assert appointment["doctor_id"] == doctor.doctor_id
        assert appointment["schedule_at"] == "09:30"
        assert appointment["status"] == "pending"
        assert float(appointment["total_amount"]) == 100.0
        assert float(appointment["paid_amount"]) == 0.0
        assert appointment["payment_status"] == "unpaid"
        assert appointment["payment_date"] is None

    def test_follow_up_uses_follow_up_fee(self, client, admin_headers, patient, doctor):
        response = client.post(
            "/api/v1/appointments",
            json={
                "patient_id": patient.patient_id,
                "doctor_id": doctor.doctor_id,
                "schedule": "2026-11-09T14:00:00",
                "reason": "Review results",
                "appointment_type": "follow_up",
            },
            headers=admin_headers
        )
        assert response.status_code == 201
        assert float(response.json()["total_amount"]) == 60.0

    def test_unknown_doctor(self, client, admin_headers, patient):
        response = client.post(
            "/api/v1/appointments",
            json={
                "patient_id": patient.patient_id,
                "doctor_id": 75999999,
                "schedule": "2026-11-09T14:00:00",
                "reason": "Checkup",
            },
            headers=admin_headers
        )
        assert response.status_code == 400

    def test_status_outside_enum_rejected(self, client, admin_headers, patient, doctor):
        response = client.post(
            "/api/v1/appointments",
            json={
                "patient_id": patient.patient_id,
                "doctor_id": doctor.doctor_id,
                "schedule": "2026-11-09T14:00:00",
                "reason": "Checkup",
                "status": "postponed",
            },
            headers=admin_headers
        )
        assert response.status_code == 422

    def test_patient_books_own_appointment(self, client, headers_for, patient, doctor):
        headers = headers_for(RoleId.PATIENT, email=patient.email)

        response = client.post(
            "/api/v1/appointments",
            json={
                "patient_id": patient.patient_id,
                "doctor_id": doctor.doctor_id,
                "schedule": "2026-11-10T08:15:00",
                "reason": "Headache",
            },
            headers=headers
        )
        assert response.status_code == 201

    def test_patient_cannot_book_for_someone_else(self, client, headers_for, patient, doctor):
        headers = headers_for(RoleId.PATIENT, email="other.patient@example.com")

        response = client.post(
            "/api/v1/appointments",
            json={
                "patient_id": patient.patient_id,
                "doctor_id": doctor.doctor_id,
                "schedule": "2026-11-10T08:15:00",
                "reason": "Headache",
            },
            headers=headers
        )
        assert response.status_code == 403

    def test_requires_authentication(self, client, patient, doctor):
        response = client.post(
            "/api/v1/appointments",
            json={
                "patient_id": patient.patient_id,
                "doctor_id": doctor.doctor_id,
                "schedule": "2026-11-10T08:15:00",
                "reason": "Headache",
            }
        )
        assert response.status_code == 401

class TestListAppointments:

    def test_admin_sees_all(self, client, admin_headers, appointment):
        response = client.get("/api/v1/appointments", headers=admin_headers)
        assert response.status_code == 200
        assert [a["appointment_id"] for a in response.json()] == [appointment["appointment_id"]]

    def test_filter_by_date(self, client, admin_headers, appointment):
        response = client.get(
            "/api/v1/appointments", params={"schedule_date": "2026-11-02"}, headers=admin_headers
        )
        assert len(response.json()) == 1

        response = client.get(
            "/api/v1/appointments", params={"schedule_date": "2026-11-03"}, headers=admin_headers
        )
        assert response.json() == []

    def test_filter_by_specialty(self, client, admin_headers, appointment):
        response = client.get(
            "/api/v1/appointments", params={"specialty": "cardiology"}, headers=admin_headers
        )
        assert len(response.json()) == 1

        response = client.get(
            "/api/v1/appointments", params={"specialty": "Dermatology"}, headers=admin_headers
        )
        assert response.json() == []

    def test_patient_sees_only_own(self, client, headers_for, appointment, patient):
        headers = headers_for(RoleId.PATIENT, email=patient.email)

        response = client.get("/api/v1/appointments", headers=headers)
        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_unlinked_patient_gets_empty_list(self, client, headers_for, appointment):
        headers = headers_for(RoleId.PATIENT, email="nobody@example.com")

        response = client.get("/api/v1/appointments", headers=headers)
        assert response.status_code == 200
        assert response.json() == []

        response = client.get(f"/api/v1/appointments/{appointment['appointment_id']}", headers=headers)
        assert response.status_code == 404

    def test_linked_doctor_sees_only_own(self, client, headers_for, appointment, doctor):
        headers = headers_for(RoleId.DOCTOR, email=doctor.email)
        response = client.get("/api/v1/appointments", headers=headers)
        assert len(response.json()) == 1

        response = client.get(
            "/api/v1/appointments", params={"doctor_id": 75999999}, headers=headers
        )
        assert len(response.json()) == 1

    def test_unknown_role_forbidden(self, client, headers_for, appointment):
        headers = headers_for(999)
        response = client.get("/api/v1/appointments", headers=headers)
        assert response.status_code == 403

    def test_get_missing(self, client, admin_headers, test_db):
        response = client.get("/api/v1/appointments/55999999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Appointment not found"

class TestUpdateAppointment:

    def test_update_reschedules(self, client, admin_headers, appointment):
        response = client.put(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"schedule": "2026-11-05T16:45:00", "note": "Moved"},
            headers=admin_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["schedule_at"] == "16:45"
        assert data["note"] == "Moved"

    def test_changing_type_reprices(self, client, admin_headers, appointment):
        response = client.put(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"appointment_type": "follow_up"},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert float(response.json()["total_amount"]) == 60.0
        assert response.json()["payment_status"] == "unpaid"

    def test_empty_update_rejected(self, client, admin_headers, appointment):
        response = client.put(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={},
            headers=admin_headers
        )
        assert response.status_code == 400

    def test_paid_appointment_denied_for_doctor(self, client, admin_headers, headers_for, invoice, doctor):
        _pay_in_full(client, admin_headers, invoice)
        headers = headers_for(RoleId.DOCTOR, email=doctor.email)

        response = client.put(
            f"/api/v1/appointments/{invoice['appointment_id']}",
            json={"note": "Late edit"},
            headers=headers
        )
        assert response.status_code == 403

    def test_paid_appointment_denied_for_admin(self, client, admin_headers, headers_for, invoice):
        _pay_in_full(client, admin_headers, invoice)
        headers = headers_for(RoleId.ADMIN)

        response = client.put(
            f"/api/v1/appointments/{invoice['appointment_id']}",
            json={"note": "Late edit"},
            headers=headers
        )
        assert response.status_code == 403

    def test_paid_appointment_allowed_for_superadmin_role(self, client, admin_headers, headers_for, invoice):
        _pay_in_full(client, admin_headers, invoice)
        headers = headers_for(RoleId.SUPERADMIN)

        response = client.put(
            f"/api/v1/appointments/{invoice['appointment_id']}",
            json={"note": "Corrected"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["note"] == "Corrected"
        assert response.json()["payment_status"] == "paid"

    def test_demoted_superadmin_loses_override(self, client, admin_headers, make_user, invoice):
        _pay_in_full(client, admin_headers, invoice)
        user = make_user(RoleId.SUPERADMIN, is_admin=True)
        headers = login(client, user.email, USER_PASSWORD)

        response = client.put(
            f"/api/v1/users/{user.user_id}", json={"role_id": 213}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["is_admin"] is False

        me = client.get("/api/v1/auth/me", headers=headers).json()
        assert me["role_id"] == 213
        assert me["is_admin"] is False

        response = client.put(
            f"/api/v1/appointments/{invoice['appointment_id']}",
            json={"note": "Late edit"},
            headers=headers
        )
        assert response.status_code == 403

    def test_patient_cannot_update(self, client, headers_for, appointment, patient):
        headers = headers_for(RoleId.PATIENT, email=patient.email)
        response = client.put(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"note": "Please call"},
            headers=headers
        )
        assert response.status_code == 403

class TestAppointmentStatus:

    def test_status_is_normalized(self, client, admin_headers, appointment):
        response = client.patch(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"status": " Confirmed "},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

    def test_invalid_status(self, client, admin_headers, appointment):
        response = client.patch(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"status": "postponed"},
            headers=admin_headers
        )
        assert response.status_code == 400

    def test_same_status_is_a_no_op(self, client, admin_headers, appointment):
        response = client.patch(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"status": "pending"},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

class TestAppointmentPayment:

    def _pay(self, client, headers, appointment_id, amount):
        return client.put(
            f"/api/v1/appointments/{appointment_id}/payment",
            json={"paid_amount": str(amount), "payment_method": "cash"},
            headers=headers
        )

    def test_partial_payment(self, client, admin_headers, appointment):
        response = self._pay(client, admin_headers, appointment["appointment_id"], "30.00")
        assert response.status_code == 200

        data = response.json()
        assert float(data["paid_amount"]) == 30.0
        assert data["payment_status"] == "partial"
        assert data["payment_method"] == "cash"
        assert data["payment_date"] is None

    def test_full_payment_sets_date(self, client, admin_headers, appointment):
        response = self._pay(client, admin_headers, appointment["appointment_id"], "100.00")
        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"
        assert response.json()["payment_date"] == date.today().isoformat()

    def test_out_of_range_rejected(self, client, admin_headers, appointment):
        response = self._pay(client, admin_headers, appointment["appointment_id"], "100.01")
        assert response.status_code == 400

        response = self._pay(client, admin_headers, appointment["appointment_id"], "-5")
        assert response.status_code == 400

    def test_paid_appointment_locked_for_admin(self, client, admin_headers, headers_for, appointment):
        self._pay(client, admin_headers, appointment["appointment_id"], "100.00")
        headers = headers_for(RoleId.ADMIN)

        response = self._pay(client, headers, appointment["appointment_id"], "20.00")
        assert response.status_code == 403

    def test_patient_cannot_pay(self, client, headers_for, appointment, patient):
        headers = headers_for(RoleId.PATIENT, email=patient.email)
        response = self._pay(client, headers, appointment["appointment_id"], "20.00")
        assert response.status_code == 403

    def test_missing_appointment(self, client, admin_headers, test_db):
        response = self._pay(client, admin_headers, 55999999, "10.00")
        assert response.status_code == 404

class TestDeleteAppointment:

    def test_pending_unpaid_deletable_by_admin(self, client, headers_for, appointment, db):
        headers = headers_for(RoleId.ADMIN)

        response = client.delete(f"/api/v1/appointments/{appointment['appointment_id']}", headers=headers)
        assert response.status_code == 200
        assert db.get(Appointment, appointment["appointment_id"]) is None

    def test_confirmed_not_deletable_by_admin(self, client, admin_headers, headers_for, appointment):
        client.patch(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"status": "confirmed"},
            headers=admin_headers
        )
        headers = headers_for(RoleId.ADMIN)

        response = client.delete(f"/api/v1/appointments/{appointment['appointment_id']}", headers=headers)
        assert response.status_code == 403

    def test_cancelled_deletable_by_admin(self, client, admin_headers, headers_for, appointment):
        client.patch(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"status": "cancelled"},
            headers=admin_headers
        )
        headers = headers_for(RoleId.ADMIN)

        response = client.delete(f"/api/v1/appointments/{appointment['appointment_id']}", headers=headers)
        assert response.status_code == 200

    def test_confirmed_deletable_by_superadmin(self, client, admin_headers, appointment):
        client.patch(
            f"/api/v1/appointments/{appointment['appointment_id']}",
            json={"status": "confirmed"},
            headers=admin_headers
        )

        response = client.delete(f"/api/v1/appointments/{appointment['appointment_id']}", headers=admin_headers)
        assert response.status_code == 200

    def test_doctor_cannot_delete(self, client, headers_for, appointment):
        headers = headers_for(RoleId.DOCTOR)
        response = client.delete(f"/api/v1/appointments/{appointment['appointment_id']}", headers=headers)
        assert response.status_code == 403

    def test_invoiced_appointment_conflicts(self, client, admin_headers, invoice):
        response = client.delete(f"/api/v1/appointments/{invoice['appointment_id']}", headers=admin_headers)
        assert response.status_code == 409

        data = response.json()
        assert data["error"] == "Conflict"
        assert data["cannot_delete"] is True
        assert data["message"] == "Cannot delete appointment with associated invoices"

if __name__ == "__main__":
    pytest.main([__file__])
