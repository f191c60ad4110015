from conftest import MONDAY, TUESDAY, add_appointment, at, make_headers

from agenda.models import Appointment, Client, Tenant
from agenda.plan_limits import PLAN_FEATURES


def availability(api, headers, **params):
    response = api.get("/availability", params=params, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


class TestAvailabilityEndpoint:
    def test_monday_morning(self, api, auth_headers, db, tenant, professional, client_record, service):
        add_appointment(db, tenant, professional, client_record, service, at(MONDAY, "10:00"))

        body = availability(
            api, auth_headers, serviceId=service.id, date=MONDAY.isoformat(), professionalId=professional.id
        )

        assert body["date"] == "2025-06-02"
        assert body["dayOfWeek"] == 1
        assert body["workingHours"] == {"startTime": "09:00", "endTime": "12:00"}
        assert [(s["time"], s["available"]) for s in body["slots"]] == [
            ("09:00", True),
            ("09:30", True),
            ("10:00", False),
            ("10:30", True),
            ("11:00", True),
            ("11:30", True),
        ]
        assert body["slots"][2]["reason"] == "booked"

    def test_not_working_day(self, api, auth_headers, professional, service):
        body = availability(
            api, auth_headers, serviceId=service.id, date=TUESDAY.isoformat(), professionalId=professional.id
        )

        assert body["slots"] == []
        assert body["workingHours"] is None
        assert body["message"]

    def test_unknown_service(self, api, auth_headers, professional):
        response = api.get("/availability", params={"serviceId": 999, "date": "2025-06-02"}, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "service_not_found"

    def test_requires_authentication(self, api, service):
        response = api.get("/availability", params={"serviceId": service.id, "date": "2025-06-02"})
        assert response.status_code in (401, 403)

    def test_rejects_bad_token(self, api, service):
        response = api.get(
            "/availability",
            params={"serviceId": service.id, "date": "2025-06-02"},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    def test_tenants_are_isolated(self, api, db, tenant, professional, service):
        other = Tenant(name="Outra", slug="outra", plan="PREMIUM")
        db.add(other)
        db.commit()

        response = api.get(
            "/availability",
            params={"serviceId": service.id, "date": "2025-06-02"},
            headers=make_headers(other.id),
        )
        assert response.status_code == 404


class TestAppointmentEndpoints:
    def book(self, api, headers, service, client, time, professional=None):
        payload = {"serviceId": service.id, "clientId": client.id, "date": "2025-06-02", "time": time}
        if professional is not None:
            payload["professionalId"] = professional.id
        return api.post("/appointments", json=payload, headers=headers)

    def test_book_then_conflict(self, api, auth_headers, professional, client_record, service):
        first = self.book(api, auth_headers, service, client_record, "10:00", professional)
        assert first.status_code == 201, first.text
        body = first.json()
        assert body["time"] == "10:00"
        assert body["status"] == "SCHEDULED"
        assert body["professionalName"] == "João"
        assert body["totalPrice"] == 40.0

        second = self.book(api, auth_headers, service, client_record, "10:00", professional)
        assert second.status_code == 409
        assert second.json()["code"] == "slot_unavailable"
        assert second.json()["reason"] == "booked"

    def test_auto_assigns_professional(self, api, auth_headers, professional, client_record, service):
        response = self.book(api, auth_headers, service, client_record, "09:00")

        assert response.status_code == 201
        assert response.json()["professionalId"] == professional.id

    def test_reschedule_and_cancel(self, api, auth_headers, db, professional, client_record, service):
        created = self.book(api, auth_headers, service, client_record, "09:00", professional).json()

        moved = api.put(
            f"/appointments/{created['id']}/reschedule",
            json={"date": "2025-06-02", "time": "11:00"},
            headers=auth_headers,
        )
        assert moved.status_code == 200
        assert moved.json()["time"] == "11:00"

        cancelled = api.post(
            f"/appointments/{created['id']}/cancel", json={"reason": "Viagem"}, headers=auth_headers
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "CANCELLED"
        assert cancelled.json()["cancelReason"] == "Viagem"

        again = api.patch(
            f"/appointments/{created['id']}/status", json={"status": "CONFIRMED"}, headers=auth_headers
        )
        assert again.status_code == 409
        assert again.json()["code"] == "invalid_status_transition"

    def test_list_and_get(self, api, auth_headers, db, tenant, professional, client_record, service):
        appointment = add_appointment(db, tenant, professional, client_record, service, at(MONDAY, "09:00"))
        add_appointment(db, tenant, professional, client_record, service, at(TUESDAY, "09:00"))

        listed = api.get("/appointments", params={"startDate": "2025-06-02", "endDate": "2025-06-02"}, headers=auth_headers)
        assert [a["id"] for a in listed.json()] == [appointment.id]

        fetched = api.get(f"/appointments/{appointment.id}", headers=auth_headers)
        assert fetched.json()["clientName"] == "Maria"
        assert api.get("/appointments/999", headers=auth_headers).status_code == 404

    def test_notify_without_whatsapp_is_not_queued(self, api, auth_headers, db, tenant, professional, client_record, service):
        appointment = add_appointment(db, tenant, professional, client_record, service, at(MONDAY, "09:00"))

        response = api.post(f"/appointments/{appointment.id}/notify", json={"type": "reminder"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"queued": False}


class TestCalendarEndpoints:
    def test_professional_edits_own_calendar_only(self, api, db, tenant, professional, service):
        own = make_headers(tenant.id, role="PROFESSIONAL", professional_id=professional.id)
        other = make_headers(tenant.id, role="PROFESSIONAL", professional_id=professional.id + 100)
        payload = {"schedule": [{"dayOfWeek": 1, "startTime": "10:00", "endTime": "11:00"}]}

        denied = api.put(f"/professionals/{professional.id}/schedule", json=payload, headers=other)
        assert denied.status_code == 403

        allowed = api.put(f"/professionals/{professional.id}/schedule", json=payload, headers=own)
        assert allowed.status_code == 200
        assert allowed.json()[1]["startTime"] == "10:00"

    def test_invalid_schedule(self, api, auth_headers, professional):
        payload = {"schedule": [{"dayOfWeek": 1, "startTime": "12:00", "endTime": "09:00"}]}

        response = api.put(f"/professionals/{professional.id}/schedule", json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_schedule"

    def test_malformed_time_is_rejected(self, api, auth_headers, professional):
        payload = {"schedule": [{"dayOfWeek": 1, "startTime": "9h", "endTime": "12:00"}]}

        response = api.put(f"/professionals/{professional.id}/schedule", json=payload, headers=auth_headers)

        assert response.status_code == 422

    def test_breaks(self, api, auth_headers, professional):
        payload = {"breaks": [{"startTime": "10:00", "endTime": "10:30", "label": "Café"}]}

        response = api.put(f"/professionals/{professional.id}/breaks", json=payload, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()[0]["startTime"] == "10:00"
        assert response.json()[0]["dayOfWeek"] is None
        assert len(api.get(f"/professionals/{professional.id}/breaks", headers=auth_headers).json()) == 1

    def test_exception_lifecycle(self, api, auth_headers, db, tenant, professional, client_record, service):
        add_appointment(db, tenant, professional, client_record, service, at(MONDAY, "10:00"))

        created = api.post(
            f"/professionals/{professional.id}/exceptions",
            json={"startDatetime": "2025-06-02T10:00:00", "endDatetime": "2025-06-02T12:00:00", "reason": "Médico"},
            headers=auth_headers,
        )
        assert created.status_code == 201
        body = created.json()
        assert body["exception"]["type"] == "BLOCK"
        assert len(body["conflicts"]) == 1
        assert body["warning"]

        slots = availability(
            api, auth_headers, serviceId=service.id, date="2025-06-02", professionalId=professional.id
        )["slots"]
        assert [s["time"] for s in slots] == ["09:00", "09:30"]

        exception_id = body["exception"]["id"]
        deleted = api.delete(f"/professionals/{professional.id}/exceptions/{exception_id}", headers=auth_headers)
        assert deleted.status_code == 200
        missing = api.delete(f"/professionals/{professional.id}/exceptions/{exception_id}", headers=auth_headers)
        assert missing.status_code == 404


class TestPublicBooking:
    def payload(self, service, time="09:00", phone="(11) 91234-5678"):
        return {
            "clientName": "Carlos",
            "clientPhone": phone,
            "serviceId": service.id,
            "date": "2025-06-02",
            "time": time,
        }

    def test_business_page(self, api, tenant, professional, service):
        business = api.get("/public/business/barbearia-do-ze")
        assert business.status_code == 200
        assert business.json()["timezone"] == "America/Sao_Paulo"

        services = api.get("/public/business/barbearia-do-ze/services").json()
        assert [s["name"] for s in services] == ["Corte"]

        professionals = api.get(
            "/public/business/barbearia-do-ze/professionals", params={"serviceId": service.id}
        ).json()
        assert [p["id"] for p in professionals] == [professional.id]

        assert api.get("/public/business/nao-existe").status_code == 404

    def test_public_availability(self, api, professional, service):
        response = api.get(
            "/public/business/barbearia-do-ze/availability",
            params={"serviceId": service.id, "date": "2025-06-02"},
        )

        assert response.status_code == 200
        assert len(response.json()["slots"]) == 6

    def test_booking_creates_client_once(self, api, db, tenant, professional, service):
        first = api.post("/public/business/barbearia-do-ze/appointments", json=self.payload(service))
        assert first.status_code == 201, first.text
        assert first.json()["status"] == "CONFIRMED"
        assert first.json()["professionalName"] == "João"

        second = api.post("/public/business/barbearia-do-ze/appointments", json=self.payload(service, "10:00"))
        assert second.status_code == 201

        clients = db.query(Client).filter(Client.tenant_id == tenant.id, Client.phone == "5511912345678").all()
        assert len(clients) == 1
        sources = {a.source for a in db.query(Appointment).all()}
        assert sources == {"PUBLIC"}

    def test_taken_slot(self, api, professional, service):
        assert api.post("/public/business/barbearia-do-ze/appointments", json=self.payload(service)).status_code == 201

        response = api.post("/public/business/barbearia-do-ze/appointments", json=self.payload(service))
        assert response.status_code == 409

    def test_invalid_phone(self, api, professional, service):
        response = api.post("/public/business/barbearia-do-ze/appointments", json=self.payload(service, phone="123"))
        assert response.status_code == 422

    def test_rate_limit(self, api, professional, service):
        statuses = [
            api.post("/public/business/barbearia-do-ze/appointments", json=self.payload(service)).status_code
            for _ in range(11)
        ]

        assert statuses[0] == 201
        assert set(statuses[1:10]) == {409}
        assert statuses[10] == 429


class TestDirectory:
    def test_create_service_respects_plan_limit(self, api, auth_headers, service, monkeypatch):
        monkeypatch.setitem(PLAN_FEATURES["PREMIUM"], "max_services", 1)

        response = api.post(
            "/services", json={"name": "Barba", "durationMinutes": 20, "price": 25}, headers=auth_headers
        )

        assert response.status_code == 403

    def test_professional_role_cannot_create_services(self, api, tenant, professional):
        headers = make_headers(tenant.id, role="PROFESSIONAL", professional_id=professional.id)

        response = api.post("/services", json={"name": "Barba", "durationMinutes": 20}, headers=headers)

        assert response.status_code == 403

    def test_create_professional_with_services(self, api, auth_headers, service):
        response = api.post(
            "/professionals", json={"name": "Pedro", "serviceIds": [service.id]}, headers=auth_headers
        )

        assert response.status_code == 201
        assert response.json()["serviceIds"] == [service.id]

    def test_usage(self, api, auth_headers, professional, client_record):
        body = api.get("/subscription/usage", headers=auth_headers).json()

        assert body["plan"] == "PREMIUM"
        assert body["usage"]["professionals"] == {"current": 1, "limit": None}
