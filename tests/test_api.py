from conftest import MONDAY, as_user


def booking_body(seed, **overrides) -> dict:
    body = {
        "clinicId": seed.clinic_id,
        "patientId": seed.patient_x,
        "serialDate": MONDAY.isoformat(),
    }
    body.update(overrides)
    return body


# Identity and roles


async def test_missing_user_is_unauthorized(client, seed):
    response = await client.get(f"/doctors/{seed.doctor_id}")
    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"


async def test_missing_organization_is_forbidden(client, seed):
    response = await client.get(f"/doctors/{seed.doctor_id}", headers={"X-User-Id": "u-admin"})
    assert response.status_code == 403
    assert response.json()["error"] == "NO_ACTIVE_ORG"


async def test_non_member_is_forbidden(client, seed):
    response = await client.get(
        f"/doctors/{seed.doctor_id}", headers=as_user("u-admin", org_id="org-2")
    )
    assert response.status_code == 403
    assert response.json()["error"] == "NOT_A_MEMBER"


async def test_role_without_capability_is_forbidden(client, seed):
    response = await client.post(
        "/clinics", json={"name": "South Clinic"}, headers=as_user("u-staff")
    )
    assert response.status_code == 403
    assert response.json()["error"] == "INSUFFICIENT_ROLE"


async def test_doctor_cannot_edit_another_doctors_schedule(client, seed):
    response = await client.post(
        f"/doctors/{seed.doctor_id}/availability",
        json={"clinicId": seed.clinic_id, "dayOfWeek": 2, "startTime": "09:00", "endTime": "10:00"},
        headers=as_user("u-other-doctor"),
    )
    assert response.status_code == 403
    assert response.json()["error"] == "NOT_SELF"


async def test_doctor_edits_own_schedule(client, seed):
    response = await client.post(
        f"/doctors/{seed.doctor_id}/availability",
        json={
            "clinicId": seed.clinic_id,
            "dayOfWeek": 2,
            "startTime": "09:00",
            "endTime": "10:00",
            "breaks": [{"start": 570, "end": 580}],
        },
        headers=as_user("u-doctor"),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["startTime"] == "09:00"
    assert body["recurrence"] == "weekly"


async def test_null_start_time_on_rule_update_is_a_validation_error(client, seed):
    response = await client.patch(
        f"/doctors/{seed.doctor_id}/availability/{seed.rule_id}",
        json={"startTime": None},
        headers=as_user("u-doctor"),
    )
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"
    assert body["breaks"] == [{"start": 570, "end": 580}]


# Bookings


async def test_create_booking_under_doctor(client, seed):
    response = await client.post(
        f"/doctors/{seed.doctor_id}/bookings",
        json=booking_body(seed),
        headers=as_user("u-staff"),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["dailySerial"] == 1
    assert body["bookingStatus"] == "pending"
    assert body["bookVia"] == "walk_in"


async def test_create_booking_flat_route(client, seed):
    await client.post(
        f"/doctors/{seed.doctor_id}/bookings", json=booking_body(seed), headers=as_user("u-staff")
    )
    response = await client.post(
        "/bookings",
        json=booking_body(seed, doctorId=seed.doctor_id, bookVia="web"),
        headers=as_user("u-admin"),
    )
    assert response.status_code == 201
    assert response.json()["dailySerial"] == 2


async def test_patient_books_only_for_themselves(client, seed):
    response = await client.post(
        f"/doctors/{seed.doctor_id}/bookings",
        json=booking_body(seed, patientId=seed.patient_y),
        headers=as_user("u-patient-x"),
    )
    assert response.status_code == 403
    assert response.json()["error"] == "NOT_SELF"

    own = await client.post(
        f"/doctors/{seed.doctor_id}/bookings",
        json=booking_body(seed),
        headers=as_user("u-patient-x"),
    )
    assert own.status_code == 201


async def test_domain_conflict_uses_error_envelope(client, seed):
    response = await client.post(
        f"/doctors/{seed.doctor_id}/bookings",
        json=booking_body(seed, serialDate="2025-06-03"),
        headers={**as_user("u-staff"), "X-Request-ID": "req-123"},
    )
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "NO_AVAILABILITY"
    assert body["requestId"] == "req-123"
    assert {"error", "message", "requestId", "timestamp"} <= body.keys()
    assert response.headers["X-Request-ID"] == "req-123"


async def test_malformed_body_lists_field_errors(client, seed):
    response = await client.post(
        f"/doctors/{seed.doctor_id}/bookings",
        json={"clinicId": "not-a-uuid", "serialDate": "2025-06-02"},
        headers=as_user("u-staff"),
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert "clinicId" in body["fields"]
    assert "patientId" in body["fields"]


async def test_cancel_without_note_is_rejected(client, seed):
    created = await client.post(
        f"/doctors/{seed.doctor_id}/bookings", json=booking_body(seed), headers=as_user("u-staff")
    )
    booking_id = created.json()["bookingId"]

    response = await client.patch(
        f"/bookings/{booking_id}",
        json={"bookingStatus": "cancelled"},
        headers=as_user("u-staff"),
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "CANCEL_NOTE_REQUIRED"
    assert "cancelNote" in body["fields"]

    response = await client.patch(
        f"/bookings/{booking_id}",
        json={"bookingStatus": "cancelled", "cancelNote": "rescheduled by phone"},
        headers=as_user("u-staff"),
    )
    assert response.status_code == 200
    assert response.json()["bookingStatus"] == "cancelled"


async def test_patient_cannot_read_someone_elses_booking(client, seed):
    created = await client.post(
        f"/doctors/{seed.doctor_id}/bookings",
        json=booking_body(seed, patientId=seed.patient_y),
        headers=as_user("u-staff"),
    )
    booking_id = created.json()["bookingId"]

    response = await client.get(f"/bookings/{booking_id}", headers=as_user("u-patient-x"))
    assert response.status_code == 404


async def test_list_bookings_is_paginated(client, seed):
    for _ in range(3):
        await client.post(
            f"/doctors/{seed.doctor_id}/bookings", json=booking_body(seed), headers=as_user("u-staff")
        )

    response = await client.get(
        "/bookings", params={"doctorId": seed.doctor_id, "limit": 2}, headers=as_user("u-admin")
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["totalPages"] == 2
    assert [item["dailySerial"] for item in body["items"]] == [1, 2]


async def test_delete_booking_returns_no_content(client, seed):
    created = await client.post(
        f"/doctors/{seed.doctor_id}/bookings", json=booking_body(seed), headers=as_user("u-staff")
    )
    booking_id = created.json()["bookingId"]

    response = await client.delete(f"/bookings/{booking_id}", headers=as_user("u-admin"))
    assert response.status_code == 204

    missing = await client.get(f"/bookings/{booking_id}", headers=as_user("u-admin"))
    assert missing.status_code == 404


async def test_booking_creation_is_rate_limited_per_client(client, seed):
    unknown_doctor = "/doctors/00000000-0000-0000-0000-000000000000/bookings"
    for _ in range(20):
        response = await client.post(unknown_doctor, json=booking_body(seed), headers=as_user("u-admin"))
        assert response.status_code == 404

    limited = await client.post(unknown_doctor, json=booking_body(seed), headers=as_user("u-admin"))
    assert limited.status_code == 429
    assert limited.json()["error"] == "RATE_LIMITED"

    # the flat route shares the limit
    flat = await client.post(
        "/bookings",
        json=booking_body(seed, doctorId=seed.doctor_id),
        headers=as_user("u-admin"),
    )
    assert flat.status_code == 429

    other_client = await client.post(
        unknown_doctor, json=booking_body(seed), headers=as_user("u-staff")
    )
    assert other_client.status_code == 404


# Slots


async def test_slots_for_monday(client, seed):
    response = await client.get(
        f"/doctors/{seed.doctor_id}/slots",
        params={"clinicId": seed.clinic_id, "date": MONDAY.isoformat()},
        headers=as_user("u-patient-x"),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["date"] == "2025-06-02"
    assert len(body["slots"]) == 12
    assert body["slots"][0] == {"start": "09:00", "end": "09:15", "available": True, "serial": 1}
    assert "Server-Timing" in response.headers


async def test_next_available_date(client, seed):
    response = await client.get(
        f"/doctors/{seed.doctor_id}/slots/next",
        params={"clinicId": seed.clinic_id, "from": "2025-06-03", "maxDays": 14},
        headers=as_user("u-staff"),
    )
    assert response.status_code == 200
    assert response.json() == {"nextAvailableDate": "2025-06-09"}


# Live queue


async def test_queue_stream_rejects_impossible_date(client, seed):
    response = await client.get(
        f"/sse/queue/{seed.doctor_id}",
        params={"date": "2025-13-45"},
        headers=as_user("u-staff"),
    )
    assert response.status_code == 422
    assert "date" in response.json()["fields"]


async def test_queue_stream_rejects_malformed_date(client, seed):
    response = await client.get(
        f"/sse/queue/{seed.doctor_id}",
        params={"date": "2025-6-1"},
        headers=as_user("u-staff"),
    )
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_queue_stream_unknown_doctor(client, seed):
    response = await client.get(
        "/sse/queue/00000000-0000-0000-0000-000000000000",
        params={"date": "2025-06-02"},
        headers=as_user("u-staff"),
    )
    assert response.status_code == 404


# Operations


async def test_health_reports_database(client, seed):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "Healthy"
    assert body["database"]["healthy"] is True


async def test_metrics_include_queue_stats(client, hub, seed):
    hub.subscribe(seed.doctor_id, MONDAY)
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert response.json()["queue"]["subscribers"] == 1
