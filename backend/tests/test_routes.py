import pytest

from carerota.models.shift import Rota, Shift, StaffMember

from helpers import OTHER_STAFF_ID, ROTA_ID, STAFF_ID


def day_payload(week, weekday, rest=False):
    if rest:
        return {"week_number": week, "day_of_week": weekday, "is_rest_day": True}
    return {"week_number": week, "day_of_week": weekday, "start_time": "09:00:00", "end_time": "17:00:00",
            "break_minutes": 30}


def create_template(client, name="Office Days", cycle=1, every_day=False):
    days = [day_payload(1, d, rest=not every_day and d > 5) for d in range(1, 8)]
    if cycle == 2:
        days += [day_payload(2, d, rest=True) for d in range(1, 8)]
    response = client.post("/api/patterns", json={
        "name": name,
        "rotation_cycle_weeks": cycle,
        "days": days,
    })
    assert response.status_code == 201, response.text
    return response.json()


def create_assignment(client, template_id, **fields):
    payload = {"staff_member_id": STAFF_ID, "template_id": template_id, "start_date": "2024-01-01"}
    payload.update(fields)
    response = client.post("/api/pattern-assignments", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def people(session_factory):
    db = session_factory()
    db.add_all([
        Rota(id=ROTA_ID, name="Oak House Days"),
        StaffMember(id=STAFF_ID, full_name="Alex Morgan", default_rota_id=ROTA_ID),
        StaffMember(id=OTHER_STAFF_ID, full_name="Sam Patel", default_rota_id=ROTA_ID),
    ])
    db.commit()
    db.close()


class TestPatternRoutes:

    def test_create_and_fetch_template(self, client):
        created = create_template(client)

        assert created["average_weekly_hours"] == 37.5
        assert len(created["days"]) == 7

        fetched = client.get(f"/api/patterns/{created['id']}").json()
        assert fetched["name"] == "Office Days"
        assert [t["id"] for t in client.get("/api/patterns").json()] == [created["id"]]

    def test_missing_template_is_404(self, client):
        assert client.get("/api/patterns/00000000-0000-4000-8000-000000000404").status_code == 404

    def test_invalid_days_are_rejected(self, client):
        response = client.post("/api/patterns", json={
            "name": "Broken",
            "rotation_cycle_weeks": 1,
            "days": [day_payload(2, 1)],
        })
        assert response.status_code == 422

    def test_replace_days_recalculates_hours(self, client):
        template = create_template(client)

        response = client.put(f"/api/patterns/{template['id']}/days", json={
            "days": [day_payload(1, 1), day_payload(1, 2)],
        })

        assert response.status_code == 200
        assert response.json()["average_weekly_hours"] == 15.0
        assert len(response.json()["days"]) == 2

    def test_replace_days_outside_cycle_is_400(self, client):
        template = create_template(client)

        response = client.put(f"/api/patterns/{template['id']}/days", json={"days": [day_payload(3, 1)]})

        assert response.status_code == 400

    def test_archive_and_restore(self, client):
        template = create_template(client)

        archived = client.post(f"/api/patterns/{template['id']}/archive").json()
        restored = client.post(f"/api/patterns/{template['id']}/restore").json()

        assert archived["pattern_status"] == 3
        assert restored["pattern_status"] == 1

    def test_standard_patterns(self, client):
        categories = client.get("/api/patterns/standard/categories").json()
        seeded = client.post("/api/patterns/standard/seed").json()
        again = client.post("/api/patterns/standard/seed").json()

        assert "rotating" in categories
        assert len(seeded["created"]) == 11
        assert again["created"] == []
        assert len(client.get("/api/patterns", params={"standard_only": True}).json()) == 11

    def test_update_template_fields(self, client):
        template = create_template(client)

        response = client.patch(f"/api/patterns/{template['id']}", json={
            "name": "Office Days (Winter)",
            "generation_window_weeks": 4,
            "default_publish_status": 1001,
        })

        body = response.json()
        assert response.status_code == 200
        assert body["name"] == "Office Days (Winter)"
        assert body["generation_window_weeks"] == 4
        assert body["default_publish_status"] == 1001
        assert body["average_weekly_hours"] == 37.5

    def test_longer_cycle_recalculates_average_hours(self, client):
        template = create_template(client)

        body = client.patch(f"/api/patterns/{template['id']}", json={"rotation_cycle_weeks": 2}).json()

        assert body["rotation_cycle_weeks"] == 2
        assert body["total_rotation_hours"] == 37.5
        assert body["average_weekly_hours"] == 18.75

    def test_cycle_shorter_than_pattern_days_is_400(self, client):
        template = create_template(client, cycle=2)

        response = client.patch(f"/api/patterns/{template['id']}", json={"rotation_cycle_weeks": 1})

        assert response.status_code == 400
        assert client.get(f"/api/patterns/{template['id']}").json()["rotation_cycle_weeks"] == 2

    def test_invalid_generation_window_is_422(self, client):
        template = create_template(client)

        assert client.patch(f"/api/patterns/{template['id']}", json={"generation_window_weeks": 3}).status_code == 422

    def test_clone_copies_days_and_is_never_standard(self, client):
        seeded = client.post("/api/patterns/standard/seed").json()
        source = client.get("/api/patterns", params={"standard_only": True}).json()[0]
        assert seeded["created"]

        response = client.post(f"/api/patterns/{source['id']}/clone", json={})

        clone = response.json()
        assert response.status_code == 201
        assert clone["id"] != source["id"]
        assert clone["name"] == f"{source['name']} (Copy)"
        assert clone["is_standard_template"] is False
        assert clone["rotation_cycle_weeks"] == source["rotation_cycle_weeks"]
        assert clone["average_weekly_hours"] == source["average_weekly_hours"]
        assert len(clone["days"]) == len(client.get(f"/api/patterns/{source['id']}").json()["days"])

    def test_clone_with_new_name(self, client):
        template = create_template(client)

        clone = client.post(f"/api/patterns/{template['id']}/clone", json={"name": "Office Days B"}).json()

        assert clone["name"] == "Office Days B"
        assert len(client.get("/api/patterns").json()) == 2

    def test_delete_unused_template(self, client):
        template = create_template(client)

        response = client.delete(f"/api/patterns/{template['id']}")

        assert response.status_code == 204
        assert client.get(f"/api/patterns/{template['id']}").status_code == 404

    def test_template_with_assignments_cannot_be_deleted(self, client, people):
        template = create_template(client)
        assignment = create_assignment(client, template["id"])
        client.post(f"/api/pattern-assignments/{assignment['id']}/end", json={"end_date": "2024-02-01"})

        response = client.delete(f"/api/patterns/{template['id']}")

        assert response.status_code == 400
        assert "0 active, 1 ended" in response.json()["detail"]


class TestAssignmentRoutes:

    def test_create_assignment(self, client, people):
        template = create_template(client)

        assignment = create_assignment(client, template["id"], applies_to_days=["Monday"])

        assert assignment["name"] == "Alex Morgan - Office Days"
        assert assignment["applies_to_days"] == ["Monday"]
        listed = client.get("/api/pattern-assignments", params={"staff_member_id": STAFF_ID}).json()
        assert [a["id"] for a in listed] == [assignment["id"]]

    @pytest.mark.parametrize("fields", [
        {"rotation_start_week": 2},
        {"override_publish_status": True},
        {"staff_member_id": "00000000-0000-4000-8000-000000000404"},
    ])
    def test_invalid_assignment_is_400(self, client, people, fields):
        template = create_template(client)

        payload = {"staff_member_id": STAFF_ID, "template_id": template["id"], "start_date": "2024-01-01"}
        payload.update(fields)
        response = client.post("/api/pattern-assignments", json=payload)

        assert response.status_code == 400

    def test_archived_template_cannot_be_assigned(self, client, people):
        template = create_template(client)
        client.post(f"/api/patterns/{template['id']}/archive")

        payload = {"staff_member_id": STAFF_ID, "template_id": template["id"], "start_date": "2024-01-01"}
        assert client.post("/api/pattern-assignments", json=payload).status_code == 400

    def test_bulk_assignment_staggers_start_weeks(self, client, people):
        template = create_template(client, cycle=2)

        response = client.post("/api/pattern-assignments/bulk", json={
            "template_id": template["id"],
            "staff_member_ids": [STAFF_ID, OTHER_STAFF_ID, "00000000-0000-4000-8000-000000000404"],
            "start_date": "2024-01-01",
            "stagger_type": "stagger",
        })

        body = response.json()
        assert [a["rotation_start_week"] for a in body["created"]] == [1, 2]
        assert body["errors"][0]["staff_member_id"] == "00000000-0000-4000-8000-000000000404"

    def test_end_assignment(self, client, people):
        assignment = create_assignment(client, create_template(client)["id"])

        ended = client.post(f"/api/pattern-assignments/{assignment['id']}/end", json={"end_date": "2024-02-01"})
        too_early = client.post(f"/api/pattern-assignments/{assignment['id']}/end", json={"end_date": "2023-12-01"})

        assert ended.json()["assignment_status"] == 2
        assert ended.json()["end_date"] == "2024-02-01"
        assert too_early.status_code == 400

    def test_update_assignment(self, client, people):
        assignment = create_assignment(client, create_template(client, cycle=2)["id"])

        response = client.patch(f"/api/pattern-assignments/{assignment['id']}", json={
            "priority": 3,
            "rotation_start_week": 2,
            "applies_to_days": ["Tuesday", "Thursday"],
            "end_date": "2024-03-31",
        })

        body = response.json()
        assert response.status_code == 200
        assert body["priority"] == 3
        assert body["rotation_start_week"] == 2
        assert body["applies_to_days"] == ["Tuesday", "Thursday"]
        assert body["end_date"] == "2024-03-31"
        assert body["start_date"] == "2024-01-01"

    def test_clearing_applies_to_days(self, client, people):
        assignment = create_assignment(client, create_template(client)["id"], applies_to_days=["Monday"])

        body = client.patch(f"/api/pattern-assignments/{assignment['id']}", json={"applies_to_days": []}).json()

        assert body["applies_to_days"] == []

    @pytest.mark.parametrize("fields", [
        {"rotation_start_week": 2},
        {"end_date": "2023-12-31"},
        {"override_publish_status": True},
    ])
    def test_invalid_update_is_400(self, client, people, fields):
        assignment = create_assignment(client, create_template(client)["id"])

        response = client.patch(f"/api/pattern-assignments/{assignment['id']}", json=fields)

        assert response.status_code == 400

    def test_delete_assignment_keeps_generated_shifts(self, client, people, session_factory):
        assignment = create_assignment(client, create_template(client)["id"])
        client.post("/api/pattern-generation/generate", json={
            "assignment_id": assignment["id"],
            "start_date": "2024-01-01",
            "end_date": "2024-01-07",
            "rota_id": ROTA_ID,
        })

        response = client.delete(f"/api/pattern-assignments/{assignment['id']}")

        assert response.status_code == 204
        assert client.delete(f"/api/pattern-assignments/{assignment['id']}").status_code == 404
        db = session_factory()
        shifts = db.query(Shift).filter(Shift.staff_member_id == STAFF_ID).all()
        db.close()
        assert len(shifts) == 5
        assert all(s.pattern_assignment_id is None for s in shifts)

    def test_generation_status(self, client, people):
        assignment = create_assignment(client, create_template(client, every_day=True)["id"])

        body = client.get(f"/api/pattern-assignments/{assignment['id']}/generation-status").json()

        assert body["is_generation_needed"]
        assert body["days_until_generation_needed"] == -1
        assert body["window"]["days_to_generate"] == 15
        assert body["estimated_shifts"] == 15
        assert body["window_label"].endswith("(15 days)")

    def test_pattern_change_impact(self, client, people):
        assignment = create_assignment(client, create_template(client)["id"])
        client.post("/api/pattern-generation/generate", json={
            "assignment_id": assignment["id"],
            "start_date": "2024-01-01",
            "end_date": "2024-01-14",
            "rota_id": ROTA_ID,
        })

        response = client.get(
            f"/api/pattern-assignments/{assignment['id']}/pattern-change-impact",
            params={"effective_date": "2024-01-08"},
        )

        body = response.json()
        assert len(body["shifts_to_delete"]) == 5
        assert all(s["shift_date"] >= "2024-01-08" for s in body["shifts_to_delete"])
        assert len(body["assignments_to_regenerate"]) == 1
        assert body["summary"] == "1 assignments will be regenerated. 5 existing shifts will be replaced."


class TestGenerationRoutes:

    def request(self, assignment_id, **fields):
        payload = {
            "assignment_id": assignment_id,
            "start_date": "2024-01-01",
            "end_date": "2024-01-07",
            "rota_id": ROTA_ID,
        }
        payload.update(fields)
        return payload

    def test_generate_creates_shifts_and_log(self, client, people, session_factory):
        assignment = create_assignment(client, create_template(client)["id"])

        response = client.post("/api/pattern-generation/generate", json=self.request(assignment["id"]))

        body = response.json()
        assert response.status_code == 200
        assert len(body["shifts_created"]) == 5
        assert {s["reason"] for s in body["shifts_skipped"]} == {"rest day"}
        db = session_factory()
        assert db.query(Shift).count() == 5
        db.close()

        logs = client.get(f"/api/pattern-generation/logs/{assignment['id']}").json()
        assert len(logs) == 1
        assert logs[0]["shifts_generated"] == 5

    def test_preview_never_writes(self, client, people, session_factory):
        assignment = create_assignment(client, create_template(client)["id"])

        body = client.post(
            "/api/pattern-generation/preview", json=self.request(assignment["id"], dry_run=False)
        ).json()

        assert body["dry_run"]
        assert body["shifts_created"][0]["id"] == "dry-run-2024-01-01"
        db = session_factory()
        assert db.query(Shift).count() == 0
        db.close()
        assert client.get(f"/api/pattern-generation/logs/{assignment['id']}").json() == []

    def test_conflict_resolutions_are_applied(self, client, people):
        assignment = create_assignment(client, create_template(client)["id"])
        client.post("/api/pattern-generation/generate", json=self.request(assignment["id"], end_date="2024-01-01"))
        other = create_assignment(client, create_template(client, name="Cover")["id"], priority=0)

        body = client.post("/api/pattern-generation/generate", json=self.request(
            other["id"], end_date="2024-01-02", conflict_resolutions={"2024-01-01": "keep"},
        )).json()

        reasons = {s["date"]: s["reason"] for s in body["shifts_skipped"]}
        assert reasons["2024-01-01"] == "Conflict: existing_shift - keep"

    def test_reversed_range_is_400(self, client):
        payload = self.request("00000000-0000-4000-8000-000000000404", start_date="2024-01-07", end_date="2024-01-01")
        assert client.post("/api/pattern-generation/generate", json=payload).status_code == 400

    def test_unknown_assignment_is_reported_in_the_result(self, client):
        body = client.post(
            "/api/pattern-generation/generate", json=self.request("00000000-0000-4000-8000-000000000404")
        ).json()
        assert body["errors"] == ["Assignment 00000000-0000-4000-8000-000000000404 not found"]

    def test_conflicts_endpoint(self, client, people):
        assignment = create_assignment(client, create_template(client)["id"])
        client.post("/api/pattern-generation/generate", json=self.request(assignment["id"]))

        conflicts = client.post("/api/pattern-generation/conflicts", json={
            "staff_member_id": STAFF_ID, "start_date": "2024-01-01", "end_date": "2024-01-07",
        }).json()
        excluded = client.post("/api/pattern-generation/conflicts", json={
            "staff_member_id": STAFF_ID, "start_date": "2024-01-01", "end_date": "2024-01-07",
            "exclude_assignment_id": assignment["id"],
        }).json()

        assert len(conflicts) == 5
        assert excluded == []

    def test_batch_dry_run(self, client, people):
        assignment = create_assignment(client, create_template(client, every_day=True)["id"])

        body = client.post("/api/pattern-generation/batch", json={
            "assignment_ids": [assignment["id"]], "dry_run": True, "delay_ms": 0,
        }).json()

        assert body["assignments_processed"] == 1
        assert body["total_shifts_generated"] == 15
        assert body["errors"] == []

    def test_active_assignment(self, client, people):
        assignment = create_assignment(client, create_template(client)["id"])

        found = client.get("/api/pattern-generation/active-assignment",
                           params={"staff_member_id": STAFF_ID, "target_date": "2024-01-03"})
        missing = client.get("/api/pattern-generation/active-assignment",
                             params={"staff_member_id": STAFF_ID, "target_date": "2023-12-01"})

        assert found.json()["id"] == assignment["id"]
        assert missing.status_code == 404


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
