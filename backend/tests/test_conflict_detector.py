from datetime import date

from carerota.services.conflict_detector import ConflictDetector

from helpers import ASSIGNMENT_ID, MONDAY, OTHER_STAFF_ID, STAFF_ID, make_leave, make_shift


class TestConflictDetector:

    def test_shift_and_leave_on_same_date_are_separate_conflicts(self, store):
        store.add_shift(make_shift(MONDAY))
        store.leave.append(make_leave(MONDAY, MONDAY))

        conflicts = ConflictDetector(store).detect_conflicts(STAFF_ID, MONDAY, MONDAY)

        assert len(conflicts) == 2
        assert {c.type for c in conflicts} == {"existing_shift", "approved_leave"}
        assert all(c.date == MONDAY for c in conflicts)

    def test_leave_is_expanded_per_day_and_clipped_to_range(self, store):
        store.leave.append(make_leave(date(2023, 12, 30), date(2024, 1, 3)))

        conflicts = ConflictDetector(store).detect_conflicts(STAFF_ID, MONDAY, date(2024, 1, 7))

        assert [c.date for c in conflicts] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]
        assert all(c.type == "approved_leave" for c in conflicts)
        assert conflicts[0].description == "Approved leave: Annual Leave"

    def test_overlapping_leave_is_not_duplicated(self, store):
        store.leave.append(make_leave(MONDAY, date(2024, 1, 3)))
        store.leave.append(make_leave(date(2024, 1, 2), date(2024, 1, 4), type_name="Sick"))

        conflicts = ConflictDetector(store).detect_conflicts(STAFF_ID, MONDAY, date(2024, 1, 7))

        assert [c.date for c in conflicts] == [date(2024, 1, d) for d in (1, 2, 3, 4)]

    def test_shifts_from_the_regenerated_assignment_are_excluded(self, store):
        own = store.add_shift(make_shift(MONDAY, assignment_id=ASSIGNMENT_ID, generated=True))
        other = store.add_shift(make_shift(date(2024, 1, 2)))

        conflicts = ConflictDetector(store).detect_conflicts(
            STAFF_ID, MONDAY, date(2024, 1, 7), exclude_assignment_id=ASSIGNMENT_ID
        )

        ids = [c.existing_shift_id for c in conflicts]
        assert other.id in ids
        assert own.id not in ids

    def test_existing_shift_description_and_reference(self, store):
        shift = store.add_shift(make_shift(MONDAY))

        conflict = ConflictDetector(store).detect_conflicts(STAFF_ID, MONDAY, MONDAY)[0]

        assert conflict.description == "Existing shift 08:00 - 16:00"
        assert conflict.existing_shift_id == shift.id
        assert conflict.existing_leave_id is None

    def test_other_staff_is_ignored(self, store):
        store.add_shift(make_shift(MONDAY, staff_member_id=OTHER_STAFF_ID))
        store.leave.append(make_leave(MONDAY, MONDAY, staff_member_id=OTHER_STAFF_ID))

        assert ConflictDetector(store).detect_conflicts(STAFF_ID, MONDAY, MONDAY) == []
