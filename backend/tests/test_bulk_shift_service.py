import threading
import time

from carerota.services.bulk_shift_service import bulk_create_shifts


class TestBulkCreateShifts:

    def test_all_items_are_created(self):
        created = []
        lock = threading.Lock()

        def create(item):
            with lock:
                created.append(item)

        result = bulk_create_shifts(list(range(12)), create, concurrency=4)

        assert result.success == 12
        assert result.failed == 0
        assert sorted(created) == list(range(12))

    def test_failures_are_counted_without_stopping_other_items(self):
        def create(item):
            if item % 3 == 0:
                raise ValueError(f"shift {item} overlaps")
            if item == 4:
                raise RuntimeError()

        result = bulk_create_shifts(list(range(7)), create, concurrency=2)

        assert result.success == 3
        assert result.failed == 4
        assert sorted(result.errors) == ["RuntimeError", "shift 0 overlaps", "shift 3 overlaps", "shift 6 overlaps"]

    def test_progress_is_reported_once_per_item_in_order(self):
        progress = []

        bulk_create_shifts(list(range(9)), lambda item: None, concurrency=3,
                           on_progress=lambda done, total: progress.append((done, total)))

        assert progress == [(i, 9) for i in range(1, 10)]

    def test_concurrency_is_bounded(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        def create(item):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1

        result = bulk_create_shifts(list(range(10)), create, concurrency=3)

        assert result.success == 10
        assert 1 <= peak <= 3

    def test_failing_progress_callback_does_not_lose_items(self):
        calls = []
        created = []

        def on_progress(done, total):
            calls.append(done)
            raise RuntimeError("progress bar closed")

        result = bulk_create_shifts([1, 2, 3], created.append, concurrency=1, on_progress=on_progress)

        assert created == [1, 2, 3]
        assert (result.success, result.failed, result.errors) == (3, 0, [])
        assert calls == [1, 2, 3]

    def test_empty_input(self):
        progress = []

        result = bulk_create_shifts([], lambda item: None, on_progress=lambda *args: progress.append(args))

        assert (result.success, result.failed, result.errors) == (0, 0, [])
        assert progress == []
