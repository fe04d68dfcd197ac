import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import select

from giveaway.models.serial import IssuedSerial, SequenceCounter
from giveaway.repositories.serial_repo import SerialRepository
from giveaway.services.serial_allocator import (
    SerialAllocationError,
    SerialAllocator,
    format_serial,
    max_sequence_in,
    normalize_serials,
    parse_sequence_number,
)


class TestParsing:
    def test_format_serial(self):
        assert format_serial("TN01", 42) == "TN01 0000042"
        assert format_serial("KL07", 12345678) == "KL07 12345678"

    def test_normalize_serials_shapes(self):
        assert normalize_serials(None) == []
        assert normalize_serials(["TN01 0000001", "TN01 0000002"]) == [
            "TN01 0000001",
            "TN01 0000002",
        ]
        assert normalize_serials("TN01 0000001, TN01 0000002") == [
            "TN01 0000001",
            "TN01 0000002",
        ]
        assert normalize_serials(["TN01 0000001,TN01 0000002", 7, ""]) == [
            "TN01 0000001",
            "TN01 0000002",
        ]
        assert normalize_serials({"x": 1}) == []

    def test_parse_sequence_number(self):
        assert parse_sequence_number("TN01 0000007", "TN01") == 7
        assert parse_sequence_number("tn01 0000007", "TN01") == 7
        assert parse_sequence_number("TN010000007", "TN01") == 7
        assert parse_sequence_number("KL01 0000007", "TN01") is None
        assert parse_sequence_number("TN01 abc", "TN01") is None

    def test_max_sequence_ignores_other_series(self):
        raw = [
            ["TN01 0000003", "KL01 0000099"],
            "TN01 0000001,TN01 0000005",
            ["garbage"],
        ]
        assert max_sequence_in(raw, "TN01") == 5
        assert max_sequence_in(raw, "KL01") == 99
        assert max_sequence_in(raw, "KA01") == 0


class TestScanStrategy:
    def test_fresh_series_starts_at_one(self, session, allocator):
        serials = allocator.allocate_serials(session, "TN01", 3)
        assert serials == ["TN01 0000001", "TN01 0000002", "TN01 0000003"]

    def test_continues_after_stored_history(
        self, session, allocator, make_user, make_order
    ):
        make_order(make_user(), mug_serials=["TN01 0000005"])
        assert allocator.allocate_serials(session, "TN01", 2) == [
            "TN01 0000006",
            "TN01 0000007",
        ]

    def test_reads_legacy_comma_joined_history(
        self, session, allocator, make_user, make_order
    ):
        make_order(make_user(), mug_serials="TN01 0000001,TN01 0000002")
        assert allocator.allocate_serials(session, "TN01", 1) == ["TN01 0000003"]

    def test_series_are_independent(self, session, allocator, make_user, make_order):
        make_order(make_user(), mug_serials=["KL01 0000040"])
        assert allocator.allocate_serials(session, "TN01", 1) == ["TN01 0000001"]
        assert allocator.allocate_serials(session, "KL01", 1) == ["KL01 0000041"]

    def test_consecutive_allocations_do_not_overlap(self, session, allocator):
        first = allocator.allocate_serials(session, "TN01", 2)
        second = allocator.allocate_serials(session, "TN01", 2)
        assert first == ["TN01 0000001", "TN01 0000002"]
        assert second == ["TN01 0000003", "TN01 0000004"]

    def test_registry_rows_written(self, session, allocator):
        allocator.allocate_serials(session, "KA01", 2)
        session.commit()
        rows = session.exec(
            select(IssuedSerial).order_by(IssuedSerial.sequence_number)
        ).all()
        assert [(r.series_code, r.sequence_number, r.serial) for r in rows] == [
            ("KA01", 1, "KA01 0000001"),
            ("KA01", 2, "KA01 0000002"),
        ]

    def test_lowercase_code_is_normalised(self, session, allocator):
        assert allocator.allocate_serials(session, "tn01", 1) == ["TN01 0000001"]

    @pytest.mark.parametrize(
        "code, quantity",
        [("TN1", 1), ("TN011", 1), ("A%_1", 1), ("1234", 1), ("TN01", 0)],
    )
    def test_rejects_bad_input(self, session, allocator, code, quantity):
        with pytest.raises(ValueError):
            allocator.allocate_serials(session, code, quantity)

    def test_rescans_after_conflict(self, session, settings, counter_repo):
        class RacyRepo(SerialRepository):
            """Pretends history is empty on the first scan only."""

            def __init__(self):
                self.scans = 0

            def max_registered_sequence(self, session, series_code):
                self.scans += 1
                if self.scans == 1:
                    return 0
                return super().max_registered_sequence(session, series_code)

        # Another checkout already holds TN01 0000001.
        session.add(IssuedSerial(series_code="TN01", sequence_number=1, serial="TN01 0000001"))
        session.commit()

        repo = RacyRepo()
        allocator = SerialAllocator(repo, counter_repo, settings)
        assert allocator.allocate_serials(session, "TN01", 1) == ["TN01 0000002"]
        assert repo.scans == 2

    def test_gives_up_after_retry_budget(self, session, settings, counter_repo, monkeypatch):
        allocator = SerialAllocator(SerialRepository(), counter_repo, settings)

        def always_conflict(*args, **kwargs):
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))

        monkeypatch.setattr(allocator, "_register_block", always_conflict)
        with pytest.raises(SerialAllocationError):
            allocator.allocate_serials(session, "TN01", 1)

    def test_history_read_failure_raises_allocation_error(
        self, session, settings, counter_repo
    ):
        class BrokenRepo(SerialRepository):
            def list_stored_serials(self, session, series_code):
                raise OperationalError("SELECT", {}, Exception("connection lost"))

        allocator = SerialAllocator(BrokenRepo(), counter_repo, settings)
        with pytest.raises(SerialAllocationError):
            allocator.allocate_serials(session, "TN01", 1)

    def test_registry_write_failure_raises_allocation_error(
        self, session, settings, counter_repo, make_user, make_order
    ):
        class DiskFullRepo(SerialRepository):
            def register(self, session, rows):
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        allocator = SerialAllocator(DiskFullRepo(), counter_repo, settings)
        with pytest.raises(SerialAllocationError):
            allocator.allocate_serials(session, "TN01", 1)

        # The outer transaction is still usable.
        order = make_order(make_user(), mug_serials=["TN01 0000001"])
        assert order.id is not None


class TestCounterStrategy:
    @pytest.fixture
    def counter_allocator(self, settings, counter_repo):
        counter_settings = settings.model_copy(
            update={"SERIAL_ALLOCATION_STRATEGY": "counter"}
        )
        return SerialAllocator(SerialRepository(), counter_repo, counter_settings)

    def test_seeds_from_history(self, session, counter_allocator, make_user, make_order):
        make_order(make_user(), mug_serials=["TN01 0000005"])

        assert counter_allocator.allocate_serials(session, "TN01", 2) == [
            "TN01 0000006",
            "TN01 0000007",
        ]
        assert counter_allocator.allocate_serials(session, "TN01", 1) == ["TN01 0000008"]

        session.commit()
        counter = session.get(SequenceCounter, "serial:TN01")
        assert counter.last_value == 8

    def test_scan_continues_after_counter(self, session, counter_allocator, allocator):
        assert counter_allocator.allocate_serials(session, "KL07", 2) == [
            "KL07 0000001",
            "KL07 0000002",
        ]
        assert allocator.allocate_serials(session, "KL07", 1) == ["KL07 0000003"]
