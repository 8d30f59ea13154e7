"""
Tests for Room State Engine
Derivación del estado de habitación a partir del orden de filas del ledger
"""

import pytest

from ledger_builders import build_sheet
from models.booking import RoomState, normalize_room
from models.room_override import RoomOverrideStatus
from utils.room_state_engine import RoomIndex, RoomStateEngine, room_sort_key
from utils.schema_resolver import resolve_schema

CLEANED = "Cleaned - ReadyFor Rent"


def _engine(sheet):
    return RoomStateEngine(sheet, resolve_schema(sheet.header_row()))


def _out(room, **extra):
    record = {"room": room, "guest": "Old Guest", "checkIn": "Yes", "checkOut": "Yes",
              "checkInTime": "2026-01-01 15:00:00", "checkOutTime": "2026-01-03 11:00:00"}
    record.update(extra)
    return record


def _active(room, guest="New Guest"):
    return {"room": room, "guest": guest, "checkIn": "Yes", "checkInTime": "2026-01-05 15:00:00"}


class TestRoomIdentity:

    @pytest.mark.parametrize("raw, expected", [
        ("101", "101"),
        (" 05 ", "5"),
        ("07", "7"),
        ("0", "0"),
        ("00", "0"),
        (101.0, "101"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize_room(self, raw, expected):
        assert normalize_room(raw) == expected

    def test_room_sort_key(self):
        assert sorted(["10", "A1", "9", "101"], key=room_sort_key) == ["9", "10", "101", "A1"]

    def test_index_groups_normalized_rooms_and_skips_blank(self):
        sheet = build_sheet(_out("07"), {"room": ""}, _active("7"), _out("8"))
        index = RoomIndex.build(sheet, resolve_schema(sheet.header_row()))
        assert index.rooms() == ["7", "8"]
        assert index.rows_for("07") == [2, 4]
        assert index.rows_before("7", 4) == [2]
        assert index.rows_after("7", 2) == [4]


class TestDerive:

    def test_room_without_rows_is_available(self):
        assert _engine(build_sheet()).derive("101").status == RoomState.AVAILABLE

    def test_checked_out_room_reoccupied_later(self):
        sheet = build_sheet(_out("101", hkDone="Yes", hkStatus=CLEANED), _active("101", "Maria"))
        snapshot = _engine(sheet).derive("101")
        assert snapshot.status == RoomState.OCCUPIED
        assert snapshot.guest == "Maria"
        assert snapshot.source_row == 3

    def test_checkout_without_housekeeping_is_ready_for_cleaning(self):
        sheet = build_sheet(_out("101"))
        snapshot = _engine(sheet).derive("101")
        assert snapshot.status == RoomState.READY_FOR_CLEANING
        assert snapshot.check_out_time == "2026-01-03 11:00:00"

    def test_housekeeping_done_is_available(self):
        sheet = build_sheet(_out("101", hkDone="Yes", hkStatus=CLEANED))
        snapshot = _engine(sheet).derive("101")
        assert snapshot.status == RoomState.AVAILABLE
        assert snapshot.cleaned_ready

    def test_cleaned_time_counts_as_housekeeping_done(self):
        sheet = build_sheet(_out("101", cleanedTime="2026-01-03 13:00:00"))
        assert _engine(sheet).derive("101").status == RoomState.AVAILABLE

    def test_leading_zero_rows_are_the_same_room(self):
        sheet = build_sheet(_out("07"), _active("7"))
        assert _engine(sheet).derive("07").status == RoomState.OCCUPIED

    def test_latest_active_row_wins(self):
        sheet = build_sheet(_active("101", "First"), _active("101", "Second"))
        engine = _engine(sheet)
        snapshot = engine.derive("101")
        assert snapshot.guest == "Second"
        assert engine.detect_conflicts("101") == [2, 3]

    def test_historical_row_not_ready_for_cleaning(self):
        sheet = build_sheet(_out("101"), {"room": "101", "guest": "Walk-in"})
        engine = _engine(sheet)
        assert engine.derive("101").status == RoomState.READY_FOR_CLEANING
        sheet.mark_historical(2)
        assert engine.derive("101").status == RoomState.AVAILABLE

    def test_is_reoccupied_after_is_strictly_later(self):
        sheet = build_sheet(_active("101"), _out("101"))
        engine = _engine(sheet)
        assert not engine.is_reoccupied_after("101", 3)
        assert engine.is_reoccupied_after("101", 1)


class TestCorrections:

    def setup_method(self):
        self.sheet = build_sheet(
            _out("101", hkDone="Yes", hkStatus=CLEANED),
            _out("0101", hkStatus=CLEANED),
            _active("101"),
            _out("101", hkStatus=CLEANED),
        )
        self.engine = _engine(self.sheet)
        self.schema = self.engine.schema

    def test_clear_stale_cleaned_status_only_earlier_rows(self):
        cleared = self.engine.clear_stale_cleaned_status("101", 4)
        assert cleared == [2, 3]
        assert self.sheet.get_value(2, self.schema.col("hkStatus")) == ""
        assert self.sheet.get_value(5, self.schema.col("hkStatus")) == CLEANED

    def test_mark_superseded_rows_only_earlier_checked_out(self):
        assert self.engine.mark_superseded_rows("101", 4) == [2, 3]
        assert not self.sheet.is_historical(4)
        assert not self.sheet.is_historical(5)
        # segunda vez no vuelve a marcar
        assert self.engine.mark_superseded_rows("101", 4) == []

    def test_mark_if_superseded_needs_later_check_in(self):
        sheet = build_sheet(_out("101"), _active("0101"), _out("101"), _out("102"))
        engine = _engine(sheet)

        assert engine.mark_if_superseded("101", 2)
        assert not engine.mark_if_superseded("101", 4)
        assert not engine.mark_if_superseded("102", 5)
        assert not engine.mark_if_superseded("101", 3)
        assert sheet.historical_rows == {2}

    def test_refresh_historical_marks(self):
        sheet = build_sheet(_out("101"), _out("101"), _active("101"), _out("102"))
        assert _engine(sheet).refresh_historical_marks() == 2
        assert sheet.historical_rows == {2, 3}


class TestViews:

    def setup_method(self):
        self.sheet = build_sheet(
            _out("101"),
            _active("101"),
            _out("102"),
            _out("103", hkDone="Yes"),
        )
        self.sheet.mark_historical(2)
        self.engine = _engine(self.sheet)

    def test_availability_with_overrides(self):
        overrides = {
            "102": RoomOverrideStatus.MAINTENANCE,
            "305": RoomOverrideStatus.OUT_OF_ORDER,
            "101": RoomOverrideStatus.AVAILABLE,
        }
        board = self.engine.availability(overrides)
        assert list(board) == ["101", "102", "103", "305"]
        assert board["101"].status == RoomState.OCCUPIED
        assert board["101"].override is None
        assert board["102"].status == RoomState.READY_FOR_CLEANING
        assert board["102"].display_status == "Maintenance"
        assert board["305"].status == RoomState.AVAILABLE
        assert board["305"].display_status == "Out of Order"

    def test_pending_housekeeping_skips_historical_and_done(self):
        pending = self.engine.pending_housekeeping()
        assert [item["row"] for item in pending] == [4]
        assert pending[0]["room"] == "102"
        assert pending[0]["check_out_time"] == "01/03/2026 11:00 AM"
