"""
Tests for Booking Lifecycle Controller
Ediciones de celda -> transiciones, campos protegidos y operaciones masivas
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from ledger_builders import FIXED_NOW, build_invoice_service, build_sheet
from models.booking import RoomState
from services.booking_lifecycle import (
    BookingLifecycleController,
    BulkResult,
    EditOutcome,
    build_default_dispatcher,
    subscribe_dashboard_refresh,
)
from utils.domain_events import EventDispatcher, RoomCheckedIn, RoomCheckedOut
from utils.ledger_errors import InvalidNumericInput, LockUnavailable
from utils.schema_resolver import resolve_schema

CLEANED = "Cleaned - ReadyFor Rent"


def _new(room="101", guest="Ana Lopez", **extra):
    record = {"room": room, "guest": guest, "amount": "85", "nights": "2", "taxRate": "0.13"}
    record.update(extra)
    return record


def _active(room="101", **extra):
    return _new(room, checkIn="Yes", checkInTime="2026-01-08 15:00:00", **extra)


def _checked_out(room="101", **extra):
    record = _active(room, checkOut="Yes", checkOutTime="2026-01-09 11:00:00", subtotal="170.00", total="192.10")
    record.update(extra)
    return record


class LifecycleTestBase:

    def build(self, *records, dispatcher=None):
        self.sheet = build_sheet(*records)
        self.schema = resolve_schema(self.sheet.header_row())
        self.invoice_service = build_invoice_service()
        self.controller = BookingLifecycleController(
            self.sheet,
            invoice_service=self.invoice_service,
            dispatcher=dispatcher,
            clock=lambda: FIXED_NOW,
        )

    def cell(self, row, key):
        return self.sheet.get_value(row, self.schema.col(key))


class TestCheckIn(LifecycleTestBase):

    def test_check_in_stamps_recalculates_and_corrects_older_rows(self):
        self.build(_checked_out(hkDone="Yes", hkStatus=CLEANED), _new(guest="Maria"))

        outcome = self.controller.apply_edit(3, "checkIn", "Yes")

        assert outcome.accepted
        assert outcome.transition == "check_in"
        assert self.cell(3, "checkInTime") == FIXED_NOW
        assert self.cell(3, "total") == Decimal("192.10")
        assert self.cell(2, "hkStatus") == ""
        assert self.sheet.is_historical(2)
        assert outcome.corrections["cleared_cleaned_rows"] == [2]
        assert outcome.corrections["historical_rows"] == [2]
        assert outcome.room_state.status == RoomState.OCCUPIED
        assert outcome.room_state.guest == "Maria"

    def test_check_in_time_is_stamped_once(self):
        self.build(_new(checkInTime="2026-01-01 09:00:00"))
        self.controller.apply_edit(2, "CheckIn", "yes")
        assert self.cell(2, "checkInTime") == "2026-01-01 09:00:00"

    def test_second_open_check_in_is_reported(self):
        self.build(_active(), _new(guest="Second"))
        outcome = self.controller.apply_edit(3, "checkIn", True)
        assert any(w["code"] == "MULTIPLE_OCCUPANCY" for w in outcome.warnings)
        assert outcome.room_state.guest == "Second"

    def test_failing_reaction_does_not_abort_edit(self):
        dispatcher = build_default_dispatcher()
        dispatcher.subscribe(RoomCheckedIn, "explode", Mock(side_effect=RuntimeError("boom")))
        self.build(_new(), dispatcher=dispatcher)

        outcome = self.controller.apply_edit(2, "checkIn", "Yes")

        assert outcome.accepted
        assert outcome.transition == "check_in"
        assert {"code": "REACTION_FAILED", "message": "explode: boom", "severity": "warning"} in outcome.warnings
        assert self.cell(2, "checkInTime") == FIXED_NOW


class TestCheckOut(LifecycleTestBase):

    def test_check_out_sets_housekeeping_and_invoice(self):
        self.build(_active(guestEmail="ana@example.com"))

        outcome = self.controller.apply_edit(2, "checkOut", "Yes")

        assert outcome.transition == "check_out"
        assert self.cell(2, "checkOutTime") == FIXED_NOW
        assert self.cell(2, "hkStatus") == "Ready for Cleaning"
        assert self.cell(2, "total") == Decimal("192.10")
        assert self.cell(2, "invoiceNo") == "INV-000001"
        assert self.cell(2, "invoiceStatus") == "PAID"
        assert outcome.invoice.generated
        assert outcome.room_state.status == RoomState.READY_FOR_CLEANING

    def test_lock_unavailable_keeps_checkout(self):
        self.build(_active())
        self.invoice_service.allocator.next_invoice_number.side_effect = LockUnavailable("INVOICE_SEQ", 15)

        outcome = self.controller.apply_edit(2, "checkOut", "Yes")

        assert outcome.accepted
        assert outcome.error_code == "LOCK_UNAVAILABLE"
        assert self.cell(2, "checkOutTime") == FIXED_NOW
        assert self.cell(2, "invoiceNo") == ""

    def test_renderer_failure_reported_as_warning(self):
        self.build(_active())
        self.invoice_service.renderer.render.side_effect = OSError("disk full")
        outcome = self.controller.apply_edit(2, "checkOut", "Yes")
        assert outcome.error_code is None
        assert any(w["code"] == "INVOICE_FAILED" for w in outcome.warnings)

    def test_checkout_without_check_in_warns(self):
        self.build(_new())
        outcome = self.controller.apply_edit(2, "checkOut", "Yes")
        assert any(w["code"] == "CHECKOUT_WITHOUT_CHECKIN" for w in outcome.warnings)

    def test_dashboard_refresh_called(self):
        dispatcher = build_default_dispatcher()
        callback = Mock()
        subscribe_dashboard_refresh(dispatcher, callback)
        self.build(_active(), dispatcher=dispatcher)

        self.controller.apply_edit(2, "checkOut", "Yes")

        event = callback.call_args.args[0]
        assert isinstance(event, RoomCheckedOut)
        assert event.row == 2

    def test_late_checkout_of_older_row_becomes_historical(self):
        self.build(_active(guest="Old Guest"), _active(guest="New Guest"))

        outcome = self.controller.apply_edit(2, "checkOut", "Yes")

        assert self.sheet.is_historical(2)
        assert outcome.corrections["historical_rows"] == [2]
        assert outcome.room_state.status == RoomState.OCCUPIED
        assert outcome.room_state.guest == "New Guest"
        assert self.controller.build_engine().pending_housekeeping() == []

    def test_checkout_of_latest_row_stays_current(self):
        self.build(_checked_out(), _active(guest="New Guest"))

        outcome = self.controller.apply_edit(3, "checkOut", "Yes")

        assert not self.sheet.is_historical(3)
        assert "historical_rows" not in outcome.corrections
        assert outcome.room_state.source_row == 3


class TestProtectedFields(LifecycleTestBase):

    def test_total_locked_after_checkout(self):
        self.build(_checked_out())
        outcome = self.controller.apply_edit(2, "Total With Tax", "150")

        assert not outcome.accepted
        assert outcome.error_code == "PROTECTED_FIELD_EDIT"
        assert self.cell(2, "total") == "192.10"

    def test_total_before_checkout_calculates_backward(self):
        self.build(_active())
        outcome = self.controller.apply_edit(2, "total", "226")

        assert outcome.transition == "quote_backward"
        assert self.cell(2, "amount") == Decimal("100.00")
        assert self.cell(2, "subtotal") == Decimal("200.00")
        assert self.cell(2, "total") == Decimal("226")

    @pytest.mark.parametrize("field", ["checkInTime", "CheckOutTime", "CleanedTime"])
    def test_timestamp_edits_are_reverted(self, field):
        self.build(_checked_out(cleanedTime="2026-01-09 13:00:00"))
        column = self.schema.col(field[0].lower() + field[1:])
        before = self.sheet.get_value(2, column)

        outcome = self.controller.apply_edit(2, field, "2020-01-01 00:00:00")

        assert not outcome.accepted
        assert outcome.error_code == "PROTECTED_FIELD_EDIT"
        assert self.sheet.get_value(2, column) == before


class TestQuoteEdits(LifecycleTestBase):

    def test_rate_edit_recalculates(self):
        self.build(_active())
        outcome = self.controller.apply_edit(2, "Amount", "100")
        assert outcome.transition == "quote_forward"
        assert self.cell(2, "total") == Decimal("226.00")

    def test_non_numeric_rate_is_coerced_and_reported(self):
        self.build(_active())
        outcome = self.controller.apply_edit(2, "amount", "ask manager")
        assert outcome.warnings[0]["code"] == InvalidNumericInput.code
        assert self.cell(2, "total") == Decimal("0.00")

    def test_rate_edit_after_checkout_keeps_total(self):
        self.build(_checked_out())
        outcome = self.controller.apply_edit(2, "amount", "100")
        assert outcome.transition is None
        assert outcome.warnings[0]["code"] == "QUOTE_LOCKED"
        assert self.cell(2, "total") == "192.10"

    def test_payment_type(self):
        self.build(_active())
        assert self.controller.apply_edit(2, "paymentType", "Credit Card - Visa").warnings == []
        outcome = self.controller.apply_edit(2, "paymentType", "Bitcoin")
        assert outcome.transition == "payment_type"
        assert outcome.warnings[0]["code"] == "NON_STANDARD_PAYMENT_TYPE"


class TestHousekeeping(LifecycleTestBase):

    def test_housekeeping_done_marks_room_cleaned(self):
        self.build(_checked_out(hkStatus="Ready for Cleaning"))
        outcome = self.controller.apply_edit(2, "hkDone", "Yes")

        assert outcome.transition == "housekeeping_done"
        assert self.cell(2, "hkStatus") == CLEANED
        assert self.cell(2, "cleanedTime") == FIXED_NOW
        assert outcome.corrections["reoccupied"] is False
        assert outcome.room_state.status == RoomState.CLEANED

    def test_housekeeping_done_on_reoccupied_room(self):
        self.build(_checked_out(hkStatus="Ready for Cleaning"), _active(guest="Maria"))
        outcome = self.controller.apply_edit(2, "hkDone", "Yes")

        assert self.cell(2, "hkStatus") == ""
        assert outcome.corrections["reoccupied"] is True
        assert outcome.room_state.status == RoomState.OCCUPIED


class TestEditBoundaries(LifecycleTestBase):

    def test_header_edit_repairs_headers(self):
        self.build()
        outcome = self.controller.apply_edit(1, "Number of Night(s)", "Quoted Nights")
        assert outcome.transition == "header_repair"
        assert outcome.corrections["headers"][0]["new"] == "Number of Night(s)"
        assert "Number of Night(s)" in self.sheet.header_row()

    def test_unknown_column(self):
        self.build(_new())
        with pytest.raises(KeyError):
            self.controller.apply_edit(2, "Minibar", "1")

    def test_column_past_header_width(self):
        self.build(_new())
        width = len(self.sheet.header_row())
        with pytest.raises(KeyError):
            self.controller.apply_edit(2, width + 1, "x")
        with pytest.raises(KeyError):
            self.controller.apply_edit(2, str(width + 3), "x")
        assert self.sheet.last_column == width

    def test_unknown_row(self):
        self.build(_new())
        with pytest.raises(IndexError):
            self.controller.apply_edit(9, "checkIn", "Yes")

    def test_unchecking_does_nothing(self):
        self.build(_new())
        outcome = self.controller.apply_edit(2, "checkIn", "")
        assert outcome.transition is None
        assert self.cell(2, "checkInTime") == ""


class TestBulkOperations(LifecycleTestBase):

    def test_bulk_checkout(self):
        self.build(_active(), _new("102"), _checked_out("103"))
        result = self.controller.bulk_checkout([2, 3, 4, 99])

        assert result.processed == [2]
        assert sorted(result.skipped) == [3, 4, 99]
        assert result.invoices == {2: "INV-000001"}
        assert self.cell(2, "checkOutTime") == FIXED_NOW

    def test_bulk_update_tax_rate_skips_checked_out(self):
        self.build(_new(), _checked_out("102"))
        result = self.controller.bulk_update_tax_rate([2, 3], "10%")

        assert result.processed == [2]
        assert result.skipped == [3]
        assert self.cell(2, "total") == Decimal("187.00")
        assert self.cell(3, "total") == "192.10"

    @pytest.mark.parametrize("tax_input", ["0", "150%", "abc", -5])
    def test_bulk_update_tax_rate_rejects_invalid(self, tax_input):
        self.build(_new())
        with pytest.raises(InvalidNumericInput):
            self.controller.bulk_update_tax_rate([2], tax_input)

    def test_bulk_generate_invoices_isolates_failures(self):
        self.build(_checked_out(), _checked_out("102"), _checked_out("103"))
        self.invoice_service.allocator.next_invoice_number.side_effect = [
            "INV-000001", LockUnavailable("INVOICE_SEQ", 15), "INV-000002",
        ]

        result = self.controller.bulk_generate_invoices([2, 3, 4])

        assert result.processed == [2, 4]
        assert result.invoices == {2: "INV-000001", 4: "INV-000002"}
        assert 3 in result.failures

    def test_generate_invoice_reprints(self):
        self.build(_checked_out(invoiceNo="INV-000040", invoiceUrl="/old.txt"))
        outcome = self.controller.generate_invoice(2, force=True)
        assert outcome.generated
        assert outcome.invoice_no == "INV-000040"
        assert self.cell(2, "invoiceUrl") == "/invoices/doc.txt"


class TestEventDispatcher:

    def test_subscription_management(self):
        dispatcher = build_default_dispatcher()
        assert dispatcher.reaction_names(RoomCheckedIn) == ["clear_stale_cleaned_status", "mark_superseded_rows"]
        assert dispatcher.reaction_names(RoomCheckedOut) == ["mark_late_checkout_superseded"]

        with pytest.raises(ValueError):
            dispatcher.subscribe(RoomCheckedIn, "mark_superseded_rows", Mock())

        dispatcher.unsubscribe(RoomCheckedIn, "mark_superseded_rows")
        assert dispatcher.reaction_names(RoomCheckedIn) == ["clear_stale_cleaned_status"]

    def test_dispatch_collects_results_and_failures(self):
        dispatcher = EventDispatcher()
        dispatcher.subscribe(RoomCheckedOut, "ok", Mock(return_value="done"))
        dispatcher.subscribe(RoomCheckedOut, "broken", Mock(side_effect=KeyError("x")))

        result = dispatcher.dispatch(RoomCheckedOut(room="101", row=2), context=Mock())

        assert result.results == {"ok": "done"}
        assert [name for name, _ in result.failures] == ["broken"]
        assert not result.ok


class TestResultObjects:

    def test_edit_outcome_defaults_are_independent(self):
        first = EditOutcome(row=2, field="checkIn")
        second = EditOutcome(row=3)

        first.add_warning("QUOTE_LOCKED", "locked", "info")
        first.corrections["reoccupied"] = True

        assert first.field == "checkIn"
        assert first.warnings == [{"code": "QUOTE_LOCKED", "message": "locked", "severity": "info"}]
        assert second.field is None
        assert second.warnings == []
        assert second.corrections == {}

    def test_bulk_result_defaults_are_independent(self):
        first = BulkResult()
        first.processed.append(2)
        first.failures[3] = "LOCK_UNAVAILABLE"
        assert first.processed == [2]
        assert BulkResult() == BulkResult(processed=[], skipped=[], failures={}, invoices={})
