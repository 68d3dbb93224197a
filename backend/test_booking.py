"""
Unit tests for customer upsert, appointment writer and the booking flow
"""

import unittest

from booking import AppointmentWriter, BookingRequest, BookingService, upsert_customer
from config import BookingConfig
from errors import EndTimeOverflowError, InvalidRequestError, SlotConflictError
from fake_store import FakeStore

HOLDING = BookingConfig().holding_professional_id
DAY = "2026-01-14"
SERVICES = [
    {"id": "s45", "nome": "Limpeza de pele", "duracao_min": 45, "valor": 120},
    {"id": "s120", "nome": "Tratamento", "duracao_min": 120, "valor": 300},
]


class TestUpsertCustomer(unittest.TestCase):

    def test_reuses_customer_with_same_phone(self):
        store = FakeStore(customers=[{"id": "c1", "nome": "Ana", "telefone": "11999990000"}])
        self.assertEqual(upsert_customer(store, "Ana Maria", "11999990000"), "c1")
        self.assertEqual(len(store.customers), 1)

    def test_creates_customer_for_new_phone(self):
        store = FakeStore(customers=[{"id": "c1", "nome": "Ana", "telefone": "11999990000"}])
        new_id = upsert_customer(store, "Bia", "11888880000")
        self.assertNotEqual(new_id, "c1")
        self.assertEqual(store.customers[-1], {"id": new_id, "nome": "Bia", "telefone": "11888880000"})

    def test_without_phone_always_creates(self):
        store = FakeStore()
        first = upsert_customer(store, "Sem Telefone", None)
        second = upsert_customer(store, "Sem Telefone", None)
        self.assertNotEqual(first, second)
        self.assertEqual(len(store.customers), 2)


class TestBookingRequest(unittest.TestCase):

    def test_normalizes_fields(self):
        booking = BookingRequest.validated(DAY, "9:00", " Ana ", "11999990000", "s45", "")
        self.assertEqual(booking.start, "09:00")
        self.assertEqual(booking.customer_name, "Ana")
        self.assertIsNone(booking.professional_id)

    def test_required_fields(self):
        with self.assertRaises(InvalidRequestError):
            BookingRequest.validated(None, "09:00", "Ana")
        with self.assertRaises(InvalidRequestError):
            BookingRequest.validated(DAY, None, "Ana")
        with self.assertRaises(InvalidRequestError):
            BookingRequest.validated(DAY, "09:00", "")


class TestAppointmentWriter(unittest.TestCase):

    def test_redirects_to_holding_queue(self):
        writer = AppointmentWriter(FakeStore(), BookingConfig())
        self.assertEqual(writer.target_professional("p1"), HOLDING)
        self.assertEqual(writer.target_professional(None), HOLDING)

    def test_honors_requested_professional_when_redirect_is_off(self):
        writer = AppointmentWriter(FakeStore(), BookingConfig(redirect_to_holding=False))
        self.assertEqual(writer.target_professional("p1"), "p1")
        self.assertEqual(writer.target_professional(None), HOLDING)

    def test_record_layout(self):
        store = FakeStore()
        writer = AppointmentWriter(store, BookingConfig())
        booking = BookingRequest.validated(DAY, "10:00", "Ana", "11999990000", "s45")
        saved = writer.write(booking, "c1", HOLDING, 45, 120)

        self.assertEqual(saved["hora_inicio"], "10:00:00")
        self.assertEqual(saved["hora_fim"], "10:45:00")
        self.assertEqual(saved["status"], "agendado")
        self.assertEqual(saved["origem"], "Nati IA")
        self.assertEqual(saved["valor_cobrado"], 120)
        self.assertEqual(saved["cliente_id"], "c1")
        self.assertEqual(saved["profissional_id"], HOLDING)
        self.assertEqual(store.inserted[0]["notas"], "Agendamento via IA (WhatsApp)")


class TestBookingService(unittest.TestCase):

    def setUp(self):
        self.store = FakeStore(
            appointments=[{
                "id": "a1", "data": DAY, "hora_inicio": "09:00:00", "hora_fim": "10:00:00",
                "profissional_id": HOLDING, "servico_id": "s45", "status": "agendado",
            }],
            customers=[{"id": "c1", "nome": "Ana", "telefone": "11999990000"}],
            services=SERVICES,
        )
        self.service = BookingService(self.store, BookingConfig())

    def test_books_free_slot_and_reuses_customer(self):
        booking = BookingRequest.validated(DAY, "11:00", "Ana", "11999990000", "s45", "p1")
        saved = self.service.book(booking)

        self.assertEqual(saved["cliente_id"], "c1")
        self.assertEqual(saved["hora_fim"], "11:45:00")
        self.assertEqual(saved["profissional_id"], HOLDING)
        self.assertEqual(len(self.store.customers), 1)
        self.assertEqual(len(self.store.inserted), 1)

    def test_conflict_blocks_write_and_customer_creation(self):
        booking = BookingRequest.validated(DAY, "09:00", "Nova", "11777770000", "s45")
        with self.assertRaises(SlotConflictError):
            self.service.book(booking)
        self.assertEqual(self.store.inserted, [])
        self.assertEqual(len(self.store.customers), 1)

    def test_unknown_service_uses_fallback_duration(self):
        booking = BookingRequest.validated(DAY, "12:00", "Ana", "11999990000", "nope")
        saved = self.service.book(booking)
        self.assertEqual(saved["hora_fim"], "13:00:00")
        self.assertIsNone(saved["valor_cobrado"])

    def test_non_numeric_service_duration_uses_fallback(self):
        self.store.services["sbad"] = {"id": "sbad", "nome": "Avulso", "duracao_min": "abc", "valor": 80}
        booking = BookingRequest.validated(DAY, "12:00", "Ana", "11999990000", "sbad")
        saved = self.service.book(booking)
        self.assertEqual(saved["hora_fim"], "13:00:00")
        self.assertEqual(saved["valor_cobrado"], 80)

    def test_overlapping_start_is_rejected(self):
        # The holding queue already has 09:00-09:45
        booking = BookingRequest.validated(DAY, "09:30", "Nova", "11777770000", "s45")
        with self.assertRaises(SlotConflictError):
            self.service.book(booking)
        self.assertEqual(self.store.inserted, [])

    def test_booking_right_after_existing_one(self):
        booking = BookingRequest.validated(DAY, "09:45", "Nova", "11777770000", "s45")
        self.assertEqual(self.service.book(booking)["hora_fim"], "10:30:00")

    def test_midnight_overflow_rejected_before_any_write(self):
        booking = BookingRequest.validated(DAY, "23:00", "Ana", "11999990000", "s120")
        with self.assertRaises(EndTimeOverflowError):
            self.service.book(booking)
        self.assertEqual(self.store.inserted, [])

    def test_database_failure_propagates(self):
        self.store.fail_on.add("insert_appointment")
        booking = BookingRequest.validated(DAY, "15:00", "Ana", "11999990000", "s45")
        with self.assertRaises(RuntimeError):
            self.service.book(booking)


if __name__ == '__main__':
    unittest.main(verbosity=2)
