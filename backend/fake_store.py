"""
In-memory stand-in for ClinicStore used by the unit tests.

Implements the same methods with plain lists so the booking logic and the
Flask routes can be exercised without a Supabase project.
"""

import copy
import itertools

from config import STATUS_CANCELLED
from timeslots import parse_duration


class FakeStore:
    def __init__(self, appointments=None, customers=None, services=None,
                 professionals=None, licenses=None):
        self.appointments = [dict(a) for a in appointments or []]
        self.customers = [dict(c) for c in customers or []]
        self.services = {s["id"]: dict(s) for s in services or []}
        self.professionals = [dict(p) for p in professionals or []]
        self.licenses = {row["chave"]: dict(row) for row in licenses or []}
        self.inserted = []
        self.fail_on = set()
        self._ids = itertools.count(1)

    def _maybe_fail(self, operation):
        if operation in self.fail_on:
            raise RuntimeError(f"simulated database failure in {operation}")

    # --- appointments ---

    def appointments_on(self, day, professional_ids=None):
        self._maybe_fail("appointments_on")
        ids = None if professional_ids is None else set(professional_ids)
        return [
            copy.deepcopy(a) for a in self.appointments
            if a.get("data") == day
            and a.get("status") != STATUS_CANCELLED
            and (ids is None or a.get("profissional_id") in ids)
        ]

    def insert_appointment(self, record):
        self._maybe_fail("insert_appointment")
        row = dict(record, id=f"appt-{next(self._ids)}")
        self.appointments.append(row)
        self.inserted.append(row)
        return dict(row)

    # --- customers ---

    def find_customer_by_phone(self, phone):
        self._maybe_fail("find_customer_by_phone")
        for customer in self.customers:
            if customer.get("telefone") == phone:
                return dict(customer)
        return None

    def create_customer(self, name, phone):
        self._maybe_fail("create_customer")
        row = {"id": f"cust-{next(self._ids)}", "nome": name, "telefone": phone}
        self.customers.append(row)
        return dict(row)

    # --- reference data ---

    def get_service(self, service_id):
        self._maybe_fail("get_service")
        service = self.services.get(service_id)
        return dict(service) if service else None

    def service_durations(self, service_ids):
        self._maybe_fail("service_durations")
        durations = {}
        for sid in set(service_ids):
            minutes = parse_duration(self.services.get(sid, {}).get("duracao_min"))
            if minutes is not None:
                durations[sid] = minutes
        return durations

    def active_professionals(self, exclude=()):
        self._maybe_fail("active_professionals")
        excluded = set(exclude)
        return [
            {"id": p["id"], "nome": p.get("nome")} for p in self.professionals
            if p.get("ativo", True) and p["id"] not in excluded
        ]

    # --- licenses / backup ---

    def get_license(self, key):
        self._maybe_fail("get_license")
        row = self.licenses.get(key)
        return dict(row) if row else None

    def mark_license_used(self, key, user_id, email):
        self._maybe_fail("mark_license_used")
        self.licenses[key].update(status="USADA", ativado_por=user_id, email_vinculado=email)

    def dump_tables(self):
        self._maybe_fail("dump_tables")
        return {
            "agendamentos": copy.deepcopy(self.appointments),
            "clientes": copy.deepcopy(self.customers),
            "servicos": list(self.services.values()),
            "profissionais": copy.deepcopy(self.professionals),
        }
