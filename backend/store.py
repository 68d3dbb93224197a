"""
Supabase gateway for the clinic tables.

Every method is a single round-trip to the hosted database; nothing is
cached between requests. Errors raised by the client (postgrest APIError,
httpx errors) propagate to the caller.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client, create_client

from config import STATUS_CANCELLED, BookingConfig
from timeslots import parse_duration

logger = logging.getLogger(__name__)

# --- Table names (external schema, owned by the dashboard project) ---
APPOINTMENTS_TABLE = "agendamentos"
CUSTOMERS_TABLE = "clientes"
SERVICES_TABLE = "servicos"
PROFESSIONALS_TABLE = "profissionais"
LICENSES_TABLE = "licencas_broosaas"

APPOINTMENT_COLUMNS = "id, data, hora_inicio, hora_fim, profissional_id, servico_id, status"


class ClinicStore:
    """Thin wrapper around the Supabase query builder for the booking tables."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_config(cls, config: BookingConfig) -> "ClinicStore":
        if not config.supabase_url or not config.supabase_key:
            raise ValueError("❌ Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY in environment.")
        return cls(create_client(config.supabase_url, config.supabase_key))

    # =========================================================================
    # Appointments
    # =========================================================================

    def appointments_on(self, day: str, professional_ids: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """Non-cancelled appointments of a day, optionally limited to some professionals."""
        query = (
            self.client.table(APPOINTMENTS_TABLE)
            .select(APPOINTMENT_COLUMNS)
            .eq("data", day)
            .neq("status", STATUS_CANCELLED)
        )
        if professional_ids is not None:
            ids = list(professional_ids)
            if not ids:
                return []
            query = query.eq("profissional_id", ids[0]) if len(ids) == 1 else query.in_("profissional_id", ids)
        return query.execute().data or []

    def insert_appointment(self, record: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.table(APPOINTMENTS_TABLE).insert(record).execute()
        rows = response.data or []
        return rows[0] if rows else record

    # =========================================================================
    # Customers
    # =========================================================================

    def find_customer_by_phone(self, phone: str) -> Optional[Dict[str, Any]]:
        response = (
            self.client.table(CUSTOMERS_TABLE)
            .select("id, nome, telefone")
            .eq("telefone", phone)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0] if rows else None

    def create_customer(self, name: Optional[str], phone: Optional[str]) -> Dict[str, Any]:
        response = (
            self.client.table(CUSTOMERS_TABLE)
            .insert({"nome": name, "telefone": phone})
            .execute()
        )
        rows = response.data or []
        if not rows:
            raise RuntimeError("Customer insert returned no row")
        return rows[0]

    # =========================================================================
    # Services & professionals (reference data)
    # =========================================================================

    def get_service(self, service_id: str) -> Optional[Dict[str, Any]]:
        response = (
            self.client.table(SERVICES_TABLE)
            .select("id, nome, duracao_min, valor")
            .eq("id", service_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0] if rows else None

    def service_durations(self, service_ids: Iterable[str]) -> Dict[str, int]:
        """Map service id -> duration in minutes for the given ids."""
        ids = sorted({sid for sid in service_ids if sid})
        if not ids:
            return {}
        response = (
            self.client.table(SERVICES_TABLE)
            .select("id, duracao_min")
            .in_("id", ids)
            .execute()
        )
        durations = {}
        for row in response.data or []:
            minutes = parse_duration(row.get("duracao_min"))
            if minutes is None:
                logger.warning("Service %s has unusable duration %r", row.get("id"), row.get("duracao_min"))
                continue
            durations[row["id"]] = minutes
        return durations

    def active_professionals(self, exclude: Iterable[str] = ()) -> List[Dict[str, Any]]:
        response = (
            self.client.table(PROFESSIONALS_TABLE)
            .select("id, nome")
            .eq("ativo", True)
            .order("nome")
            .execute()
        )
        excluded = set(exclude)
        return [row for row in (response.data or []) if row.get("id") not in excluded]

    # =========================================================================
    # Licenses
    # =========================================================================

    def get_license(self, key: str) -> Optional[Dict[str, Any]]:
        response = self.client.table(LICENSES_TABLE).select("*").eq("chave", key).limit(1).execute()
        rows = response.data or []
        return rows[0] if rows else None

    def mark_license_used(self, key: str, user_id: Optional[str], email: Optional[str]) -> None:
        (
            self.client.table(LICENSES_TABLE)
            .update({
                "status": "USADA",
                "ativado_por": user_id,
                "email_vinculado": email,
                "data_ativacao": datetime.now(timezone.utc).isoformat(),
            })
            .eq("chave", key)
            .execute()
        )

    # =========================================================================
    # Backup
    # =========================================================================

    def dump_tables(self) -> Dict[str, List[Dict[str, Any]]]:
        """Full contents of the booking tables, keyed by table name."""
        dump = {}
        for table in (APPOINTMENTS_TABLE, CUSTOMERS_TABLE, SERVICES_TABLE, PROFESSIONALS_TABLE):
            dump[table] = self.client.table(table).select("*").execute().data or []
            logger.debug("Backup read %d rows from %s", len(dump[table]), table)
        return dump
