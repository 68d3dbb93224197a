"""
Availability and booking-conflict checks.

Two policies decide which grid slots are offered:

- per_resource: a slot is free when the queried professional (the holding
  queue by default) has no non-cancelled appointment starting at it.
- pooled: a slot is free when fewer active professionals are busy over
  [start, start + duration) than there are active professionals.

All data is read fresh from the store on every call.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set

from config import POLICY_PER_RESOURCE, BookingConfig
from errors import InvalidRequestError, SlotConflictError
from timeslots import MINUTES_PER_DAY, end_time, normalize_time, overlaps, parse_duration, to_minutes

logger = logging.getLogger(__name__)


@dataclass
class SlotCheck:
    """Pooled availability breakdown for one start time."""

    day: str
    start: str
    end: str
    duration_min: int
    total_professionals: int
    busy_professionals: int
    free_professionals: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.busy_professionals < self.total_professionals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.day,
            "horario": self.start,
            "horario_fim": self.end,
            "duracao_min": self.duration_min,
            "total_profissionais": self.total_professionals,
            "profissionais_ocupados": self.busy_professionals,
            "profissionais_livres": self.free_professionals,
            "disponivel": self.available,
        }


def require_day(day) -> str:
    """Validate an ISO calendar date coming from a request."""
    if not day:
        raise InvalidRequestError("O campo 'data' é obrigatório.")
    try:
        return date.fromisoformat(str(day)).isoformat()
    except ValueError:
        raise InvalidRequestError(f"Data inválida: {day!r}. Use o formato AAAA-MM-DD.") from None


def require_time(value, label="horario_inicio") -> str:
    normalized = normalize_time(value) if value else None
    if normalized is None:
        raise InvalidRequestError(f"O campo '{label}' é obrigatório no formato HH:MM.")
    return normalized


def service_minutes(service: Dict[str, Any], fallback_min: int) -> int:
    minutes = parse_duration(service.get("duracao_min"))
    if minutes is None:
        logger.warning("Service %s has unusable duration %r, using %d min fallback",
                       service.get("id"), service.get("duracao_min"), fallback_min)
        return fallback_min
    return minutes


def load_durations(store, bookings: List[Dict[str, Any]], fallback_min: int) -> Dict[str, int]:
    """Service durations of existing bookings; {} (all fallback) when the lookup fails."""
    try:
        return store.service_durations(b.get("servico_id") for b in bookings)
    except Exception as e:
        logger.warning("Could not load service durations, using %d min fallback: %s", fallback_min, e)
        return {}


# ======================================================
# 🧮 Pure slot arithmetic
# ======================================================

def free_slots(grid: Iterable[str], occupied: Iterable[str]) -> List[str]:
    """Grid labels not present in `occupied`, in grid order."""
    taken = {normalize_time(label) for label in occupied}
    return [label for label in grid if label not in taken]


def booking_interval(booking: Dict[str, Any], durations: Dict[str, int], fallback_min: int):
    """(start, end) in minutes for an existing appointment, or None if its start is unreadable."""
    try:
        start = to_minutes(booking.get("hora_inicio"))
    except ValueError:
        logger.warning("Skipping appointment %s with unreadable start %r",
                       booking.get("id"), booking.get("hora_inicio"))
        return None
    duration = durations.get(booking.get("servico_id")) or fallback_min
    return start, start + duration


def busy_resources(
    bookings: Iterable[Dict[str, Any]],
    resource_ids: Set[str],
    start_min: int,
    end_min: int,
    durations: Dict[str, int],
    fallback_min: int,
) -> Set[str]:
    """Ids of the resources with at least one booking overlapping [start_min, end_min)."""
    busy = set()
    for booking in bookings:
        resource = booking.get("profissional_id")
        if resource not in resource_ids or resource in busy:
            continue
        interval = booking_interval(booking, durations, fallback_min)
        if interval and overlaps(interval[0], interval[1], start_min, end_min):
            busy.add(resource)
    return busy


def pooled_free_slots(
    grid: Iterable[str],
    bookings: List[Dict[str, Any]],
    resource_ids: Iterable[str],
    duration_min: int,
    durations: Optional[Dict[str, int]] = None,
    fallback_min: int = 60,
) -> List[str]:
    """Grid labels where fewer resources are busy than exist."""
    resources = set(resource_ids)
    if not resources:
        return []
    durations = durations or {}

    available = []
    for label in grid:
        start = to_minutes(label)
        end = start + duration_min
        if end > MINUTES_PER_DAY:
            continue
        busy = busy_resources(bookings, resources, start, end, durations, fallback_min)
        if len(busy) < len(resources):
            available.append(label)
    return available


# ======================================================
# 📅 Availability Calculator
# ======================================================

class AvailabilityCalculator:
    def __init__(self, store, config: BookingConfig):
        self.store = store
        self.config = config

    def available_slots(self, day, professional_id: Optional[str] = None,
                        service_id: Optional[str] = None) -> List[str]:
        """Free grid slots for a day under the configured policy."""
        day = require_day(day)
        if self.config.availability_policy == POLICY_PER_RESOURCE:
            return self._per_resource_slots(day, professional_id)
        return self._pooled_slots(day, professional_id, service_id)

    def check_slot(self, day, start, service_id: str,
                   professional_id: Optional[str] = None) -> SlotCheck:
        """Detailed pooled check of one start time, used by the verification route."""
        day = require_day(day)
        start = require_time(start)
        if not service_id:
            raise InvalidRequestError("O campo 'servico_id' é obrigatório.")

        service = self.store.get_service(service_id)
        if service is None:
            raise InvalidRequestError(f"Serviço {service_id} não encontrado.")
        duration = service_minutes(service, self.config.fallback_duration_min)
        finish = end_time(start, duration)

        resources = self._resources(professional_id)
        resource_ids = {row["id"] for row in resources}
        bookings = self.store.appointments_on(day, resource_ids)
        durations = self._booking_durations(bookings)

        start_min = to_minutes(start)
        busy = busy_resources(bookings, resource_ids, start_min, start_min + duration,
                              durations, self.config.fallback_duration_min)
        return SlotCheck(
            day=day,
            start=start,
            end=finish,
            duration_min=duration,
            total_professionals=len(resource_ids),
            busy_professionals=len(busy),
            free_professionals=[
                {"id": row["id"], "nome": row.get("nome")}
                for row in resources if row["id"] not in busy
            ],
        )

    def service_duration(self, service_id: Optional[str]) -> int:
        """Duration of a service, or the fallback when it is unknown or the lookup fails."""
        if not service_id:
            return self.config.fallback_duration_min
        try:
            service = self.store.get_service(service_id)
        except Exception as e:
            logger.warning("Service lookup failed for %s, using fallback duration: %s", service_id, e)
            return self.config.fallback_duration_min
        if not service:
            logger.warning("Service %s not found, using fallback duration", service_id)
            return self.config.fallback_duration_min
        return service_minutes(service, self.config.fallback_duration_min)

    # --- internals ---

    def _per_resource_slots(self, day: str, professional_id: Optional[str]) -> List[str]:
        resource = professional_id or self.config.holding_professional_id
        bookings = self.store.appointments_on(day, [resource])
        occupied = [b["hora_inicio"] for b in bookings if b.get("hora_inicio")]
        return free_slots(self.config.time_grid, occupied)

    def _pooled_slots(self, day: str, professional_id: Optional[str],
                      service_id: Optional[str]) -> List[str]:
        resource_ids = [row["id"] for row in self._resources(professional_id)]
        if not resource_ids:
            logger.info("No active professionals; nothing available on %s", day)
            return []
        bookings = self.store.appointments_on(day, resource_ids)
        return pooled_free_slots(
            self.config.time_grid,
            bookings,
            resource_ids,
            self.service_duration(service_id),
            durations=self._booking_durations(bookings),
            fallback_min=self.config.fallback_duration_min,
        )

    def _resources(self, professional_id: Optional[str]) -> List[Dict[str, Any]]:
        if professional_id:
            return [{"id": professional_id}]
        return self.store.active_professionals(exclude=[self.config.holding_professional_id])

    def _booking_durations(self, bookings: List[Dict[str, Any]]) -> Dict[str, int]:
        return load_durations(self.store, bookings, self.config.fallback_duration_min)


# ======================================================
# 🛡️ Booking Conflict Guard
# ======================================================

class ConflictGuard:
    """
    Optimistic pre-insert check for double booking.

    A new appointment is rejected when its [start, start + duration) interval
    overlaps any non-cancelled appointment of the same professional on that
    day. This is read-then-write: two requests racing for the same slot can
    both pass. Real exclusivity needs an exclusion constraint on
    (profissional_id, data, time range) for non-cancelled rows in the database.
    """

    def __init__(self, store, fallback_min: int = 60):
        self.store = store
        self.fallback_min = fallback_min

    def ensure_free(self, day: str, start: str, professional_id: str,
                    duration_min: Optional[int] = None) -> None:
        start_min = to_minutes(start)
        end_min = start_min + (duration_min or self.fallback_min)

        bookings = self.store.appointments_on(day, [professional_id])
        durations = load_durations(self.store, bookings, self.fallback_min) if bookings else {}
        for booking in bookings:
            interval = booking_interval(booking, durations, self.fallback_min)
            if interval and overlaps(interval[0], interval[1], start_min, end_min):
                logger.info("Conflict: %s %s overlaps appointment %s of %s",
                            day, normalize_time(start), booking.get("id"), professional_id)
                raise SlotConflictError(
                    f"O horário {normalize_time(start)} do dia {day} já está ocupado. "
                    "Consulte os horários disponíveis e escolha outro."
                )
