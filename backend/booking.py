import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from availability import AvailabilityCalculator, ConflictGuard, require_day, require_time, service_minutes
from config import STATUS_SCHEDULED, BookingConfig
from errors import InvalidRequestError
from timeslots import end_time, format_time, to_minutes

logger = logging.getLogger(__name__)


@dataclass
class BookingRequest:
    """A booking as understood after payload normalization."""

    day: str
    start: str
    customer_name: str
    customer_phone: Optional[str] = None
    service_id: Optional[str] = None
    professional_id: Optional[str] = None

    @classmethod
    def validated(cls, day, start, customer_name, customer_phone=None,
                  service_id=None, professional_id=None) -> "BookingRequest":
        if not customer_name:
            raise InvalidRequestError("O campo 'cliente_nome' é obrigatório.")
        return cls(
            day=require_day(day),
            start=require_time(start),
            customer_name=str(customer_name).strip(),
            customer_phone=str(customer_phone).strip() if customer_phone else None,
            service_id=service_id or None,
            professional_id=professional_id or None,
        )


def upsert_customer(store, name: str, phone: Optional[str]) -> str:
    """
    Return the id of the customer with this phone, creating one if needed.

    Without a phone there is nothing to match on, so a new customer is always created.
    """
    if phone:
        existing = store.find_customer_by_phone(phone)
        if existing:
            logger.debug("Reusing customer %s for phone %s", existing["id"], phone)
            return existing["id"]
    created = store.create_customer(name, phone)
    logger.info("Created customer %s (%s)", created["id"], name)
    return created["id"]


class AppointmentWriter:
    def __init__(self, store, config: BookingConfig):
        self.store = store
        self.config = config

    def target_professional(self, requested: Optional[str]) -> str:
        """Automated bookings go to the holding queue unless redirection is off."""
        if self.config.redirect_to_holding or not requested:
            return self.config.holding_professional_id
        return requested

    def build_record(self, booking: BookingRequest, customer_id: str, professional_id: str,
                     duration_min: int, price=None) -> Dict[str, Any]:
        return {
            "cliente_id": customer_id,
            "cliente_nome": booking.customer_name,
            "cliente_telefone": booking.customer_phone,
            "data": booking.day,
            "hora_inicio": format_time(to_minutes(booking.start)),
            "hora_fim": end_time(booking.start, duration_min),
            "servico_id": booking.service_id,
            "profissional_id": professional_id,
            "valor_cobrado": price,
            "status": STATUS_SCHEDULED,
            "origem": self.config.origin_tag,
            "notas": self.config.booking_notes,
        }

    def write(self, booking: BookingRequest, customer_id: str, professional_id: str,
              duration_min: int, price=None) -> Dict[str, Any]:
        record = self.build_record(booking, customer_id, professional_id, duration_min, price)
        saved = self.store.insert_appointment(record)
        logger.info("Booked %s %s-%s for %s on %s", record["data"], record["hora_inicio"],
                    record["hora_fim"], booking.customer_name, professional_id)
        return saved


class BookingService:
    """Conflict guard -> customer upsert -> appointment writer."""

    def __init__(self, store, config: BookingConfig):
        self.store = store
        self.config = config
        self.calculator = AvailabilityCalculator(store, config)
        self.guard = ConflictGuard(store, config.fallback_duration_min)
        self.writer = AppointmentWriter(store, config)

    def _service_details(self, service_id: Optional[str]):
        """(duration, price) for the service; fallback duration when unknown."""
        if not service_id:
            return self.config.fallback_duration_min, None
        service = self.store.get_service(service_id)
        if not service:
            logger.warning("Service %s not found, using %d min fallback",
                           service_id, self.config.fallback_duration_min)
            return self.config.fallback_duration_min, None
        duration = service_minutes(service, self.config.fallback_duration_min)
        return duration, service.get("valor")

    def book(self, booking: BookingRequest) -> Dict[str, Any]:
        professional_id = self.writer.target_professional(booking.professional_id)
        duration, price = self._service_details(booking.service_id)
        # Fails before any write when the appointment would cross midnight
        end_time(booking.start, duration)

        self.guard.ensure_free(booking.day, booking.start, professional_id, duration)
        customer_id = upsert_customer(self.store, booking.customer_name, booking.customer_phone)
        return self.writer.write(booking, customer_id, professional_id, duration, price)
