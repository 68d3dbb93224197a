import os
from dataclasses import dataclass, field
from typing import Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from timeslots import normalize_time

# --- Defaults ---
# Sentinel professional used as the "waiting room" for automated bookings
DEFAULT_HOLDING_PROFESSIONAL_ID = "f7ed71fa-4c8c-47f9-8ed6-7e92327f3f82"
DEFAULT_TIME_GRID = (
    "08:00", "09:00", "10:00", "11:00", "12:00", "13:00", "14:00",
    "15:00", "16:00", "17:00", "18:00", "19:00", "20:00", "21:00",
)
DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_WHATS_BASE_URL = "https://api.whatswave.com.br/api"

POLICY_PER_RESOURCE = "per_resource"
POLICY_POOLED = "pooled"
AVAILABILITY_POLICIES = (POLICY_PER_RESOURCE, POLICY_POOLED)

# Status labels as stored in the appointments table
STATUS_SCHEDULED = "agendado"
STATUS_CANCELLED = "cancelado"

TRUTHY = {"1", "true", "t", "yes", "y", "on", "sim"}


@dataclass(frozen=True)
class BookingConfig:
    """Immutable settings shared by every booking component."""

    supabase_url: str = ""
    supabase_key: str = ""
    holding_professional_id: str = DEFAULT_HOLDING_PROFESSIONAL_ID
    time_grid: Tuple[str, ...] = DEFAULT_TIME_GRID
    fallback_duration_min: int = 60
    timezone: str = DEFAULT_TIMEZONE
    availability_policy: str = POLICY_PER_RESOURCE
    redirect_to_holding: bool = True
    origin_tag: str = "Nati IA"
    booking_notes: str = "Agendamento via IA (WhatsApp)"
    expose_error_details: bool = False
    whatsapp_base_url: str = DEFAULT_WHATS_BASE_URL
    whatsapp_token: str = ""
    cors_origins: Tuple[str, ...] = field(default=("*",))

    def __post_init__(self):
        if self.availability_policy not in AVAILABILITY_POLICIES:
            raise ValueError(
                f"Unknown availability policy '{self.availability_policy}'. "
                f"Use one of: {', '.join(AVAILABILITY_POLICIES)}"
            )
        if self.fallback_duration_min <= 0:
            raise ValueError("fallback_duration_min must be positive")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone '{self.timezone}'") from None
        grid = []
        for label in self.time_grid:
            normalized = normalize_time(label)
            if normalized is None:
                raise ValueError(f"Invalid time grid entry: {label!r}")
            grid.append(normalized)
        object.__setattr__(self, "time_grid", tuple(sorted(set(grid))))


def _as_bool(value, default):
    if value is None or value == "":
        return default
    return str(value).strip().lower() in TRUTHY


def _as_list(value):
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_config(env=None) -> BookingConfig:
    """Build the configuration from the process environment (.env is loaded first)."""
    if env is None:
        load_dotenv()
        env = os.environ

    grid = env.get("TIME_GRID")
    origins = env.get("CORS_ORIGINS")

    return BookingConfig(
        supabase_url=env.get("SUPABASE_URL", ""),
        supabase_key=env.get("SUPABASE_SERVICE_ROLE_KEY") or env.get("SUPABASE_KEY", ""),
        holding_professional_id=env.get("HOLDING_PROFESSIONAL_ID") or DEFAULT_HOLDING_PROFESSIONAL_ID,
        time_grid=_as_list(grid) if grid else DEFAULT_TIME_GRID,
        fallback_duration_min=int(env.get("FALLBACK_DURATION_MIN", "60")),
        timezone=env.get("CLINIC_TIMEZONE") or DEFAULT_TIMEZONE,
        availability_policy=(env.get("AVAILABILITY_POLICY") or POLICY_PER_RESOURCE).strip().lower(),
        redirect_to_holding=_as_bool(env.get("REDIRECT_TO_HOLDING"), True),
        origin_tag=env.get("BOOKING_ORIGIN") or "Nati IA",
        booking_notes=env.get("BOOKING_NOTES") or "Agendamento via IA (WhatsApp)",
        expose_error_details=_as_bool(env.get("EXPOSE_ERROR_DETAILS"), False),
        whatsapp_base_url=(env.get("WHATS_BASE_URL") or DEFAULT_WHATS_BASE_URL).rstrip("/"),
        whatsapp_token=env.get("WHATS_TOKEN", ""),
        cors_origins=_as_list(origins) if origins else ("*",),
    )
