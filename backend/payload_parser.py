"""
Payload normalization for requests forwarded by the WhatsApp bot gateway.

The gateway is unreliable about content-type and escaping: bodies arrive as
proper JSON objects, as JSON encoded twice ("\"{\\\"data\\\": ...}\""), wrapped
in stray quotes, or as free text with the fields somewhere inside. The
normalizer runs an ordered chain of strategies and stops at the first one
that yields a mapping. It never raises; an unusable body becomes {}.
"""

import json
import logging
import re
import unicodedata
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterator, NamedTuple, Optional
from zoneinfo import ZoneInfo

from timeslots import normalize_time

logger = logging.getLogger(__name__)


class ParseResult(NamedTuple):
    ok: bool
    data: Dict[str, Any]
    strategy: str = ""


FAILED = ParseResult(False, {})

# Alternative names the bot (or older dashboard builds) use for the same field
FIELD_ALIASES = {
    "data": ("data", "date"),
    "funcionario_id": ("funcionario_id", "profissional_id"),
    "horario_inicio": ("horario_inicio", "hora", "horario"),
    "servico_id": ("servico_id", "service_id"),
    "cliente_nome": ("cliente_nome", "nome"),
    "cliente_telefone": ("cliente_telefone", "telefone"),
}

ISO_DATE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
BR_DATE = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")
TIME_OF_DAY = re.compile(r"(?<![\d:])([01]?\d|2[0-3])(?::|h)([0-5]\d)(?![\d])")
UUID_TOKEN = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b"
)
NAME_FIELD = re.compile(
    r"\b(?:cliente_nome|nome|name)\b\\?\"?\s*[:=]\s*\\?\"?\s*([^\"\\\n,;{}]+)",
    re.IGNORECASE,
)
PHONE_FIELD = re.compile(
    r"\b(?:cliente_telefone|telefone|phone|celular|whatsapp)\b\\?\"?\s*[:=]\s*\\?\"?\s*(\+?[\d\s().-]{8,})",
    re.IGNORECASE,
)

RELATIVE_DAYS = (
    # Longer phrases first so "depois de amanha" is not read as "amanha"
    (re.compile(r"\b(?:depois de amanha|day after tomorrow)\b"), 2),
    (re.compile(r"\b(?:amanha|tomorrow)\b"), 1),
    (re.compile(r"\b(?:hoje|today)\b"), 0),
)

WEEKDAYS = {
    "monday": 0, "segunda": 0,
    "tuesday": 1, "terca": 1,
    "wednesday": 2, "quarta": 2,
    "thursday": 3, "quinta": 3,
    "friday": 4, "sexta": 4,
    "saturday": 5, "sabado": 5,
    "sunday": 6, "domingo": 6,
}
WEEKDAY_PATTERN = re.compile(r"\b(" + "|".join(WEEKDAYS) + r")\b")

ESCAPES = (("\\\"", "\""), ("\\/", "/"), ("\\n", "\n"), ("\\t", "\t"), ("\\\\", "\\"))


# ======================================================
# 📅 Date resolution
# ======================================================

def today_in(tz_name: str) -> date:
    """Current calendar date in the clinic's time zone."""
    return datetime.now(ZoneInfo(tz_name)).date()


def _fold(text: str) -> str:
    """Lower-case and strip accents ('Amanhã' -> 'amanha', 'Sábado' -> 'sabado')."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def _safe_date(year, month, day) -> Optional[date]:
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def resolve_date(value, today: Optional[date] = None) -> Optional[str]:
    """
    Resolve a date given by the bot into 'YYYY-MM-DD'.

    Accepts ISO dates (optionally with a time part), DD/MM/YYYY, the words
    today/tomorrow/day after tomorrow (English or Portuguese) and weekday
    names, which resolve to the next occurrence strictly after today.
    Returns None when nothing usable is found.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value)
    if not text.strip():
        return None
    today = today or date.today()

    match = ISO_DATE.search(text)
    if match:
        found = _safe_date(*match.groups())
        if found:
            return found.isoformat()

    match = BR_DATE.search(text)
    if match:
        day, month, year = match.groups()
        found = _safe_date(year, month, day)
        if found:
            return found.isoformat()

    folded = _fold(text)
    for pattern, offset in RELATIVE_DAYS:
        if pattern.search(folded):
            return (today + timedelta(days=offset)).isoformat()

    match = WEEKDAY_PATTERN.search(folded)
    if match:
        delta = (WEEKDAYS[match.group(1)] - today.weekday()) % 7 or 7
        return (today + timedelta(days=delta)).isoformat()

    return None


# ======================================================
# 🧩 Parsing strategies
# ======================================================

def _as_mapping(decoded) -> ParseResult:
    if isinstance(decoded, dict):
        return ParseResult(True, dict(decoded))
    return FAILED


def _unescape(text: str) -> str:
    for escaped, plain in ESCAPES:
        text = text.replace(escaped, plain)
    return text


def parse_structured(raw, today=None) -> ParseResult:
    """The body is already a mapping (the happy path)."""
    if isinstance(raw, dict):
        return ParseResult(True, dict(raw), "structured")
    return FAILED


def parse_json_text(raw, today=None) -> ParseResult:
    """JSON text, possibly encoded twice or wrapped in stray quotes."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str) or not raw.strip():
        return FAILED

    text = raw.strip()
    for _ in range(3):
        try:
            decoded = json.loads(text)
        except ValueError:
            break
        if isinstance(decoded, str):
            # Double-encoded: the payload was a JSON string holding JSON
            text = decoded.strip()
            continue
        result = _as_mapping(decoded)
        return ParseResult(result.ok, result.data, "json_text")

    cleaned = _unescape(text.strip().strip("'\""))
    try:
        decoded = json.loads(cleaned)
    except ValueError:
        return FAILED
    result = _as_mapping(decoded)
    return ParseResult(result.ok, result.data, "json_text")


def _region_from(text: str, start: int) -> Optional[str]:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def brace_regions(text: str) -> Iterator[str]:
    """Yield the balanced {...} region opening at each '{' of text, in order."""
    start = text.find("{")
    while start >= 0:
        region = _region_from(text, start)
        if region is not None:
            yield region
        start = text.find("{", start + 1)


def find_balanced_braces(text: str) -> Optional[str]:
    """Return the first balanced {...} region of text, ignoring braces inside string literals."""
    return next(brace_regions(text), None)


def parse_brace_region(raw, today=None) -> ParseResult:
    """Bot text with a JSON object embedded somewhere inside it."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return FAILED

    candidates = [raw]
    unescaped = _unescape(raw)
    if unescaped != raw:
        candidates.append(unescaped)

    for candidate in candidates:
        for region in brace_regions(candidate):
            result = parse_json_text(region)
            if result.ok:
                return ParseResult(True, result.data, "brace_extraction")
    return FAILED


def parse_fields(raw, today=None) -> ParseResult:
    """Last resort: pull individual fields out of free text with patterns."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str) or not raw.strip():
        return FAILED

    resolved = resolve_date(raw, today)
    if resolved is None:
        return FAILED

    data = {"data": resolved}

    # Dates were already consumed; search times in the text without them
    without_dates = BR_DATE.sub(" ", ISO_DATE.sub(" ", raw))
    match = TIME_OF_DAY.search(without_dates)
    if match:
        data["horario_inicio"] = normalize_time(f"{match.group(1)}:{match.group(2)}")

    match = NAME_FIELD.search(raw)
    if match and match.group(1).strip():
        data["cliente_nome"] = match.group(1).strip()

    match = PHONE_FIELD.search(raw)
    if match:
        data["cliente_telefone"] = re.sub(r"[^\d+]", "", match.group(1))

    match = UUID_TOKEN.search(raw)
    if match:
        data["servico_id"] = match.group(0)

    return ParseResult(True, data, "field_extraction")


STRATEGIES = (parse_structured, parse_json_text, parse_brace_region, parse_fields)


def normalize_payload(raw, today: Optional[date] = None) -> Dict[str, Any]:
    """Run the strategy chain over a raw body; {} when nothing usable was found."""
    for strategy in STRATEGIES:
        result = strategy(raw, today)
        if result.ok:
            if result.strategy != "structured":
                logger.debug("Payload recovered with strategy '%s'", result.strategy)
            return result.data
    logger.warning("Could not extract any field from payload: %.200r", raw)
    return {}


# ======================================================
# 🔎 Field access helpers
# ======================================================

def pick(payload: Dict[str, Any], *names):
    """First non-empty value among the given keys."""
    for name in names:
        value = payload.get(name)
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        return value
    return None


def field(payload: Dict[str, Any], canonical: str):
    """Read a field by its canonical name, accepting any of its aliases."""
    return pick(payload, *FIELD_ALIASES.get(canonical, (canonical,)))


def _has_known_field(form: Dict[str, Any]) -> bool:
    known = {alias for aliases in FIELD_ALIASES.values() for alias in aliases}
    return any(key in known and str(value).strip() for key, value in form.items())


def request_payload(request, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Merge query-string parameters with the normalized body of a Flask request.

    Body values win over query-string values with the same key. A body sent
    with a form content-type is only taken as a form when it carries known
    fields; otherwise (a JSON text parsed as one junk key) the raw text goes
    through the normalizer.
    """
    payload = dict(request.args.items())

    # Cache the raw body first so form parsing does not consume the stream
    raw = request.get_data(cache=True, as_text=True)

    form = request.form.to_dict()
    if form and _has_known_field(form):
        payload.update(form)
        return payload

    body = None if form else request.get_json(silent=True)
    if body is None:
        body = raw
    if body in ("", None):
        return payload

    payload.update(normalize_payload(body, today))
    return payload
