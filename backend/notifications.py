import logging
from typing import Any, Dict, Optional

import requests

from config import BookingConfig

logger = logging.getLogger(__name__)


class WhatsAppNotifier:
    """
    Sends text messages through the WhatsApp gateway (WhatsWave API).

    A failed send is logged and reported as False; it never raises.
    """

    def __init__(self, config: BookingConfig, timeout: float = 10):
        self.base_url = config.whatsapp_base_url
        self.token = config.whatsapp_token
        self.timeout = timeout

    def send_text(self, number: str, text: str, time_delay: int = 2) -> bool:
        if not number:
            logger.warning("No phone number to notify, skipping message")
            return False
        try:
            response = requests.post(
                f"{self.base_url}/messages/sendText",
                json={"number": number, "text": text, "time_delay": time_delay},
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("❌ WhatsApp send failed for %s: %s", number, e)
            return False
        logger.info("✅ WhatsApp message sent to %s", number)
        return True


def confirmation_message(record: Dict[str, Any]) -> str:
    day = '/'.join(reversed(str(record.get("data", "")).split('-')))
    start = str(record.get("hora_inicio") or "")[:5]
    return (
        f"Olá, {record.get('cliente_nome') or ''}! ✨ Passando para confirmar que seu horário "
        f"foi reservado para o dia {day} às {start}. Te esperamos! 💖"
    )


def left_holding_queue(record: Optional[Dict[str, Any]], old_record: Optional[Dict[str, Any]],
                       holding_id: str) -> bool:
    """True when an appointment was moved from the holding queue onto a real professional."""
    if not record or not old_record:
        return False
    return (
        old_record.get("profissional_id") == holding_id
        and record.get("profissional_id") not in (None, holding_id)
    )
