import logging

from flask import Blueprint, current_app, jsonify, request

from booking import BookingRequest
from errors import BookingError
from payload_parser import field, request_payload, resolve_date, today_in
from utils import server_error

appointment_bp = Blueprint('appointment_bp', __name__)

logger = logging.getLogger(__name__)


def _context():
    return current_app.config['BOOKING_CONFIG'], current_app.config['BOOKING_SERVICE']


def _read_request(config):
    """Normalized payload plus the resolved date ('data' / 'date', natural language allowed)."""
    today = today_in(config.timezone)
    payload = request_payload(request, today)
    return payload, resolve_date(field(payload, 'data'), today)


# ======================================================
# 🔎 CONSULTAR HORÁRIOS (GET ou POST)
# ======================================================
@appointment_bp.route('/api/ia/consultar', methods=['GET', 'POST'])
def consult_slots():
    """Returns the free slots of the daily grid for a date."""
    config, service = _context()
    payload, day = _read_request(config)

    if not day:
        return jsonify({"error": "O campo 'data' é obrigatório (AAAA-MM-DD, DD/MM/AAAA, hoje, amanhã...)."}), 400

    try:
        slots = service.calculator.available_slots(
            day,
            professional_id=field(payload, 'funcionario_id'),
            service_id=field(payload, 'servico_id'),
        )
    except BookingError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception as e:
        return server_error("Erro ao consultar horários.", e, config.expose_error_details)

    return jsonify({"data": day, "disponiveis": slots}), 200


# ======================================================
# 📝 AGENDAR SERVIÇO
# ======================================================
@appointment_bp.route('/api/ia/agendar', methods=['GET', 'POST'])
def book_appointment():
    """Creates an appointment after the conflict check and customer upsert."""
    config, service = _context()
    payload, day = _read_request(config)

    try:
        booking = BookingRequest.validated(
            day=day,
            start=field(payload, 'horario_inicio'),
            customer_name=field(payload, 'cliente_nome'),
            customer_phone=field(payload, 'cliente_telefone'),
            service_id=field(payload, 'servico_id'),
            professional_id=field(payload, 'funcionario_id'),
        )
        saved = service.book(booking)
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        return server_error("Falha ao agendar via IA.", e, config.expose_error_details, key="message")

    day_label = '/'.join(reversed(booking.day.split('-')))
    return jsonify({
        "success": True,
        "message": f"Agendamento realizado para {booking.customer_name} em {day_label} às {booking.start}! ✨",
        "agendamento": saved,
    }), 200


# ======================================================
# 📊 VERIFICAR DISPONIBILIDADE (detalhado)
# ======================================================
@appointment_bp.route('/api/ia/verificar-disponibilidade', methods=['POST'])
def verify_availability():
    """Pooled check of one start time: how many professionals are free for the service."""
    config, service = _context()
    payload, day = _read_request(config)

    try:
        check = service.calculator.check_slot(
            day,
            field(payload, 'horario_inicio'),
            field(payload, 'servico_id'),
            professional_id=field(payload, 'funcionario_id'),
        )
    except BookingError as e:
        return jsonify({"error": e.message, "code": e.code}), e.status_code
    except Exception as e:
        return server_error("Erro ao verificar disponibilidade.", e, config.expose_error_details)

    return jsonify(check.to_dict()), 200
