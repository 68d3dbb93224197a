import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from notifications import confirmation_message, left_holding_queue
from utils import server_error

# -----------------------------------------------------
# 📦 Define Blueprint
# -----------------------------------------------------
admin_bp = Blueprint('admin', __name__)

# Set up logger
logger = logging.getLogger(__name__)


# ======================================================
# 🔐 ATIVAR LICENÇA
# ======================================================
@admin_bp.route("/api/ativar-licenca", methods=["POST"])
def activate_license():
    """Marks a license key as used by the given user/email."""
    store = current_app.config['CLINIC_STORE']
    config = current_app.config['BOOKING_CONFIG']
    data = request.get_json(silent=True) or {}
    key = data.get("chave")

    if not key:
        return jsonify({"erro": "Chave é obrigatória."}), 400

    try:
        license_row = store.get_license(key)
        if not license_row:
            return jsonify({"erro": "Chave inválida."}), 404
        if license_row.get("status") == "USADA":
            return jsonify({"erro": "Chave já utilizada."}), 409

        store.mark_license_used(key, data.get("userId"), data.get("email"))
    except Exception as e:
        return server_error("Erro ao ativar licença.", e, config.expose_error_details, key="erro")

    logger.info("License %s activated by %s", key, data.get("userId"))
    return jsonify({"sucesso": True, "mensagem": "Sistema ativado!"}), 200


# ======================================================
# ⚡ CONFIRMAÇÃO AUTOMÁTICA (webhook do banco)
# ======================================================
@admin_bp.route("/api/webhooks/confirmar", methods=["POST"])
def confirm_webhook():
    """
    Database webhook fired when an appointment row changes.

    When the dashboard moves a booking out of the holding queue onto a real
    professional, the customer gets a WhatsApp confirmation. Send failures
    are logged only; the webhook always answers 200.
    """
    config = current_app.config['BOOKING_CONFIG']
    notifier = current_app.config['NOTIFIER']
    data = request.get_json(silent=True) or {}
    record = data.get("record")
    old_record = data.get("old_record")

    if left_holding_queue(record, old_record, config.holding_professional_id):
        notifier.send_text(record.get("cliente_telefone"), confirmation_message(record))

    return "OK", 200


# ======================================================
# 💾 BACKUP
# ======================================================
@admin_bp.route("/api/backup/gerar", methods=["GET"])
def generate_backup():
    """Returns a JSON dump of appointments, customers, services and professionals."""
    store = current_app.config['CLINIC_STORE']
    config = current_app.config['BOOKING_CONFIG']
    try:
        tables = store.dump_tables()
    except Exception as e:
        return server_error("Erro ao gerar backup.", e, config.expose_error_details)

    return jsonify({
        "metadata": {"gerado_em": datetime.now(timezone.utc).isoformat()},
        "dados": tables,
    }), 200
