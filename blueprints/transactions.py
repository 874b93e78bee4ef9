#======================================================================================
#
#   USER LEDGER ROUTES: deposits, withdrawals, investments, dashboard, referrals
#
#=======================================================================================
from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from ledger.engine import get_engine
from ledger.errors import LedgerError
import logging

logger = logging.getLogger(__name__)

bp = Blueprint("transactions", __name__, url_prefix="/api")


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    return data


def _ledger_error(e: LedgerError, action):
    logger.warning(f"{action} refused for user {current_user.id}: {e.message}")
    return jsonify({"error": e.message, "code": e.code}), e.status_code


@bp.route("/transactions", methods=["GET"])
@login_required
def list_transactions():
    try:
        transactions = get_engine().list_transactions(current_user.id)
        return jsonify({"transactions": [txn.to_dict() for txn in transactions]}), 200
    except Exception as e:
        logger.error(f"Error listing transactions for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Failed to load transactions"}), 500


@bp.route("/deposit", methods=["POST"])
@login_required
def deposit():
    data = _json_body()
    if data is None:
        return jsonify({"error": "Request must be JSON"}), 400

    try:
        txn = get_engine().request_deposit(
            current_user.id,
            data.get("amount"),
            data.get("method"),
            data.get("tx_id"),
        )
        return jsonify({
            "message": "Deposit submitted and awaiting approval",
            "transaction": txn.to_dict(),
        }), 201
    except LedgerError as e:
        return _ledger_error(e, "Deposit")
    except Exception as e:
        logger.error(f"Deposit failed for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Deposit failed"}), 500


@bp.route("/withdraw", methods=["POST"])
@login_required
def withdraw():
    data = _json_body()
    if data is None:
        return jsonify({"error": "Request must be JSON"}), 400

    try:
        txn = get_engine().request_withdraw(
            current_user.id,
            data.get("amount"),
            data.get("method"),
            data.get("destination"),
        )
        return jsonify({
            "message": "Withdrawal submitted and awaiting approval",
            "transaction": txn.to_dict(),
        }), 201
    except LedgerError as e:
        return _ledger_error(e, "Withdrawal")
    except Exception as e:
        logger.error(f"Withdrawal failed for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Withdrawal failed"}), 500


@bp.route("/invest", methods=["POST"])
@login_required
def invest():
    data = _json_body()
    if data is None:
        return jsonify({"error": "Request must be JSON"}), 400

    try:
        engine = get_engine()
        investment = engine.request_investment(current_user.id, data.get("amount"), data.get("plan"))
        return jsonify({
            "message": "Investment created",
            "investment": engine.registry.describe(investment),
        }), 201
    except LedgerError as e:
        return _ledger_error(e, "Investment")
    except Exception as e:
        logger.error(f"Investment failed for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Investment failed"}), 500


@bp.route("/investments", methods=["GET"])
@login_required
def list_investments():
    try:
        return jsonify({"investments": get_engine().list_investments(current_user.id)}), 200
    except Exception as e:
        logger.error(f"Error listing investments for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Failed to load investments"}), 500


@bp.route("/dashboard-summary", methods=["GET"])
@login_required
def dashboard_summary():
    try:
        return jsonify(get_engine().dashboard_summary(current_user.id)), 200
    except Exception as e:
        logger.error(f"Dashboard summary failed for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Failed to load dashboard"}), 500


@bp.route("/referrals", methods=["GET"])
@login_required
def list_referrals():
    try:
        return jsonify({"referrals": get_engine().list_referrals(current_user.id)}), 200
    except Exception as e:
        logger.error(f"Error listing referrals for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Failed to load referrals"}), 500
