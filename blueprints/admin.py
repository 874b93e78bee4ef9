#======================================================================================
#
# ADMIN ROUTES: adjudication, funding and balance corrections
#
#=======================================================================================
from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from ledger.engine import get_engine
from ledger.errors import LedgerError
import logging

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _ledger_error(e: LedgerError):
    logger.warning(f"Admin request by user {current_user.id} refused: {e.message}")
    return jsonify({"error": e.message, "code": e.code}), e.status_code


@admin_bp.route("/transactions/<int:transaction_id>/admin-action", methods=["POST"])
@login_required
def admin_action(transaction_id):
    data = _json_body()
    if data is None:
        return jsonify({"error": "Request must be JSON"}), 400

    try:
        txn = get_engine().admin_decide(transaction_id, data.get("action"), current_user.is_staff)
        logger.info(f"Staff user {current_user.id} ran {data.get('action')} on transaction {transaction_id}")
        return jsonify({"message": f"Transaction {txn.status}", "transaction": txn.to_dict()}), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception as e:
        logger.error(f"Admin action on transaction {transaction_id} failed: {e}", exc_info=True)
        return jsonify({"error": "Admin action failed"}), 500


@admin_bp.route("/transactions/<int:transaction_id>", methods=["DELETE"])
@login_required
def delete_transaction(transaction_id):
    try:
        snapshot = get_engine().admin_delete(transaction_id, current_user.is_staff)
        return jsonify({"message": "Transaction deleted", "transaction": snapshot}), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception as e:
        logger.error(f"Deleting transaction {transaction_id} failed: {e}", exc_info=True)
        return jsonify({"error": "Delete failed"}), 500


@admin_bp.route("/transactions", methods=["GET"])
@login_required
def list_transactions():
    status = request.args.get("status") or None
    try:
        transactions = get_engine().admin_transactions(current_user.is_staff, status)
        return jsonify({"transactions": [txn.to_dict() for txn in transactions]}), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception as e:
        logger.error(f"Admin transaction listing failed: {e}", exc_info=True)
        return jsonify({"error": "Failed to load transactions"}), 500


@admin_bp.route("/stats", methods=["GET"])
@login_required
def stats():
    try:
        return jsonify(get_engine().admin_stats(current_user.is_staff)), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception as e:
        logger.error(f"Admin stats failed: {e}", exc_info=True)
        return jsonify({"error": "Failed to load stats"}), 500


@admin_bp.route("/users/fund", methods=["POST"])
@login_required
def fund_user():
    data = _json_body()
    if data is None:
        return jsonify({"error": "Request must be JSON"}), 400

    try:
        user_id = int(data.get("user_id"))
    except (TypeError, ValueError):
        return jsonify({"error": "user_id is required"}), 400

    try:
        txn = get_engine().admin_fund(user_id, data.get("amount"), current_user.is_staff)
        return jsonify({"message": "User funded", "transaction": txn.to_dict()}), 201
    except LedgerError as e:
        return _ledger_error(e)
    except Exception as e:
        logger.error(f"Funding user {user_id} failed: {e}", exc_info=True)
        return jsonify({"error": "Funding failed"}), 500


@admin_bp.route("/users/<int:user_id>/balance", methods=["POST"])
@login_required
def correct_balance(user_id):
    data = _json_body()
    if data is None:
        return jsonify({"error": "Request must be JSON"}), 400

    try:
        txn = get_engine().admin_correct_balance(
            user_id, data.get("balance"), current_user.is_staff, data.get("reason")
        )
        return jsonify({"message": "Balance updated", "transaction": txn.to_dict()}), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception as e:
        logger.error(f"Balance correction for user {user_id} failed: {e}", exc_info=True)
        return jsonify({"error": "Balance update failed"}), 500


@admin_bp.route("/referrals", methods=["GET"])
@login_required
def list_referrals():
    try:
        return jsonify({"referrals": get_engine().admin_referrals(current_user.is_staff)}), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception as e:
        logger.error(f"Admin referral listing failed: {e}", exc_info=True)
        return jsonify({"error": "Failed to load referrals"}), 500
