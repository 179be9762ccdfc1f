from flask import Blueprint, request

from learnx.extensions import get_app_context
from learnx.services import admin_api_service

admin_bp = Blueprint('admin_api', __name__)


@admin_bp.route('/api/sync-transactions', methods=['POST'])
def sync_transactions():
    return admin_api_service.sync_transactions(get_app_context(), request)


@admin_bp.route('/api/admin/sweep-pending', methods=['POST'])
def sweep_pending():
    return admin_api_service.sweep_pending(get_app_context(), request)


@admin_bp.route('/api/admin/transactions', methods=['GET'])
def list_transactions():
    return admin_api_service.list_transactions(get_app_context(), request)
