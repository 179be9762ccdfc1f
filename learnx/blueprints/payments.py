from flask import Blueprint, request

from learnx.extensions import get_app_context
from learnx.services import payments_api_service

payments_bp = Blueprint('payments_api', __name__)


@payments_bp.route('/api/create-order', methods=['POST'])
def create_order():
    return payments_api_service.create_order(get_app_context(), request)


@payments_bp.route('/api/get-payment-status', methods=['GET'])
def get_payment_status():
    return payments_api_service.get_payment_status(get_app_context(), request)


@payments_bp.route('/api/payment-status', methods=['GET'])
def payment_redirect():
    return payments_api_service.payment_redirect(get_app_context(), request)


@payments_bp.route('/api/payment-status', methods=['POST'])
def payment_webhook():
    return payments_api_service.payment_webhook(get_app_context(), request)
