from flask import Blueprint, request

from learnx.extensions import get_app_context
from learnx.services import catalog_api_service

catalog_bp = Blueprint('catalog_api', __name__)


@catalog_bp.route('/api/access', methods=['GET'])
def get_access():
    return catalog_api_service.get_access(get_app_context(), request)


@catalog_bp.route('/api/purchases', methods=['GET'])
def purchase_history():
    return catalog_api_service.get_purchase_history(get_app_context(), request)
