from flask import Blueprint, request

from learnx.extensions import get_app_context
from learnx.services import notes_api_service

notes_bp = Blueprint('notes_api', __name__)


@notes_bp.route('/api/notes/generate', methods=['POST'])
def generate_notes():
    return notes_api_service.generate_notes(get_app_context(), request)
