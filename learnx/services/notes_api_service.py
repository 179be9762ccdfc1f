"""Business logic handlers for the AI notes generator."""

from learnx.services import auth_service, notes_service


def generate_notes(ctx, request):
    decoded_token = auth_service.verify_firebase_token(request, ctx)
    if not decoded_token:
        return ctx.jsonify({'error': 'Please sign in to continue'}), 401
    topic, language, description = notes_service.parse_notes_request(request.get_json(silent=True) or {})
    result = notes_service.generate_notes(ctx, topic, language, description)
    ctx.logger.info(f"Generated notes for user {decoded_token.get('uid', '')} on '{topic}' ({language})")
    return ctx.jsonify(result), 200
