import logging
import os
import uuid

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import load_config
from .errors import LearnxError
from .extensions import (
    AppContext,
    init_extensions,
    init_firebase,
    init_gateway,
    init_notes_client,
    init_sentry,
)
from .logging_config import configure_logging

logger = logging.getLogger('learnx')


def register_request_hooks(app):
    @app.before_request
    def attach_request_id():
        g.request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex

    @app.after_request
    def echo_request_id(response):
        request_id = str(getattr(g, 'request_id', '') or '').strip()
        if request_id:
            response.headers['X-Request-ID'] = request_id
        return response


def register_error_handlers(app):
    @app.errorhandler(LearnxError)
    def handle_learnx_error(error):
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({'error': 'An unknown server error occurred.'}), 500


def register_blueprints(app):
    from .blueprints import admin_bp, catalog_bp, notes_bp, payments_bp

    for blueprint in (payments_bp, admin_bp, catalog_bp, notes_bp):
        app.register_blueprint(blueprint)


def start_sweeper(app, ctx):
    from .services.sync_service import ReconciliationSweeper

    sweeper = ReconciliationSweeper(ctx, ctx.config.reconcile_sweep_interval_seconds)
    sweeper.start()
    app.extensions['learnx_sweeper'] = sweeper
    logger.info(f"Reconciliation sweep every {sweeper.interval_seconds}s")
    return sweeper


def create_app(config=None, *, db=None, firestore_module=None, gateway=None, notes_client=None,
               verify_id_token=None, time_module=None):
    """App factory entrypoint.

    External clients are created here once; callers (and tests) may inject
    their own instead.
    """
    load_dotenv()
    config = config or load_config()
    configure_logging(config.log_level)
    init_sentry(config)

    if db is None:
        db, firebase_verify = init_firebase(config)
        verify_id_token = verify_id_token or firebase_verify
    if gateway is None:
        gateway = init_gateway(config)
    if notes_client is None:
        notes_client = init_notes_client(config)

    app = Flask(__name__)
    app.secret_key = config.flask_secret_key or os.urandom(32).hex()
    ctx = AppContext(
        config,
        db=db,
        firestore_module=firestore_module,
        gateway=gateway,
        notes_client=notes_client,
        verify_id_token=verify_id_token,
        time_module=time_module,
    )
    init_extensions(app, ctx)
    register_request_hooks(app)
    register_error_handlers(app)
    register_blueprints(app)

    if config.reconcile_sweep_interval_seconds > 0 and ctx.db is not None and ctx.gateway is not None:
        start_sweeper(app, ctx)
    return app
