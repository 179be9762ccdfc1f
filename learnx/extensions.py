"""Startup wiring: external clients are built once and carried on an AppContext."""

import json
import logging
import os
import threading
import time

import firebase_admin
import sentry_sdk
from firebase_admin import auth, credentials, firestore
from flask import current_app, jsonify
from google import genai
from sentry_sdk.integrations.flask import FlaskIntegration

from learnx.errors import ConfigurationError
from learnx.services.cashfree_client import CashfreeClient

EXTENSION_KEY = 'learnx'
FIREBASE_APP_NAME = 'learnx'
FIREBASE_CREDENTIALS_FILE = 'firebase-credentials.json'

logger = logging.getLogger('learnx')


class AppContext:
    """Everything a request handler needs, injected instead of imported."""

    def __init__(self, config, *, db=None, firestore_module=None, gateway=None, notes_client=None,
                 verify_id_token=None, time_module=None):
        self.config = config
        self.db = db
        self.firestore = firestore_module or firestore
        self.gateway = gateway
        self.notes_client = notes_client
        self._verify_id_token = verify_id_token
        self.time = time_module or time
        self.logger = logger
        self.jsonify = jsonify
        self.rate_limit_events = {}
        self.rate_limit_lock = threading.Lock()

    def require_db(self):
        if self.db is None:
            raise ConfigurationError('Database is not configured.')
        return self.db

    def require_gateway(self):
        if self.gateway is None:
            raise ConfigurationError('Payment gateway credentials are not configured.')
        return self.gateway

    def verify_id_token(self, token):
        if self._verify_id_token is None:
            raise ConfigurationError('Authentication is not configured.')
        return self._verify_id_token(token)


def get_app_context():
    return current_app.extensions[EXTENSION_KEY]


def load_firebase_credentials(config):
    if os.path.exists(FIREBASE_CREDENTIALS_FILE):
        return credentials.Certificate(FIREBASE_CREDENTIALS_FILE)
    if not config.firebase_credentials:
        raise ValueError('FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.')
    return credentials.Certificate(json.loads(config.firebase_credentials))


def init_firebase(config):
    """Return ``(db, verify_id_token)`` for a dedicated Firebase app, or ``(None, None)``."""
    try:
        try:
            firebase_app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            firebase_app = firebase_admin.initialize_app(load_firebase_credentials(config), name=FIREBASE_APP_NAME)
        db = firestore.client(app=firebase_app)
    except (ValueError, OSError) as e:
        logger.warning(f"Firebase initialization skipped: {e}")
        return None, None

    def verify_id_token(token):
        return auth.verify_id_token(token, app=firebase_app)

    return db, verify_id_token


def init_gateway(config):
    if not config.cashfree_configured:
        logger.warning('Cashfree credentials are not configured; payment endpoints will return 500.')
        return None
    return CashfreeClient.from_config(config)


def init_notes_client(config):
    if not config.gemini_api_key:
        logger.info('GEMINI_API_KEY not set; AI notes generation is disabled.')
        return None
    return genai.Client(api_key=config.gemini_api_key)


def init_sentry(config):
    if not config.sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        integrations=[FlaskIntegration()],
        environment=config.sentry_environment,
        release=config.sentry_release,
        traces_sample_rate=0.0,
    )
    return True


def init_extensions(app, ctx):
    app.extensions[EXTENSION_KEY] = ctx
    return ctx
