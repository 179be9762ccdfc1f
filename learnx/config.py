import os
from dataclasses import dataclass, field
from typing import FrozenSet

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}

CASHFREE_BASE_URLS = {
    'production': 'https://api.cashfree.com/pg',
    'sandbox': 'https://sandbox.cashfree.com/pg',
}


def safe_int_env(name, default=0, minimum=0, maximum=100000):
    raw = str(os.getenv(name, str(default)) or '').strip()
    try:
        value = int(raw)
    except ValueError:
        value = int(default)
    return min(max(value, minimum), maximum)


def env_flag(name, default='1'):
    return str(os.getenv(name, default) or '').strip().lower() in {'1', 'true', 'yes', 'on'}


def env_set(name, lower=False):
    values = set()
    for part in (os.getenv(name, '') or '').split(','):
        part = part.strip()
        if part:
            values.add(part.lower() if lower else part)
    return frozenset(values)


def runtime_environment():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


@dataclass(frozen=True)
class AppConfig:
    """Central runtime configuration, read once at startup."""

    flask_secret_key: str = ''
    log_level: str = 'INFO'
    environment: str = 'development'

    cashfree_app_id: str = ''
    cashfree_secret_key: str = ''
    cashfree_env: str = 'production'
    cashfree_api_version: str = '2023-08-01'
    cashfree_timeout_seconds: int = 15
    cashfree_webhook_verify: bool = True

    app_base_url: str = ''
    payment_return_url: str = ''
    payment_result_path: str = '/home'
    default_customer_email: str = 'default-email@example.com'
    default_customer_phone: str = '9999999999'
    default_customer_name: str = 'Student'

    sync_lookback_days: int = 30
    sync_page_size: int = 100
    reconcile_sweep_interval_seconds: int = 900
    reconcile_pending_min_age_seconds: int = 300

    create_order_rate_limit_max_requests: int = 10
    create_order_rate_limit_window_seconds: int = 600
    rate_limit_firestore_enabled: bool = True

    firebase_credentials: str = ''
    admin_emails: FrozenSet[str] = field(default_factory=frozenset)
    admin_uids: FrozenSet[str] = field(default_factory=frozenset)

    gemini_api_key: str = ''
    notes_model: str = 'gemini-2.5-flash'

    sentry_dsn: str = ''
    sentry_environment: str = 'production'
    sentry_release: str = 'learnx'

    @property
    def cashfree_base_url(self):
        return CASHFREE_BASE_URLS.get(self.cashfree_env, CASHFREE_BASE_URLS['production'])

    @property
    def cashfree_configured(self):
        return bool(self.cashfree_app_id.strip() and self.cashfree_secret_key.strip())

    @property
    def is_dev_like(self):
        return self.environment in DEV_ENV_NAMES

    def build_return_url(self, fallback_base_url=''):
        if self.payment_return_url:
            return self.payment_return_url
        base = (self.app_base_url or fallback_base_url or '').rstrip('/')
        return f"{base}/api/payment-status?order_id={{order_id}}"

    def build_notify_url(self, fallback_base_url=''):
        base = (self.app_base_url or fallback_base_url or '').rstrip('/')
        return f"{base}/api/payment-status"


def load_config() -> AppConfig:
    environment = runtime_environment()
    cashfree_env = (os.getenv('CASHFREE_ENV', 'production') or 'production').strip().lower()
    if cashfree_env not in CASHFREE_BASE_URLS:
        cashfree_env = 'production'
    config = AppConfig(
        flask_secret_key=os.getenv('FLASK_SECRET_KEY', ''),
        log_level=(os.getenv('LOG_LEVEL', 'INFO') or 'INFO').strip().upper(),
        environment=environment,
        cashfree_app_id=(os.getenv('CASHFREE_APP_ID', '') or '').strip(),
        cashfree_secret_key=(os.getenv('CASHFREE_SECRET_KEY', '') or '').strip(),
        cashfree_env=cashfree_env,
        cashfree_api_version=(os.getenv('CASHFREE_API_VERSION', '2023-08-01') or '2023-08-01').strip(),
        cashfree_timeout_seconds=safe_int_env('CASHFREE_TIMEOUT_SECONDS', 15, minimum=1, maximum=120),
        cashfree_webhook_verify=env_flag('CASHFREE_WEBHOOK_VERIFY', '1'),
        app_base_url=(os.getenv('APP_BASE_URL', '') or '').strip(),
        payment_return_url=(os.getenv('PAYMENT_RETURN_URL', '') or '').strip(),
        payment_result_path=(os.getenv('PAYMENT_RESULT_PATH', '/home') or '/home').strip(),
        default_customer_email=(os.getenv('DEFAULT_CUSTOMER_EMAIL', 'default-email@example.com') or '').strip(),
        default_customer_phone=(os.getenv('DEFAULT_CUSTOMER_PHONE', '9999999999') or '').strip(),
        default_customer_name=(os.getenv('DEFAULT_CUSTOMER_NAME', 'Student') or '').strip(),
        sync_lookback_days=safe_int_env('SYNC_LOOKBACK_DAYS', 30, minimum=1, maximum=365),
        sync_page_size=safe_int_env('SYNC_PAGE_SIZE', 100, minimum=1, maximum=200),
        reconcile_sweep_interval_seconds=safe_int_env('RECONCILE_SWEEP_INTERVAL_SECONDS', 900, minimum=0, maximum=86400),
        reconcile_pending_min_age_seconds=safe_int_env('RECONCILE_PENDING_MIN_AGE_SECONDS', 300, minimum=0, maximum=86400),
        create_order_rate_limit_max_requests=safe_int_env('CREATE_ORDER_RATE_LIMIT_MAX_REQUESTS', 10, minimum=1, maximum=1000),
        create_order_rate_limit_window_seconds=safe_int_env('CREATE_ORDER_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=10, maximum=86400),
        rate_limit_firestore_enabled=env_flag('RATE_LIMIT_FIRESTORE_ENABLED', '1'),
        firebase_credentials=(os.getenv('FIREBASE_CREDENTIALS', '') or '').strip(),
        admin_emails=env_set('ADMIN_EMAILS', lower=True),
        admin_uids=env_set('ADMIN_UIDS'),
        gemini_api_key=(os.getenv('GEMINI_API_KEY', '') or '').strip(),
        notes_model=(os.getenv('NOTES_MODEL', 'gemini-2.5-flash') or 'gemini-2.5-flash').strip(),
        sentry_dsn=(os.getenv('SENTRY_DSN_BACKEND', '') or '').strip(),
        sentry_environment=(os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip(),
        sentry_release=(os.getenv('SENTRY_RELEASE', 'learnx') or 'learnx').strip(),
    )
    if not config.is_dev_like and not config.flask_secret_key.strip():
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    return config
