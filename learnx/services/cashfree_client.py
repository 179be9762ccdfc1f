"""HTTP client for the Cashfree payment gateway (PG orders API)."""

import base64
import hashlib
import hmac
import logging

import httpx

from learnx.errors import GatewayError

logger = logging.getLogger('learnx.gateway')

NEXT_CURSOR_HEADER = 'x-next-cursor'


class CashfreeClient:
    def __init__(self, *, app_id, secret_key, base_url, api_version='2023-08-01', timeout=15, http_client=None):
        self.app_id = app_id
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.api_version = api_version
        self._http = http_client or httpx.Client(base_url=self.base_url, timeout=timeout)

    @classmethod
    def from_config(cls, config, http_client=None):
        return cls(
            app_id=config.cashfree_app_id,
            secret_key=config.cashfree_secret_key,
            base_url=config.cashfree_base_url,
            api_version=config.cashfree_api_version,
            timeout=config.cashfree_timeout_seconds,
            http_client=http_client,
        )

    def _headers(self):
        return {
            'Accept': 'application/json',
            'x-client-id': self.app_id,
            'x-client-secret': self.secret_key,
            'x-api-version': self.api_version,
        }

    def _request(self, method, path, *, json_body=None, params=None):
        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(method, url, headers=self._headers(), json=json_body, params=params)
        except httpx.HTTPError as exc:
            logger.warning(f"Cashfree {method} {path} transport error: {exc}")
            raise GatewayError('Payment gateway is unreachable.', status_code=502, transient=True) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code >= 400:
            message = ''
            if isinstance(data, dict):
                message = str(data.get('message') or '').strip()
            logger.error(f"Cashfree {method} {path} failed with {response.status_code}: {message or response.text[:200]}")
            raise GatewayError(message or 'Payment gateway request failed.', status_code=response.status_code)
        return data, response.headers

    def create_order(self, payload):
        data, _headers = self._request('POST', '/orders', json_body=payload)
        return data

    def get_order(self, order_id):
        data, _headers = self._request('GET', f"/orders/{order_id}")
        return data

    def iter_orders(self, from_date, to_date, order_status='PAID', count=100):
        """Yield orders in ``[from_date, to_date]`` following the cursor header."""
        cursor = None
        while True:
            params = {
                'from': from_date,
                'to': to_date,
                'count': str(count),
                'order_status': order_status,
            }
            if cursor:
                params['cursor'] = cursor
            data, headers = self._request('GET', '/orders', params=params)
            if isinstance(data, list):
                for order in data:
                    yield order
            cursor = headers.get(NEXT_CURSOR_HEADER)
            if not cursor:
                return

    def verify_webhook_signature(self, raw_body, timestamp, signature):
        """Check ``base64(HMAC-SHA256(timestamp + body))`` against the header value."""
        if not signature or not timestamp:
            return False
        if isinstance(raw_body, str):
            raw_body = raw_body.encode('utf-8')
        message = str(timestamp).encode('utf-8') + (raw_body or b'')
        digest = hmac.new(self.secret_key.encode('utf-8'), msg=message, digestmod=hashlib.sha256).digest()
        expected = base64.b64encode(digest).decode('ascii')
        return hmac.compare_digest(expected, str(signature))

    def close(self):
        self._http.close()
