"""
Bot and abuse gate for signup/login.

Chain order on the guarded routes: rate limit -> honeypot -> captcha.
"""
import logging
import threading
import time

import requests
from fastapi import Request
from starlette.concurrency import run_in_threadpool

from errors import AuthError, RateLimited, ServerError, UpstreamUnavailable, ValidationError

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGES = {
    "signup": "Too many signup attempts, please try again later.",
    "login": "Too many login attempts, please try again later.",
    "payment": "Too many requests, please try again later.",
}

BODY_TOKEN_FIELDS = ("hcaptchaToken", "captchaToken", "token", "g-recaptcha-response")
HEADER_TOKEN_FIELDS = ("x-hcaptcha-token", "h-captcha-response", "g-recaptcha-response")
QUERY_TOKEN_FIELDS = ("hcaptchaToken", "captchaToken", "token")
TOKEN_HINT = (
    "Provide token in one of: body.hcaptchaToken, body.captchaToken, body.token, "
    "body['g-recaptcha-response'], query.token or header 'x-hcaptcha-token'."
)


class FixedWindowRateLimiter:
    """Counts hits per key inside fixed windows of `window` seconds."""

    def __init__(self, limit: int, window: int, clock=time.monotonic):
        self.limit = limit
        self.window = window
        self.clock = clock
        self._hits = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        now = self.clock()
        with self._lock:
            if now - self._last_sweep >= self.window:
                self._sweep(now)
            started, count = self._hits.get(key, (now, 0))
            if now - started >= self.window:
                started, count = now, 0
            count += 1
            self._hits[key] = (started, count)
            return count <= self.limit

    def _sweep(self, now):
        # drop keys whose window has already closed
        self._hits = {k: v for k, v in self._hits.items() if now - v[0] < self.window}
        self._last_sweep = now

    def reset(self):
        with self._lock:
            self._hits.clear()


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def rate_limit(name: str):
    def dependency(request: Request):
        limiter = request.app.state.limiters[name]
        ip = client_ip(request)
        if not limiter.hit(ip):
            logger.warning("Rate limit hit for %s from %s", name, ip)
            raise RateLimited(RATE_LIMIT_MESSAGES.get(name))

    return dependency


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def honeypot_check(request: Request):
    body = await _json_body(request)
    if body.get("honeypot"):
        logger.warning("Honeypot filled from %s", client_ip(request))
        raise ValidationError("Bot detected")


def extract_captcha_token(body: dict, headers, query):
    for name in BODY_TOKEN_FIELDS:
        if body.get(name):
            return body[name]
    for name in HEADER_TOKEN_FIELDS:
        if headers.get(name):
            return headers[name]
    for name in QUERY_TOKEN_FIELDS:
        if query.get(name):
            return query[name]
    return None


class CaptchaVerifier:
    def __init__(self, secret, verify_url, session=None, timeout=5, retries=1, backoff=0.2, sleep=time.sleep):
        self.secret = secret
        self.verify_url = verify_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.sleep = sleep

    def verify(self, token: str, remote_ip: str = None) -> dict:
        if not self.secret:
            logger.error("HCAPTCHA_SECRET missing in environment")
            raise ServerError("Server misconfiguration")

        payload = {"secret": self.secret, "response": token, "remoteip": remote_ip}
        data = None
        last_error = None
        attempt = 0
        while attempt <= self.retries:
            try:
                resp = self.session.post(self.verify_url, data=payload, timeout=self.timeout)
                resp.raise_for_status()
                data = resp.json()
                break
            except requests.RequestException as exc:
                last_error = exc
                status = exc.response.status_code if exc.response is not None else None
                if status is not None and 400 <= status < 500:
                    break
                attempt += 1
                if attempt <= self.retries:
                    self.sleep(self.backoff * attempt)

        if data is None:
            logger.error("Captcha verification error: %s", last_error or "no response")
            raise UpstreamUnavailable("Captcha verification service unavailable")

        if not data.get("success"):
            logger.warning("Captcha verification failed: %s", data.get("error-codes"))
            raise AuthError("Captcha verification failed", details=data.get("error-codes"))
        return data

    def close(self):
        self.session.close()


async def captcha_check(request: Request):
    verifier = request.app.state.captcha
    if not verifier.secret:
        logger.error("HCAPTCHA_SECRET missing in environment")
        raise ServerError("Server misconfiguration")
    body = await _json_body(request)
    token = extract_captcha_token(body, request.headers, request.query_params)
    if not token:
        raise ValidationError("Captcha token is required", hint=TOKEN_HINT)
    await run_in_threadpool(verifier.verify, token, client_ip(request))
