import logging
from json import JSONDecodeError
from typing import Optional

import requests
from pydantic import ValidationError
from requests import Response

from pialert_relay.models import (AlertSnapshot, ApiError, AuthFailed, PollOutcome, RateLimited, Success,
                                  TransportError)

log = logging.getLogger(__name__)

DEFAULT_API_URL = 'http://localhost:8000/api/v1/alert-status'
DEFAULT_TIMEOUT = 5.0
API_KEY_HEADER = 'x-api-key'


class AlertClient:
    """
    Queries the PiAlert alert-status endpoint.

    Each call to poll() issues exactly one GET request and never raises for
    network or HTTP problems; the result is classified into a PollOutcome.
    Retrying is left to the next scheduled poll.

    Args:
        url         = Alert status endpoint
        api_key     = Credential sent in the x-api-key header
        timeout     = Seconds before the request is abandoned (default 5)
        session     = Optional requests.Session to reuse
    """

    def __init__(self, url: str, api_key: str, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({API_KEY_HEADER: api_key, 'Accept': 'application/json'})

    def poll(self) -> PollOutcome:
        log.debug(' -- alert: Request %s' % self.url)
        try:
            r: Response = self.session.get(self.url, timeout=self.timeout)
        except requests.exceptions.Timeout:
            log.debug('ERROR Timeout waiting for alert API %s' % self.url)
            return TransportError(message=f"Timeout after {self.timeout:g}s waiting for {self.url}")
        except requests.exceptions.ConnectionError as exc:
            log.debug('ERROR Unable to connect to alert API at %s' % self.url)
            return TransportError(message=f"Unable to connect to {self.url}: {exc}")
        except requests.exceptions.RequestException as exc:
            log.debug(f'ERROR Unknown error requesting {self.url}: {exc}')
            return TransportError(message=str(exc))

        if r.status_code == 429:
            return RateLimited(retry_after=r.headers.get('Retry-After'))
        elif r.status_code == 401:
            return AuthFailed()
        elif not r.ok:
            return ApiError(status_code=r.status_code)

        try:
            payload = r.json()
        except (JSONDecodeError, ValueError) as exc:
            log.debug(f'ERROR Unable to decode alert payload {r.text!r}: {exc}')
            return TransportError(message=f"Malformed response body: {exc}")
        try:
            snapshot = AlertSnapshot.model_validate(payload)
        except ValidationError as exc:
            log.debug(f'ERROR Unexpected alert payload {payload!r}: {exc}')
            return TransportError(message=f"Malformed response body: {exc.error_count()} validation error(s)")
        return Success(snapshot=snapshot, status_code=r.status_code)

    def close(self) -> None:
        self.session.close()
