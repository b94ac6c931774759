from datetime import datetime
from typing import Optional

import pybreaker
import requests
from loguru import logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from unlock_core.config.settings import Settings
from unlock_core.core.circuit_breaker import CircuitBreakerConfig
from unlock_core.core.exceptions import ProviderUnavailableException
from unlock_core.core.status import PaymentStatus, map_provider_status
from unlock_core.core.utils import json_dumps, parse_datetime
from unlock_core.monitoring.metrics import external_api_duration

VENDOR_TIMEOUT_CODE = "E_LOCK_TIMEOUT"
VENDOR_UNAVAILABLE_CODE = "E_VENDOR_UNAVAILABLE"


class ProviderPayment:
    def __init__(
        self,
        id: str,
        status: PaymentStatus,
        raw_status: str,
        amount: int,
        currency: Optional[str],
        mode: Optional[str],
        scheme: Optional[str],
        created_at: datetime,
        raw: dict,
    ):
        self.id = id
        self.status = status
        self.raw_status = raw_status
        self.amount = amount
        self.currency = currency
        self.mode = mode
        self.scheme = scheme
        self.created_at = created_at
        self.raw = raw

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    def metadata_json(self) -> str:
        return json_dumps(self.raw)


class VendorResult:
    def __init__(self, code: str, msg: str, success_code: str = "00000"):
        self.code = code
        self.msg = msg
        self.success = code == success_code


class ExternalClient:
    def __init__(self, settings: Settings):
        self._session = self._build_session()
        self._unlock_session = self._build_unlock_session(settings)
        self._timeout = settings.http_timeout_sec
        self._vendor_timeout = settings.vendor_timeout_sec
        self._provider_base = settings.provider_base
        self._provider_auth = (settings.provider_secret_key, "")
        self._currency = settings.currency
        self._vendor_base = settings.vendor_base
        self._vendor_success_code = settings.vendor_success_code

        self._cb_config = CircuitBreakerConfig(settings)
        self._provider_breaker = self._cb_config.get_provider_breaker()
        self._vendor_breaker = self._cb_config.get_vendor_breaker()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        retries = Retry(
            total=3,
            connect=3,
            read=3,
            backoff_factor=0.3,
            status_forcelist=(502, 503, 504),
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"User-Agent": "unlock-core/1.0"})
        return session

    def _build_unlock_session(self, settings: Settings) -> requests.Session:
        # unlock POSTs are never replayed at the transport level
        session = requests.Session()
        adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"User-Agent": "unlock-core/1.0"})
        if settings.vendor_app_key:
            session.headers.update({"X-App-Key": settings.vendor_app_key})
        return session

    @staticmethod
    def _url(base: str, path: str) -> str:
        return f"{base.rstrip('/')}/{path.lstrip('/')}"

    def get_payment(self, payment_id: str) -> Optional[ProviderPayment]:
        """Authoritative payment lookup; returns None when the provider does not know the id."""

        @self._provider_breaker
        def _get_payment():
            with external_api_duration.labels(
                service="unlock-core", api_service="provider", endpoint="payments"
            ).time():
                response = self._session.get(
                    self._url(self._provider_base, f"/payments/{payment_id}"),
                    auth=self._provider_auth,
                    timeout=self._timeout,
                )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

        try:
            data = _get_payment()
        except (requests.RequestException, pybreaker.CircuitBreakerError) as e:
            logger.warning(f"Payment provider lookup failed for {payment_id}: {e}")
            raise ProviderUnavailableException(str(e)) from e

        if data is None:
            logger.warning(f"Payment {payment_id} unknown to provider")
            return None

        source = data.get("source") or {}
        raw_status = str(data.get("status") or "")
        return ProviderPayment(
            id=str(data.get("id") or payment_id),
            status=map_provider_status(raw_status),
            raw_status=raw_status,
            amount=int(data.get("amount") or 0),
            currency=data.get("currency") or self._currency,
            mode=source.get("type"),
            scheme=source.get("company"),
            created_at=parse_datetime(data.get("created_at")),
            raw=data,
        )

    def unlock_cart(
        self, device_no: str, cart_index: int, cart_no: Optional[str] = None
    ) -> VendorResult:
        """Single unlock command; transport failures become vendor error codes."""

        @self._vendor_breaker
        def _unlock():
            with external_api_duration.labels(
                service="unlock-core", api_service="vendor", endpoint="handcart/unlock"
            ).time():
                response = self._unlock_session.post(
                    self._url(self._vendor_base, "/handcart/unlock"),
                    json={"deviceNo": device_no, "cartIndex": cart_index, "cartNo": cart_no},
                    timeout=self._vendor_timeout,
                )
            response.raise_for_status()
            return response.json() if response.content else {}

        try:
            data = _unlock()
        except requests.Timeout as e:
            logger.error(f"Unlock timed out for device {device_no} slot {cart_index}: {e}")
            return VendorResult(VENDOR_TIMEOUT_CODE, "timeout", self._vendor_success_code)
        except pybreaker.CircuitBreakerError as e:
            logger.error(f"Vendor circuit open, unlock for device {device_no} not sent: {e}")
            return VendorResult(
                VENDOR_UNAVAILABLE_CODE, "vendor unavailable", self._vendor_success_code
            )
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Unlock failed for device {device_no} slot {cart_index}: {e}")
            return VendorResult(VENDOR_UNAVAILABLE_CODE, str(e), self._vendor_success_code)

        if not isinstance(data, dict):
            logger.error(f"Unexpected vendor reply for device {device_no} slot {cart_index}: {data!r}")
            return VendorResult(
                VENDOR_UNAVAILABLE_CODE, "invalid vendor response", self._vendor_success_code
            )

        code = str(data.get("code") or VENDOR_UNAVAILABLE_CODE)
        msg = str(data.get("msg") or "")
        logger.info(f"Vendor unlock device={device_no} slot={cart_index}: code={code} msg={msg}")
        return VendorResult(code, msg, self._vendor_success_code)

    def get_circuit_breaker_stats(self):
        return self._cb_config.get_breaker_stats()
