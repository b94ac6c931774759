import asyncio
from typing import Any, Mapping, Optional

import httpx
from loguru import logger
from pydantic import BaseModel

from rental_console.clients.api import OrchestratorClient
from rental_console.exceptions import ConsoleError
from rental_console.intent_store import STORE_ERRORS, IntentSlot

SUCCESS_CODE = "00000"

MISSING_PAYMENT_ID = "Missing payment id."
MISSING_SELECTION = "Missing selection data. Please reselect stroller and package."
CONFIRMING = "Confirming payment and unlocking stroller…"
UNLOCK_SENT = "Unlock sent successfully! Enjoy your ride."
SERVER_ERROR = "Server error. Please contact support."
TIMED_OUT = "Timed out confirming payment. Please retry."
SELECTION_UNAVAILABLE = "Could not load your selection. Please retry."


class ReturnResult(BaseModel):
    status: str = "init"  # init | confirming | ok | error
    message: str = "Waiting…"
    retryable: bool = False
    payment_id: Optional[str] = None
    provider_status: Optional[str] = None
    debug: Optional[Any] = None


def is_unlocked(response: Mapping) -> bool:
    vendor = ((response or {}).get("data") or {}).get("vendor") or {}
    return response.get("code") == SUCCESS_CODE and vendor.get("code") == SUCCESS_CODE


def failure_message(response: Mapping) -> str:
    vendor = ((response or {}).get("data") or {}).get("vendor") or {}
    return f"Unlock failed: {vendor.get('msg') or response.get('msg') or 'Unknown error'}"


class ReturnHandler:
    """Drives one confirm-and-unlock attempt for a single return-page load.

    ``run`` may be triggered more than once for the same page; the confirmed
    flag is set before the only suspension point, so later invocations return
    the current result without touching the orchestrator.
    """

    def __init__(
        self,
        query: Mapping[str, str],
        slot: IntentSlot,
        client: OrchestratorClient,
        timeout_sec: float = 20.0,
    ):
        self._query = query
        self._slot = slot
        self._client = client
        self._timeout_sec = timeout_sec
        self._confirmed = False
        self.result = ReturnResult()

    @property
    def payment_id(self) -> Optional[str]:
        return self._query.get("id") or self._query.get("payment_id") or None

    async def run(self) -> ReturnResult:
        if self._confirmed:
            logger.debug("Return handler already committed, skipping duplicate run")
            return self.result

        payment_id = self.payment_id
        provider_status = self._query.get("status")
        logger.info(f"Return page: payment_id={payment_id} provider_status={provider_status}")
        self.result.payment_id = payment_id
        self.result.provider_status = provider_status

        if not payment_id:
            return self._fail(MISSING_PAYMENT_ID)

        try:
            intent = self._slot.get()
        except STORE_ERRORS as e:
            logger.error(f"Intent store read failed for payment {payment_id}: {e!r}")
            return self._fail(SELECTION_UNAVAILABLE, retryable=True, debug={"error": repr(e)})
        if intent is None:
            return self._fail(MISSING_SELECTION)

        self._confirmed = True
        self.result.status = "confirming"
        self.result.message = CONFIRMING

        payload = intent.confirm_payload(payment_id)
        try:
            response = await asyncio.wait_for(
                self._client.confirm_and_unlock(payload), timeout=self._timeout_sec
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"Confirm-and-unlock timed out for payment {payment_id}")
            return self._fail(TIMED_OUT, retryable=True, debug={"error": repr(e)})
        except (ConsoleError, httpx.HTTPError) as e:
            logger.error(f"Confirm-and-unlock failed for payment {payment_id}: {e}")
            return self._fail(SERVER_ERROR, retryable=True, debug={"error": str(e)})

        logger.info(f"Confirm result for payment {payment_id}: {response}")
        self.result.debug = response

        if is_unlocked(response):
            self.result.status = "ok"
            self.result.message = UNLOCK_SENT
            try:
                self._slot.clear()
            except STORE_ERRORS as e:
                # a leftover intent only replays the recorded outcome
                logger.warning(f"Could not clear intent after unlocking payment {payment_id}: {e!r}")
            return self.result

        # intent stays for a support-assisted retry
        return self._fail(failure_message(response), retryable=True, debug=response)

    def _fail(self, message: str, retryable: bool = False, debug: Any = None) -> ReturnResult:
        self.result.status = "error"
        self.result.message = message
        self.result.retryable = retryable
        if debug is not None:
            self.result.debug = debug
        logger.warning(f"Return page error: {message}")
        return self.result
