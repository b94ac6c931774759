from typing import Any, Dict

from loguru import logger
from pydantic import ValidationError

from rental_console.config.settings import ConsoleSettings
from rental_console.exceptions import InvalidSelectionError
from rental_console.intent_store import IntentSlot, RentalIntent

FORM_ELEMENT = ".mysr-form"


def build_description(intent: RentalIntent) -> str:
    parts = [f"Device {intent.device_id}"]
    if intent.cart_id:
        parts.append(f"Cart {intent.cart_id}")
    parts.append(f"Slot {intent.cart_index}")
    return "Stroller rental - " + " / ".join(parts)


def start_checkout(slot: IntentSlot, selection: Dict[str, Any], settings: ConsoleSettings) -> Dict[str, Any]:
    """Persist the selection and return the hosted payment form config.

    The intent is written before the config is handed back, so it is on disk
    by the time the browser navigates to the provider.
    """
    try:
        intent = RentalIntent.model_validate(selection)
    except ValidationError as e:
        raise InvalidSelectionError(f"Invalid rental selection: {e.errors()}") from e

    slot.put(intent)

    callback_url = settings.public_base_url.rstrip("/") + settings.return_path
    logger.info(
        f"Checkout started: device={intent.device_id} slot={intent.cart_index} "
        f"amount={intent.amount_minor_units} callback={callback_url}"
    )
    return {
        "element": FORM_ELEMENT,
        "amount": intent.amount_minor_units,
        "currency": settings.currency,
        "description": build_description(intent),
        "publishable_api_key": settings.publishable_api_key,
        "callback_url": callback_url,
        "supported_networks": list(settings.supported_networks),
        "methods": list(settings.payment_methods),
    }
