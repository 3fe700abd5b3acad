"""
Client side of checkout: a step-by-step state machine that drives a cart
through order creation and payment proof upload.

Every transition is written to a ``StateStore`` before the next network call,
so a reload at any point resumes where the customer was. Once an order id is
known it is never submitted again: a reload after ``ORDER_CREATED`` comes
back to the same order instead of placing a duplicate.
"""

from typing import Optional

from client.api import ApiError, StorefrontApi
from client.state import CartLine, CheckoutState, CheckoutStep, StateStore
from utils.logger import get_logger

logger = get_logger(__name__)


class CheckoutError(Exception):
    """Action not allowed in the current step."""


GENERIC_MESSAGES = {
    "empty_cart": "Your cart is empty.",
    "missing_proof": "Please upload the transfer receipt before confirming the order.",
    "product_not_found": "Some products in your cart no longer exist. Please refresh your cart.",
    "order_not_found": "We could not find your order. Please start the checkout again.",
    "invalid_state": "This order can no longer be changed.",
    "unauthorized": "This order belongs to another account.",
    "network_error": "Could not reach the store. Check your connection and try again.",
}

UNKNOWN_OUTCOME_MESSAGE = (
    "We could not confirm whether your order was placed. "
    "Check your email before submitting again."
)


def describe_error(error: ApiError) -> str:
    """On-screen message for a failed API call."""
    if error.code == "insufficient_stock" and error.details:
        lines = ", ".join(
            f"{item['product']} (requested {item['requested']}, available {item['available']})"
            for item in error.details
        )
        return f"Not enough stock for: {lines}. Please adjust the quantities."

    if error.code == "product_unavailable" and error.details:
        return f"No longer available: {', '.join(error.details)}. Please remove them from your cart."

    if error.code == "validation_error":
        details = error.details
        if isinstance(details, dict) and details.get("missing_fields"):
            return f"Please fill in: {', '.join(details['missing_fields'])}."
        if isinstance(details, list) and details:
            return "Please check: " + ", ".join(f"{d['field']} ({d['message']})" for d in details) + "."
        return error.message

    if error.code in GENERIC_MESSAGES:
        return GENERIC_MESSAGES[error.code]

    if error.outcome_unknown:
        return "Something went wrong on our side. Please try again in a moment."

    return error.message


class CheckoutWorkflow:

    def __init__(self, api: StorefrontApi, store: StateStore, token: Optional[str] = None):
        self.api = api
        self.store = store
        self.token = token
        self.state = CheckoutState()

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    @property
    def step(self) -> CheckoutStep:
        return self.state.step

    # ----------------------------------------------------------- persistence

    def resume(self) -> CheckoutState:
        """
        Reload persisted progress. Steps that were in flight when the page
        went away fall back to the last safe step.
        """
        saved = self.store.load()
        if saved is None:
            self.state = CheckoutState()
            return self.state

        if saved.step == CheckoutStep.ORDER_SUBMITTING:
            if saved.order_id:
                saved.step = CheckoutStep.ORDER_CREATED
            else:
                saved.step = CheckoutStep.ADDRESS_FORM
                saved.submission_uncertain = True
                saved.error = UNKNOWN_OUTCOME_MESSAGE
        elif saved.step == CheckoutStep.PROOF_UPLOADING:
            saved.step = CheckoutStep.PROOF_FORM

        self.state = saved
        self._persist()
        logger.debug("Checkout resumed", extra={"step": saved.step.value, "order_id": saved.order_id})
        return self.state

    def _persist(self):
        self.store.save(self.state)

    def _move_to(self, step: CheckoutStep):
        self.state.step = step
        self._persist()

    def _require(self, *steps: CheckoutStep):
        if self.state.step not in steps:
            raise CheckoutError(f"Not allowed while in step '{self.state.step.value}'")

    # ------------------------------------------------------------------ cart

    def add_to_cart(self, product_id: str, name: str, price: float, quantity: int = 1):
        self._require(CheckoutStep.CART_REVIEW, CheckoutStep.ADDRESS_FORM)
        for line in self.state.cart:
            if line.product_id == product_id:
                line.quantity += quantity
                break
        else:
            self.state.cart.append(CartLine(product_id=product_id, name=name, price=price, quantity=quantity))
        self._persist()

    def set_quantity(self, product_id: str, quantity: int):
        """Quantity 0 removes the line."""
        self._require(CheckoutStep.CART_REVIEW, CheckoutStep.ADDRESS_FORM)
        if quantity <= 0:
            self.state.cart = [line for line in self.state.cart if line.product_id != product_id]
        else:
            for line in self.state.cart:
                if line.product_id == product_id:
                    line.quantity = quantity
        self._persist()

    @property
    def cart_subtotal(self) -> float:
        return round(sum(line.price * line.quantity for line in self.state.cart), 2)

    # --------------------------------------------------------------- address

    def begin_checkout(self):
        self._require(CheckoutStep.CART_REVIEW)
        if not self.state.cart:
            raise CheckoutError("Your cart is empty")

        if self.authenticated:
            self._prefill_from_profile()

        self.state.error = None
        self._move_to(CheckoutStep.ADDRESS_FORM)

    def back_to_cart(self):
        self._require(CheckoutStep.ADDRESS_FORM)
        self._move_to(CheckoutStep.CART_REVIEW)

    def update_address(self, **fields):
        self._require(CheckoutStep.ADDRESS_FORM)
        self.state.address = self.state.address.model_copy(update=fields)
        self._persist()

    def _prefill_from_profile(self):
        try:
            profile = self.api.get_profile(self.token)
        except ApiError as exc:
            logger.warning("Could not load profile for checkout", extra={"error": exc.message})
            return

        if not profile:
            return

        saved = {
            "first_name": profile.get("first_name"),
            "last_name": profile.get("last_name"),
            "cedula": profile.get("cedula"),
            "email": profile.get("email"),
            "phone": profile.get("phone"),
            "country": profile.get("country"),
            "state": profile.get("state"),
            "city": profile.get("city"),
            "address": profile.get("address_line1"),
        }
        current = self.state.address
        # What the customer already typed wins over the saved profile
        updates = {
            field: value for field, value in saved.items()
            if value and not getattr(current, field)
        }
        self.state.address = current.model_copy(update=updates)

    # ----------------------------------------------------------------- order

    def submit_order(self, confirm_resubmit: bool = False) -> bool:
        """
        Place the order. Returns True once the order exists.

        After a submission whose outcome is unknown the order may already
        exist, so a new attempt needs ``confirm_resubmit=True``.
        """
        self._require(CheckoutStep.ADDRESS_FORM)

        if self.state.submission_uncertain and not confirm_resubmit:
            raise CheckoutError(UNKNOWN_OUTCOME_MESSAGE)
        if not self.state.cart:
            raise CheckoutError("Your cart is empty")

        payload = self._order_payload()
        self.state.error = None
        self._move_to(CheckoutStep.ORDER_SUBMITTING)

        try:
            result = self.api.create_order(payload, token=self.token)
        except ApiError as exc:
            logger.info("Order submission failed", extra={"code": exc.code, "status_code": exc.status_code})
            self.state.submission_uncertain = exc.outcome_unknown
            self.state.error = UNKNOWN_OUTCOME_MESSAGE if exc.status_code is None else describe_error(exc)
            self._move_to(CheckoutStep.ADDRESS_FORM)
            return False

        self.state.order_id = result["order_id"]
        self.state.tracking_code = result["tracking_code"]
        self.state.subtotal = result["subtotal"]
        self.state.shipping_cost = result["shipping_cost"]
        self.state.total_amount = result["total_amount"]
        self.state.submission_uncertain = False
        # Stock is reserved now, the cart has served its purpose
        self.state.cart = []
        self._move_to(CheckoutStep.ORDER_CREATED)

        if self.authenticated:
            self._save_profile()

        return True

    def _order_payload(self) -> dict:
        address = self.state.address
        return {
            "customer_name": address.customer_name,
            "customer_email": address.email,
            "customer_phone": address.phone or None,
            "country": address.country,
            "state": address.state,
            "city": address.city,
            "address": address.address or None,
            "cedula": address.cedula,
            "items": [
                {"product_id": line.product_id, "quantity": line.quantity}
                for line in self.state.cart
            ],
        }

    def _save_profile(self):
        address = self.state.address
        try:
            self.api.save_profile(self.token, {
                "first_name": address.first_name,
                "last_name": address.last_name,
                "cedula": address.cedula,
                "phone": address.phone or None,
                "country": address.country,
                "state": address.state,
                "city": address.city,
                "address_line1": address.address or None,
            })
        except ApiError as exc:
            # The order stands either way
            logger.warning("Could not save profile after checkout", extra={"error": exc.message})

    # ----------------------------------------------------------------- proof

    def proceed_to_proof(self):
        self._require(CheckoutStep.ORDER_CREATED)
        self._move_to(CheckoutStep.PROOF_FORM)

    def upload_proof(self, file_name: str, data: bytes) -> bool:
        self._require(CheckoutStep.PROOF_FORM)

        if not data:
            self.state.error = "Please select an image of the transfer receipt."
            self._persist()
            return False

        self.state.error = None
        self._move_to(CheckoutStep.PROOF_UPLOADING)

        try:
            url = self.api.upload_proof(self.state.order_id, file_name, data)
        except ApiError as exc:
            logger.info("Proof upload failed", extra={"code": exc.code, "order_id": self.state.order_id})
            self.state.error = describe_error(exc)
            self._move_to(CheckoutStep.PROOF_FORM)
            return False

        self.state.payment_proof_url = url
        self._move_to(CheckoutStep.PROOF_UPLOADED)
        return True

    # ------------------------------------------------------------ leave flow

    def cancel_and_return(self) -> bool:
        """
        Abandon a placed order: the server releases the stock and deletes the
        order, then local progress is wiped. On failure nothing local changes.
        """
        self._require(CheckoutStep.ORDER_CREATED, CheckoutStep.PROOF_FORM)

        try:
            self.api.cancel_order(self.state.order_id, token=self.token)
        except ApiError as exc:
            if exc.code != "order_not_found":
                self.state.error = describe_error(exc)
                self._persist()
                return False
            logger.info("Order already gone, clearing checkout", extra={"order_id": self.state.order_id})

        self.store.clear()
        self.state = CheckoutState()
        return True

    def finish(self) -> str:
        """Close a completed checkout. Returns the tracking code to show."""
        self._require(CheckoutStep.PROOF_UPLOADED)
        tracking_code = self.state.tracking_code
        self.store.clear()
        self.state.step = CheckoutStep.DONE
        return tracking_code
