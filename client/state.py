"""
Serializable checkout progress and the stores that keep it across reloads.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

from utils.logger import get_logger

logger = get_logger(__name__)


class CheckoutStep(str, Enum):
    CART_REVIEW = "cart_review"
    ADDRESS_FORM = "address_form"
    ORDER_SUBMITTING = "order_submitting"
    ORDER_CREATED = "order_created"
    PROOF_FORM = "proof_form"
    PROOF_UPLOADING = "proof_uploading"
    PROOF_UPLOADED = "proof_uploaded"
    DONE = "done"


class CartLine(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int = Field(gt=0)


class Address(BaseModel):
    first_name: str = ""
    last_name: str = ""
    cedula: str = ""
    email: str = ""
    phone: str = ""
    country: str = ""
    state: str = ""
    city: str = ""
    address: str = ""

    @property
    def customer_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CheckoutState(BaseModel):
    step: CheckoutStep = CheckoutStep.CART_REVIEW
    cart: list[CartLine] = []
    address: Address = Address()

    order_id: Optional[str] = None
    tracking_code: Optional[str] = None
    subtotal: Optional[float] = None
    shipping_cost: Optional[float] = None
    total_amount: Optional[float] = None
    payment_proof_url: Optional[str] = None

    # Set when an order submission ended without a definite answer
    submission_uncertain: bool = False
    error: Optional[str] = None


class StateStore:
    """Durable client-local storage for one checkout."""

    def load(self) -> Optional[CheckoutState]:
        raise NotImplementedError

    def save(self, state: CheckoutState) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryStateStore(StateStore):
    """Keeps the serialized state in memory, like a browser tab's session storage."""

    def __init__(self):
        self._raw: Optional[str] = None

    def load(self) -> Optional[CheckoutState]:
        if self._raw is None:
            return None
        return CheckoutState.model_validate_json(self._raw)

    def save(self, state: CheckoutState) -> None:
        self._raw = state.model_dump_json()

    def clear(self) -> None:
        self._raw = None


class JsonFileStateStore(StateStore):

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[CheckoutState]:
        if not self.path.exists():
            return None
        try:
            return CheckoutState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValueError:
            # pydantic's ValidationError is a ValueError
            logger.warning("Discarding unreadable checkout state", extra={"path": str(self.path)})
            return None

    def save(self, state: CheckoutState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(state.model_dump(mode="json"), indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
