from client.api import ApiError, StorefrontApi
from client.checkout import CheckoutError, CheckoutWorkflow, UNKNOWN_OUTCOME_MESSAGE, describe_error
from client.state import (Address, CartLine, CheckoutState, CheckoutStep, StateStore,
                          MemoryStateStore, JsonFileStateStore)

__all__ = ["ApiError", "StorefrontApi", "CheckoutError", "CheckoutWorkflow", "UNKNOWN_OUTCOME_MESSAGE",
           "describe_error", "Address", "CartLine", "CheckoutState", "CheckoutStep", "StateStore",
           "MemoryStateStore", "JsonFileStateStore"]
