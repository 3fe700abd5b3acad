import httpx
import pytest

from client import (ApiError, CheckoutError, CheckoutState, CheckoutStep, CheckoutWorkflow, JsonFileStateStore,
                    MemoryStateStore, StorefrontApi, UNKNOWN_OUTCOME_MESSAGE, describe_error)
from models.orders import Order

ADDRESS = {
    "first_name": "Ana",
    "last_name": "Pérez",
    "cedula": "V-12345678",
    "email": "ana@example.com",
    "country": "Venezuela",
    "state": "Miranda",
    "city": "Los Teques",
    "address": "Calle 5, Casa 12",
}


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def api(sync_client):
    return StorefrontApi(sync_client)


def _ready_to_submit(workflow):
    workflow.add_to_cart("prod-hammer", "Hammer", 10.00, 2)
    workflow.add_to_cart("prod-nails", "Nails", 2.50, 4)
    workflow.begin_checkout()
    workflow.update_address(**ADDRESS)


def _offline_api(handler):
    return StorefrontApi(httpx.Client(transport=httpx.MockTransport(handler), base_url="http://store"))


def test_guest_checkout_end_to_end(api, store, session, catalog, stock):
    workflow = CheckoutWorkflow(api, store)
    _ready_to_submit(workflow)
    assert workflow.cart_subtotal == 30.00

    assert workflow.submit_order() is True

    assert workflow.step == CheckoutStep.ORDER_CREATED
    assert workflow.state.total_amount == 35.00
    assert workflow.state.shipping_cost == 5.00
    assert workflow.state.cart == []
    assert stock("prod-hammer") == 8

    workflow.proceed_to_proof()
    assert workflow.upload_proof("receipt.png", b"\x89PNG fake") is True
    assert workflow.step == CheckoutStep.PROOF_UPLOADED

    order = session.get(Order, workflow.state.order_id)
    session.refresh(order)
    assert order.payment_proof_url == workflow.state.payment_proof_url

    tracking_code = workflow.finish()
    assert tracking_code == order.tracking_code
    assert workflow.step == CheckoutStep.DONE
    assert store.load() is None


def test_every_step_is_persisted(api, store, catalog):
    workflow = CheckoutWorkflow(api, store)
    workflow.add_to_cart("prod-hammer", "Hammer", 10.00)
    assert store.load().cart[0].product_id == "prod-hammer"

    workflow.begin_checkout()
    workflow.update_address(city="Los Teques")
    saved = store.load()
    assert saved.step == CheckoutStep.ADDRESS_FORM
    assert saved.address.city == "Los Teques"


def test_reload_after_order_created_does_not_resubmit(api, store, session, catalog):
    workflow = CheckoutWorkflow(api, store)
    _ready_to_submit(workflow)
    workflow.submit_order()
    order_id = workflow.state.order_id

    reloaded = CheckoutWorkflow(api, store)
    state = reloaded.resume()

    assert state.step == CheckoutStep.ORDER_CREATED
    assert state.order_id == order_id
    assert session.query(Order).count() == 1
    with pytest.raises(CheckoutError):
        reloaded.submit_order()


def test_reload_mid_submission_with_known_order(api, store, catalog):
    store.save(CheckoutState(step=CheckoutStep.ORDER_SUBMITTING, order_id="abc", tracking_code="ORD-X"))

    state = CheckoutWorkflow(api, store).resume()

    assert state.step == CheckoutStep.ORDER_CREATED


def test_reload_mid_submission_needs_confirmation(api, store, session, catalog):
    workflow = CheckoutWorkflow(api, store)
    _ready_to_submit(workflow)
    workflow.state.step = CheckoutStep.ORDER_SUBMITTING
    store.save(workflow.state)

    reloaded = CheckoutWorkflow(api, store)
    state = reloaded.resume()

    assert state.step == CheckoutStep.ADDRESS_FORM
    assert state.submission_uncertain is True
    assert state.error == UNKNOWN_OUTCOME_MESSAGE

    with pytest.raises(CheckoutError):
        reloaded.submit_order()
    assert session.query(Order).count() == 0

    assert reloaded.submit_order(confirm_resubmit=True) is True
    assert reloaded.state.submission_uncertain is False


def test_reload_mid_upload_returns_to_proof_form(api, store, catalog):
    store.save(CheckoutState(step=CheckoutStep.PROOF_UPLOADING, order_id="abc"))

    assert CheckoutWorkflow(api, store).resume().step == CheckoutStep.PROOF_FORM


def test_network_failure_marks_submission_uncertain(store, catalog):
    def handler(request):
        raise httpx.ConnectError("connection reset", request=request)

    workflow = CheckoutWorkflow(_offline_api(handler), store)
    _ready_to_submit(workflow)

    assert workflow.submit_order() is False

    assert workflow.step == CheckoutStep.ADDRESS_FORM
    assert workflow.state.submission_uncertain is True
    assert workflow.state.error == UNKNOWN_OUTCOME_MESSAGE
    assert len(workflow.state.cart) == 2
    with pytest.raises(CheckoutError):
        workflow.submit_order()


def test_server_error_marks_submission_uncertain(store, catalog):
    def handler(request):
        return httpx.Response(500, json={
            "error": "Internal server error",
            "code": "infrastructure_error",
            "details": "Error creating order"
        })

    workflow = CheckoutWorkflow(_offline_api(handler), store)
    _ready_to_submit(workflow)

    assert workflow.submit_order() is False
    assert workflow.state.submission_uncertain is True
    assert workflow.state.error == "Something went wrong on our side. Please try again in a moment."


def test_stock_error_names_the_products(api, store, catalog):
    workflow = CheckoutWorkflow(api, store)
    workflow.add_to_cart("prod-hammer", "Hammer", 10.00, 11)
    workflow.begin_checkout()
    workflow.update_address(**ADDRESS)

    assert workflow.submit_order() is False

    assert workflow.step == CheckoutStep.ADDRESS_FORM
    assert workflow.state.submission_uncertain is False
    assert workflow.state.error == (
        "Not enough stock for: Hammer (requested 11, available 10). Please adjust the quantities."
    )

    workflow.back_to_cart()
    workflow.set_quantity("prod-hammer", 10)
    workflow.begin_checkout()
    assert workflow.submit_order() is True


def test_missing_field_error(api, store, catalog):
    workflow = CheckoutWorkflow(api, store)
    workflow.add_to_cart("prod-hammer", "Hammer", 10.00)
    workflow.begin_checkout()
    workflow.update_address(**{**ADDRESS, "city": ""})

    assert workflow.submit_order() is False
    assert workflow.state.error == "Please fill in: city."


def test_cancel_and_return_releases_stock(api, store, session, catalog, stock):
    workflow = CheckoutWorkflow(api, store)
    _ready_to_submit(workflow)
    workflow.submit_order()
    workflow.proceed_to_proof()

    assert workflow.cancel_and_return() is True

    assert stock("prod-hammer") == 10
    assert stock("prod-nails") == 100
    assert session.query(Order).count() == 0
    assert workflow.step == CheckoutStep.CART_REVIEW
    assert workflow.state.cart == []
    assert store.load() is None


def test_cancel_and_return_when_order_already_gone(api, store, catalog):
    workflow = CheckoutWorkflow(api, store)
    _ready_to_submit(workflow)
    workflow.submit_order()
    api.cancel_order(workflow.state.order_id)

    assert workflow.cancel_and_return() is True
    assert workflow.step == CheckoutStep.CART_REVIEW


def test_cancel_refused_keeps_local_progress(api, store, session, catalog):
    workflow = CheckoutWorkflow(api, store)
    _ready_to_submit(workflow)
    workflow.submit_order()
    session.get(Order, workflow.state.order_id).status = "confirmed"
    session.commit()

    assert workflow.cancel_and_return() is False

    assert workflow.step == CheckoutStep.ORDER_CREATED
    assert workflow.state.error == "This order can no longer be changed."
    assert store.load().order_id == workflow.state.order_id


def test_empty_proof_is_not_sent(api, store, catalog):
    workflow = CheckoutWorkflow(api, store)
    _ready_to_submit(workflow)
    workflow.submit_order()
    workflow.proceed_to_proof()

    assert workflow.upload_proof("receipt.png", b"") is False
    assert workflow.step == CheckoutStep.PROOF_FORM
    assert workflow.state.error


def test_proof_rejected_stays_on_form(api, store, catalog):
    workflow = CheckoutWorkflow(api, store)
    _ready_to_submit(workflow)
    workflow.submit_order()
    workflow.proceed_to_proof()

    assert workflow.upload_proof("receipt.exe", b"MZ") is False
    assert workflow.step == CheckoutStep.PROOF_FORM


def test_steps_out_of_order_are_refused(api, store, catalog):
    workflow = CheckoutWorkflow(api, store)

    with pytest.raises(CheckoutError):
        workflow.begin_checkout()
    with pytest.raises(CheckoutError):
        workflow.proceed_to_proof()
    with pytest.raises(CheckoutError):
        workflow.finish()


def test_signed_in_checkout_prefills_and_saves_profile(api, store, session, catalog, auth_token):
    api.save_profile(auth_token, {
        "first_name": "Ana",
        "last_name": "Pérez",
        "cedula": "V-12345678",
        "country": "Venezuela",
        "state": "Miranda",
        "city": "Los Teques",
        "address_line1": "Calle 5, Casa 12",
    })

    workflow = CheckoutWorkflow(api, store, token=auth_token)
    workflow.add_to_cart("prod-hammer", "Hammer", 10.00)
    workflow.begin_checkout()

    assert workflow.state.address.cedula == "V-12345678"
    assert workflow.state.address.email == "ana@example.com"
    assert workflow.state.address.address == "Calle 5, Casa 12"

    workflow.update_address(city="Caracas", state="Distrito Capital")
    assert workflow.submit_order() is True
    assert workflow.state.shipping_cost == 0
    assert session.get(Order, workflow.state.order_id).user_id == "user-123"

    assert api.get_profile(auth_token)["city"] == "Caracas"


def test_first_signed_in_checkout_creates_profile(api, store, catalog, other_token):
    workflow = CheckoutWorkflow(api, store, token=other_token)
    assert api.get_profile(other_token) is None

    _ready_to_submit(workflow)
    workflow.submit_order()

    profile = api.get_profile(other_token)
    assert profile["first_name"] == "Ana"
    assert profile["address_line1"] == "Calle 5, Casa 12"


def test_json_file_store_round_trip(tmp_path):
    store = JsonFileStateStore(tmp_path / "checkout" / "state.json")
    state = CheckoutState(step=CheckoutStep.PROOF_FORM, order_id="abc", tracking_code="ORD-X", total_amount=35.0)

    store.save(state)

    assert store.load() == state
    store.clear()
    assert store.load() is None


def test_json_file_store_discards_corrupted_state(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    assert JsonFileStateStore(path).load() is None


def test_describe_error_messages():
    unavailable = ApiError(400, "product_unavailable", "Some products are not available", ["Old Saw"])
    assert describe_error(unavailable) == "No longer available: Old Saw. Please remove them from your cart."

    invalid = ApiError(400, "validation_error", "Invalid request",
                       [{"field": "customer_phone", "message": "Value error, Invalid phone number"}])
    assert describe_error(invalid) == "Please check: customer_phone (Value error, Invalid phone number)."

    assert describe_error(ApiError(400, "empty_cart", "Cart is empty")) == "Your cart is empty."
    assert describe_error(ApiError(418, "http_418", "I'm a teapot")) == "I'm a teapot"
