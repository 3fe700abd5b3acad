from decimal import Decimal
from models.shipping_rules import ShippingRule


async def test_quote_paid_region(client, catalog):
    response = await client.get("/shipping/quote", params={
        "country": "Venezuela", "state": "Miranda", "city": "Los Teques"
    })

    assert response.status_code == 200
    assert response.json() == {
        "is_free": False,
        "cost": 5.0,
        "message": "Shipping cost: $5.00",
        "confirmed": True
    }


async def test_quote_free_region(client, catalog):
    response = await client.get("/shipping/quote", params={
        "country": "Venezuela", "state": "Distrito Capital", "city": "Caracas"
    })

    assert response.status_code == 200
    assert response.json()["is_free"] is True
    assert response.json()["cost"] == 0


async def test_quote_unknown_region(client, catalog):
    response = await client.get("/shipping/quote", params={
        "country": "Venezuela", "state": "Zulia", "city": "Maracaibo"
    })

    assert response.status_code == 200
    data = response.json()
    assert data["confirmed"] is False
    assert data["cost"] == 0
    assert data["message"] == "Shipping: to be confirmed"


async def test_inactive_rule_is_ignored(client, session, catalog):
    rule = session.query(ShippingRule).filter(ShippingRule.city == "Los Teques").one()
    rule.is_active = False
    session.commit()

    response = await client.get("/shipping/quote", params={
        "country": "Venezuela", "state": "Miranda", "city": "Los Teques"
    })

    assert response.json()["confirmed"] is False


async def test_quote_requires_region(client, catalog):
    response = await client.get("/shipping/quote", params={"country": "Venezuela", "state": "Miranda"})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert response.json()["details"][0]["field"] == "query.city"


async def test_rule_cost_rounded_to_cents(client, session, catalog):
    session.add(ShippingRule(country="Venezuela", state="Lara", city="Barquisimeto",
                             is_free=False, base_cost=Decimal("7.5"), is_active=True))
    session.commit()

    response = await client.get("/shipping/quote", params={
        "country": "Venezuela", "state": "Lara", "city": "Barquisimeto"
    })

    assert response.json()["cost"] == 7.5
    assert response.json()["message"] == "Shipping cost: $7.50"
