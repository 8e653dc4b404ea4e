import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from dates import event_date_from, event_iso8601_string, iso8601_string
from models import Customer, LineItem, Order
from user_agent import LIBRARY_ID, UserAgent

UTC = timezone.utc
EST = timezone(timedelta(hours=-5))


def test_customer_set_email_hashes_lowercased_email():
    c = Customer(id="c-1")
    c.set_email("Jane.Doe@Example.COM")
    assert c.email_sha256 == hashlib.sha256(b"jane.doe@example.com").hexdigest()
    assert len(c.email_sha256) == 64
    assert c.to_dict() == {"id": "c-1", "email_sha256": c.email_sha256}


def test_line_item_omits_absent_fields():
    li = LineItem("li-1", 1500, quantity=2, sku="SKU-1", category=["shoes"], attributes={"size": "9"})
    assert li.to_dict() == {
        "id": "li-1",
        "total": 1500,
        "quantity": 2,
        "sku": "SKU-1",
        "category": ["shoes"],
        "attributes": {"size": "9"},
    }


def test_order_wire_keys():
    customer = Customer(id="c-1", advertising_id="idfa")
    order = Order(
        "o-1",
        datetime(2019, 3, 2, 14, 5, 9, tzinfo=UTC),
        [LineItem("li-1", 3999)],
        currency_code="EUR",
        customer_order_id="#1001",
        customer=customer,
    )
    assert order.to_dict() == {
        "order_id": "o-1",
        "amount": 0,
        "currency": "EUR",
        "purchase_date": "2019-03-02T14:05:09Z",
        "customer_order_id": "#1001",
        "line_items": [{"id": "li-1", "total": 3999, "quantity": 1}],
        "customer": {"id": "c-1", "advertising_id": "idfa"},
    }


def test_order_defaults():
    order = Order("o-2", datetime(2020, 1, 1, tzinfo=UTC))
    d = order.to_dict()
    assert d["currency"] == "USD"
    assert d["line_items"] == []
    assert d["customer"] == {}
    assert "customer_order_id" not in d


def test_order_with_amount_is_deprecated():
    with pytest.warns(DeprecationWarning):
        order = Order.with_amount("o-3", 3999, "CAD")
    d = order.to_dict()
    assert d["amount"] == 3999
    assert d["currency"] == "CAD"
    assert d["line_items"] == []


def test_iso8601_string():
    assert iso8601_string(datetime(2019, 3, 2, 14, 5, 9, tzinfo=UTC)) == "2019-03-02T14:05:09Z"
    assert iso8601_string(datetime(2019, 3, 2, 9, 5, 9, tzinfo=EST)) == "2019-03-02T09:05:09-05:00"


def test_event_iso8601_string_has_millis():
    dt = datetime(2019, 3, 2, 14, 5, 9, 123456, tzinfo=UTC)
    assert event_iso8601_string(dt) == "2019-03-02T14:05:09.123Z"


def test_event_date_from():
    dt = event_date_from("2019-03-02T14:05:09.123Z")
    assert dt == datetime(2019, 3, 2, 14, 5, 9, 123000, tzinfo=UTC)
    assert event_date_from("2019-03-02T09:05:09.500-05:00") == datetime(2019, 3, 2, 9, 5, 9, 500000, tzinfo=EST)


@pytest.mark.parametrize("s", [None, "", "yesterday", "2019-03-02T14:05:09Z", 12345])
def test_event_date_from_rejects_garbage(s):
    assert event_date_from(s) is None


def test_user_agent_string():
    ua = UserAgent("1.2.0", "com.example.app", "3.4", locale_name="en_US")
    s = ua.string_representation
    assert s.startswith(f"{LIBRARY_ID}/1.2.0 (")
    assert "; com.example.app/3.4; en_US)" in s
    assert str(ua) == s


def test_user_agent_without_app():
    s = UserAgent("1.2.0", locale_name="fr_FR").string_representation
    assert s.endswith("; fr_FR)")
    assert "com.example" not in s
