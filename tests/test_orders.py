import pytest

from conftest import stock_of, count
from errors import OutOfStock
from models import db, Order, OrderItem, Payment, Product, User
import services

ADDRESS = {'firstName': 'Ada', 'lastName': 'Buyer', 'address': '1 Main St', 'city': 'Springfield',
           'zipCode': '12345', 'country': 'US'}


def order_payload(items, **extra):
    payload = {'items': items, 'shippingAddress': ADDRESS, 'paymentMethod': 'bank_transfer'}
    payload.update(extra)
    return payload


def test_place_order_creates_everything(app, buyer, make_product):
    shirt = make_product(name='Shirt', price=20.0, stock=5)
    hat = make_product(name='Hat', price=7.5, stock=3)

    response = buyer.post('/orders', json=order_payload(
        [{'productId': shirt, 'quantity': 2}, {'productId': hat, 'quantity': 1}],
        tax=3.0, shipping=5.0, notes='leave at the door'))

    assert response.status_code == 201
    body = response.get_json()
    order = body['order']
    assert body['orderId'] == order['id']
    assert order['status'] == 'PENDING'
    assert order['subtotal'] == 47.5
    assert order['total'] == 55.5
    assert len(order['items']) == 2
    assert order['payments'][0]['method'] == 'BANK_TRANSFER'
    assert order['payments'][0]['status'] == 'PENDING'
    assert order['payments'][0]['amount'] == 55.5

    assert count(app, Order) == 1
    assert count(app, Payment) == 1
    assert count(app, OrderItem) == 2
    assert stock_of(app, shirt) == 3
    assert stock_of(app, hat) == 2


def test_insufficient_stock_creates_nothing(app, buyer, make_product):
    plenty = make_product(name='Plenty', stock=10)
    scarce = make_product(name='Scarce', stock=1)

    response = buyer.post('/orders', json=order_payload(
        [{'productId': plenty, 'quantity': 2}, {'productId': scarce, 'quantity': 2}]))

    assert response.status_code == 400
    assert response.get_json()['code'] == 'OUT_OF_STOCK'
    assert count(app, Order) == 0
    assert count(app, Payment) == 0
    assert count(app, OrderItem) == 0
    assert stock_of(app, plenty) == 10
    assert stock_of(app, scarce) == 1


def test_unknown_product_is_out_of_stock(app, buyer):
    response = buyer.post('/orders', json=order_payload([{'productId': 'nope', 'quantity': 1}]))
    assert response.status_code == 400
    assert response.get_json()['code'] == 'OUT_OF_STOCK'
    assert count(app, Order) == 0


@pytest.mark.parametrize('items', [[], None])
def test_empty_item_list_rejected(app, buyer, items):
    response = buyer.post('/orders', json=order_payload(items))
    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_FAILED'
    assert count(app, Order) == 0


def test_missing_address_or_bad_method(app, buyer, make_product):
    product = make_product()
    no_address = order_payload([{'productId': product, 'quantity': 1}], shippingAddress=None)
    assert buyer.post('/orders', json=no_address).status_code == 400

    bad_method = order_payload([{'productId': product, 'quantity': 1}], paymentMethod='barter')
    response = buyer.post('/orders', json=bad_method)
    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_FAILED'


def test_bad_quantity_rejected(app, buyer, make_product):
    product = make_product()
    response = buyer.post('/orders', json=order_payload([{'productId': product, 'quantity': 0}]))
    assert response.status_code == 400
    assert stock_of(app, product) == 5


def test_duplicate_products_are_merged(app, buyer, make_product):
    product = make_product(stock=10)
    response = buyer.post('/orders', json=order_payload(
        [{'productId': product, 'quantity': 2}, {'productId': product, 'quantity': 3}]))

    assert response.status_code == 201
    items = response.get_json()['order']['items']
    assert len(items) == 1
    assert items[0]['quantity'] == 5
    assert stock_of(app, product) == 5


def test_duplicate_products_checked_against_summed_quantity(app, buyer, make_product):
    product = make_product(stock=3)
    response = buyer.post('/orders', json=order_payload(
        [{'productId': product, 'quantity': 2}, {'productId': product, 'quantity': 2}]))
    assert response.status_code == 400
    assert stock_of(app, product) == 3


def test_server_prices_override_client_prices(app, buyer, make_product):
    product = make_product(price=10.0)
    response = buyer.post('/orders', json=order_payload(
        [{'productId': product, 'quantity': 2, 'price': 0.01}], tax=1.0, shipping=5.0))

    assert response.status_code == 201
    order = response.get_json()['order']
    assert order['items'][0]['price'] == 10.0
    assert order['total'] == 26.0


def test_declared_total_must_match(app, buyer, make_product):
    product = make_product(price=10.0)
    response = buyer.post('/orders', json=order_payload(
        [{'productId': product, 'quantity': 2}], total=2.0))
    assert response.status_code == 400
    assert count(app, Order) == 0
    assert stock_of(app, product) == 5


def test_trusted_client_prices_are_stored_as_sent(app, buyer, make_product):
    app.config['TRUST_CLIENT_PRICES'] = True
    product = make_product(price=10.0)
    response = buyer.post('/orders', json=order_payload(
        [{'productId': product, 'quantity': 1, 'price': 8.0}],
        subtotal=8.0, tax=0.0, shipping=2.0, total=10.0))

    assert response.status_code == 201
    order = response.get_json()['order']
    assert order['items'][0]['price'] == 8.0
    assert order['total'] == 10.0


def test_item_price_frozen_after_product_price_change(app, buyer, make_product):
    product = make_product(price=10.0)
    order_id = buyer.post('/orders', json=order_payload([{'productId': product, 'quantity': 1}])).get_json()['orderId']

    with app.app_context():
        db.session.get(Product, product).price = 99.0
        db.session.commit()

    order = buyer.get(f'/orders/{order_id}').get_json()['order']
    assert order['items'][0]['price'] == 10.0


def test_guarded_decrement_rolls_back_when_stock_vanishes(app, buyer_id, make_product, monkeypatch):
    product = make_product(stock=5)
    original = services.check_stock

    def check_then_sell_out(lines):
        products = original(lines)
        # another checkout takes most of the stock after our pre-check passed
        Product.query.filter_by(id=product).update({Product.stock: 1})
        db.session.commit()
        return products

    monkeypatch.setattr(services, 'check_stock', check_then_sell_out)

    with app.app_context():
        user = db.session.get(User, buyer_id)
        with pytest.raises(OutOfStock):
            services.place_order(user, order_payload([{'productId': product, 'quantity': 3}]))

    assert count(app, Order) == 0
    assert count(app, OrderItem) == 0
    assert count(app, Payment) == 0
    assert stock_of(app, product) == 1


def test_list_own_orders_paginated(app, buyer, other_buyer, make_product):
    product = make_product(stock=20)
    for _ in range(3):
        buyer.post('/orders', json=order_payload([{'productId': product, 'quantity': 1}]))
    other_buyer.post('/orders', json=order_payload([{'productId': product, 'quantity': 1}]))

    body = buyer.get('/orders?page=1&limit=2').get_json()
    assert len(body['orders']) == 2
    assert body['pagination'] == {'page': 1, 'limit': 2, 'totalCount': 3, 'totalPages': 2}

    assert len(other_buyer.get('/orders').get_json()['orders']) == 1


def test_order_detail_owner_or_admin(app, buyer, other_buyer, admin, make_product):
    product = make_product()
    order_id = buyer.post('/orders', json=order_payload([{'productId': product, 'quantity': 1}])).get_json()['orderId']

    assert buyer.get(f'/orders/{order_id}').status_code == 200
    assert admin.get(f'/orders/{order_id}').status_code == 200
    response = other_buyer.get(f'/orders/{order_id}')
    assert response.status_code == 403
    assert response.get_json()['code'] == 'FORBIDDEN'
    assert buyer.get('/orders/missing').status_code == 404


def test_orders_need_a_session(client):
    response = client.post('/orders', json=order_payload([{'productId': 'x', 'quantity': 1}]))
    assert response.status_code == 401
    assert response.get_json()['code'] == 'AUTH_REQUIRED'
    assert client.get('/orders').status_code == 401


@pytest.mark.parametrize('field,value', [('tax', 'nan'), ('shipping', 'inf'), ('total', '-inf')])
def test_non_finite_money_rejected(app, buyer, make_product, field, value):
    product = make_product(price=10.0)
    response = buyer.post('/orders', json=order_payload(
        [{'productId': product, 'quantity': 1}], **{field: value}))

    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_FAILED'
    assert count(app, Order) == 0
    assert stock_of(app, product) == 5


def test_declared_total_one_cent_off_is_accepted(app, buyer, make_product):
    product = make_product(price=10.0)
    response = buyer.post('/orders', json=order_payload(
        [{'productId': product, 'quantity': 1}], total=10.01))

    assert response.status_code == 201
    assert response.get_json()['order']['total'] == 10.0


def test_declared_total_two_cents_off_is_rejected(app, buyer, make_product):
    product = make_product(price=10.0)
    response = buyer.post('/orders', json=order_payload(
        [{'productId': product, 'quantity': 1}], total=10.02))

    assert response.status_code == 400
    assert response.get_json()['error'] == 'Order total does not match current prices'
    assert count(app, Order) == 0
