# services.py - order placement and order status changes
# the two places where several tables must change together or not at all

import math

from flask import current_app

from models import (db, Product, Order, OrderItem, Payment, OrderStatusChange,
                    OrderStatus, PaymentMethod, PaymentStatus)
from errors import ValidationFailed, OutOfStock

CENT = 0.01


def money(value, name):
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationFailed(f'{name} must be a number')
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f'{name} must be a number')
    if not math.isfinite(amount):
        raise ValidationFailed(f'{name} must be a number')
    if amount < 0:
        raise ValidationFailed(f'{name} cannot be negative')
    return round(amount, 2)


def normalize_items(items):
    """Validate the requested lines and merge repeated product ids.

    Returns (product_id, quantity, client_price) tuples in first-seen order.
    """
    if not isinstance(items, list) or not items:
        raise ValidationFailed('Order items are required')

    merged = {}
    for raw in items:
        if not isinstance(raw, dict) or not raw.get('productId'):
            raise ValidationFailed('Each item needs a productId')
        quantity = raw.get('quantity')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationFailed('Item quantity must be a positive integer')
        price = money(raw.get('price'), 'price')

        product_id = str(raw['productId'])
        if product_id in merged:
            _, seen_qty, seen_price = merged[product_id]
            merged[product_id] = (product_id, seen_qty + quantity, seen_price if seen_price is not None else price)
        else:
            merged[product_id] = (product_id, quantity, price)
    return list(merged.values())


def check_stock(lines):
    # advisory only; the guarded decrement below is what actually protects stock
    ids = [product_id for product_id, _, _ in lines]
    products = {p.id: p for p in Product.query.filter(Product.id.in_(ids)).all()}
    for product_id, quantity, _ in lines:
        product = products.get(product_id)
        if not product:
            raise OutOfStock(f'Product {product_id} is not available')
        if product.stock < quantity:
            raise OutOfStock(f'Insufficient stock for product {product.name}')
    return products


def price_lines(lines, products, data, trust_client):
    """Work out per-line prices and the order's money breakdown."""
    tax = money(data.get('tax'), 'tax') or 0.0
    shipping = money(data.get('shipping'), 'shipping') or 0.0

    if trust_client:
        priced = []
        for product_id, quantity, client_price in lines:
            if client_price is None:
                raise ValidationFailed('Item price is required')
            priced.append((product_id, quantity, client_price))
        subtotal = money(data.get('subtotal'), 'subtotal')
        total = money(data.get('total'), 'total')
        if subtotal is None or total is None:
            raise ValidationFailed('subtotal and total are required')
        return priced, subtotal, tax, shipping, total

    priced = [(product_id, quantity, products[product_id].price) for product_id, quantity, _ in lines]
    subtotal = round(sum(quantity * price for _, quantity, price in priced), 2)
    total = round(subtotal + tax + shipping, 2)

    declared = money(data.get('total'), 'total')
    if declared is not None and round(abs(declared - total), 2) > CENT:
        raise ValidationFailed('Order total does not match current prices')
    return priced, subtotal, tax, shipping, total


def reserve_stock(product_id, quantity):
    # conditional decrement: touches no row when stock has run out since the pre-check
    updated = (Product.query
               .filter(Product.id == product_id, Product.stock >= quantity)
               .update({Product.stock: Product.stock - quantity}, synchronize_session=False))
    if updated != 1:
        raise OutOfStock(f'Insufficient stock for product {product_id}')


def place_order(user, data):
    """Create an order, its lines, a pending payment and the stock decrements.

    Either everything is written or nothing is. Returns the new Order.
    """
    lines = normalize_items(data.get('items'))

    shipping_address = data.get('shippingAddress')
    if not shipping_address:
        raise ValidationFailed('Shipping address and payment method are required')
    method = str(data.get('paymentMethod') or '').upper()
    if not method:
        raise ValidationFailed('Shipping address and payment method are required')
    if method not in PaymentMethod.ALL:
        raise ValidationFailed(f'Unsupported payment method {method}')

    products = check_stock(lines)
    trust_client = current_app.config['TRUST_CLIENT_PRICES']
    priced, subtotal, tax, shipping, total = price_lines(lines, products, data, trust_client)

    try:
        order = Order(
            user_id=user.id,
            status=OrderStatus.PENDING,
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            total=total,
            shipping_address=shipping_address,
            billing_address=shipping_address,
            notes=data.get('notes') or None,
        )
        db.session.add(order)
        for product_id, quantity, price in priced:
            order.items.append(OrderItem(product_id=product_id, quantity=quantity, price=price))
        order.payments.append(Payment(method=method, status=PaymentStatus.PENDING, amount=total))
        db.session.flush()

        for product_id, quantity, _ in priced:
            reserve_stock(product_id, quantity)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info('order %s placed by %s: %d lines, total %.2f',
                            order.id, user.email, len(priced), total)
    return order


def change_order_status(order, status, admin, notes=None):
    """Overwrite an order's status and record who did it."""
    if status not in OrderStatus.ALL:
        raise ValidationFailed('Invalid status')

    previous = order.status
    if current_app.config['ENFORCE_STATUS_TRANSITIONS'] and status != previous:
        if status not in OrderStatus.TRANSITIONS[previous]:
            raise ValidationFailed(f'Cannot move order from {previous} to {status}')

    order.status = status
    db.session.add(OrderStatusChange(
        order_id=order.id,
        from_status=previous,
        to_status=status,
        notes=notes or None,
        changed_by_id=admin.id,
    ))
    db.session.commit()
    current_app.logger.info('order %s status %s -> %s by %s', order.id, previous, status, admin.email)
    return order
