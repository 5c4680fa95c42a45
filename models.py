# this file defines the database structure for the storefront
# it uses 8 tables for accounts, catalog, orders, payments, uploads and status audits

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
import uuid

db = SQLAlchemy()


def new_id():
    return uuid.uuid4().hex


def iso(value):
    return value.isoformat() if value else None


class Role:
    BUYER = 'BUYER'
    ADMIN = 'ADMIN'
    ALL = (BUYER, ADMIN)


class OrderStatus:
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    PROCESSING = 'PROCESSING'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'
    REFUNDED = 'REFUNDED'
    ALL = (PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED, REFUNDED)

    # forward path plus the two side exits
    TRANSITIONS = {
        PENDING: {CONFIRMED, CANCELLED},
        CONFIRMED: {PROCESSING, CANCELLED, REFUNDED},
        PROCESSING: {SHIPPED, CANCELLED, REFUNDED},
        SHIPPED: {DELIVERED, REFUNDED},
        DELIVERED: {REFUNDED},
        CANCELLED: set(),
        REFUNDED: set(),
    }

    # orders that count towards revenue on the dashboard
    REVENUE = (SHIPPED, DELIVERED)


class PaymentMethod:
    CREDIT_CARD = 'CREDIT_CARD'
    DEBIT_CARD = 'DEBIT_CARD'
    PAYPAL = 'PAYPAL'
    BANK_TRANSFER = 'BANK_TRANSFER'
    ALL = (CREDIT_CARD, DEBIT_CARD, PAYPAL, BANK_TRANSFER)


class PaymentStatus:
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    REFUNDED = 'REFUNDED'


# table 1: users - buyers and admins, role fixed at creation
class User(UserMixin, db.Model):
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)  # stored as a secure hash
    role = db.Column(db.String(10), nullable=False, default=Role.BUYER)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    orders = db.relationship('Order', back_populates='user', lazy=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'createdAt': iso(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'


# table 2: categories - groups products for browsing
class Category(db.Model):
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    products = db.relationship('Product', back_populates='category', lazy=True)

    def to_dict(self, product_count=None):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'createdAt': iso(self.created_at),
        }
        if product_count is not None:
            data['productCount'] = product_count
        return data


# table 3: products - catalog entries with price and stock on hand
class Product(db.Model):
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Float, nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)  # only order placement and admin edits change it
    sku = db.Column(db.String(64), unique=True)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    image = db.Column(db.String(500))
    images = db.Column(db.JSON)
    category_id = db.Column(db.String(32), db.ForeignKey('category.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship('Category', back_populates='products')
    order_items = db.relationship('OrderItem', back_populates='product', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'stock': self.stock,
            'sku': self.sku,
            'featured': self.featured,
            'image': self.image,
            'images': self.images or [],
            'categoryId': self.category_id,
            'category': {'name': self.category.name} if self.category else None,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Product {self.name}>'


# table 4: orders - one checkout; money fields are frozen at creation
class Order(db.Model):
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    user_id = db.Column(db.String(32), db.ForeignKey('user.id'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=OrderStatus.PENDING)
    subtotal = db.Column(db.Float, nullable=False)
    tax = db.Column(db.Float, nullable=False, default=0)
    shipping = db.Column(db.Float, nullable=False, default=0)
    total = db.Column(db.Float, nullable=False)
    shipping_address = db.Column(db.JSON, nullable=False)
    billing_address = db.Column(db.JSON)
    notes = db.Column(db.String(1000))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', back_populates='orders')
    items = db.relationship('OrderItem', back_populates='order', lazy=True, cascade='all, delete-orphan')
    payments = db.relationship('Payment', back_populates='order', lazy=True, cascade='all, delete-orphan')
    files = db.relationship('FileUpload', back_populates='order', lazy=True,
                            order_by='FileUpload.uploaded_at.desc()')
    status_changes = db.relationship('OrderStatusChange', back_populates='order', lazy=True,
                                     order_by='OrderStatusChange.id', cascade='all, delete-orphan')

    def to_dict(self, with_user=False, with_history=False):
        data = {
            'id': self.id,
            'userId': self.user_id,
            'status': self.status,
            'subtotal': self.subtotal,
            'tax': self.tax,
            'shipping': self.shipping,
            'total': self.total,
            'shippingAddress': self.shipping_address,
            'billingAddress': self.billing_address,
            'notes': self.notes,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
            'items': [item.to_dict() for item in self.items],
            'payments': [payment.to_dict() for payment in self.payments],
            'files': [f.to_dict() for f in self.files],
        }
        if with_user:
            data['user'] = {'id': self.user.id, 'name': self.user.name, 'email': self.user.email}
        if with_history:
            data['statusHistory'] = [change.to_dict() for change in self.status_changes]
        return data


# table 5: order items - price is the price at purchase time, never updated afterwards
class OrderItem(db.Model):
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    order_id = db.Column(db.String(32), db.ForeignKey('order.id'), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey('product.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Float, nullable=False)

    order = db.relationship('Order', back_populates='items')
    product = db.relationship('Product', back_populates='order_items')

    def to_dict(self):
        return {
            'id': self.id,
            'productId': self.product_id,
            'quantity': self.quantity,
            'price': self.price,
            'product': {'name': self.product.name, 'image': self.product.image} if self.product else None,
        }


# table 6: payments - declared method and amount, settled manually by an admin
class Payment(db.Model):
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    order_id = db.Column(db.String(32), db.ForeignKey('order.id'), nullable=False, index=True)
    method = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING)
    amount = db.Column(db.Float, nullable=False)
    transaction_id = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    order = db.relationship('Order', back_populates='payments')

    def to_dict(self):
        return {
            'id': self.id,
            'method': self.method,
            'status': self.status,
            'amount': self.amount,
            'transactionId': self.transaction_id,
            'createdAt': iso(self.created_at),
        }


# table 7: file uploads - proof of payment; file_path is the generated name on disk
class FileUpload(db.Model):
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    order_id = db.Column(db.String(32), db.ForeignKey('order.id'), nullable=False, index=True)
    file_name = db.Column(db.String(255), nullable=False)  # original name, only kept here
    file_path = db.Column(db.String(255), nullable=False, unique=True)
    file_size = db.Column(db.Integer, nullable=False)
    mime_type = db.Column(db.String(120), nullable=False)
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow)

    order = db.relationship('Order', back_populates='files')

    def to_dict(self):
        return {
            'id': self.id,
            'orderId': self.order_id,
            'fileName': self.file_name,
            'filePath': self.file_path,
            'fileSize': self.file_size,
            'mimeType': self.mime_type,
            'uploadedAt': iso(self.uploaded_at),
        }


# table 8: order status audit - who moved an order and why
class OrderStatusChange(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(32), db.ForeignKey('order.id'), nullable=False, index=True)
    from_status = db.Column(db.String(20), nullable=False)
    to_status = db.Column(db.String(20), nullable=False)
    notes = db.Column(db.String(500))
    changed_by_id = db.Column(db.String(32), db.ForeignKey('user.id'))
    changed_at = db.Column(db.DateTime, default=datetime.utcnow)

    order = db.relationship('Order', back_populates='status_changes')
    changed_by = db.relationship('User')

    def to_dict(self):
        return {
            'from': self.from_status,
            'to': self.to_status,
            'notes': self.notes,
            'changedBy': self.changed_by.email if self.changed_by else None,
            'changedAt': iso(self.changed_at),
        }
