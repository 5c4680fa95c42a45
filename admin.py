# admin.py - back-office endpoints, every route needs the ADMIN role

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import func

from models import db, User, Product, Category, Order, OrderItem, OrderStatus, Role
from auth import admin_required, json_body
from catalog import (PRODUCT_SORTS, sort_clause, search_clause, categories_with_counts,
                     parse_int, parse_bool)
from errors import NotFound, ValidationFailed, Conflict
from orders import order_file, send_upload
from services import change_order_status, money

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

ORDER_SORTS = {
    'newest': (Order.created_at, True),
    'oldest': (Order.created_at, False),
    'total-high': (Order.total, True),
    'total-low': (Order.total, False),
}

USER_SORTS = {
    'newest': (User.created_at, True),
    'oldest': (User.created_at, False),
    'name': (User.name, False),
}


# dashboard - totals, revenue and what needs restocking
@admin_bp.route('/dashboard')
@admin_required
def dashboard(user):
    revenue = (db.session.query(func.sum(Order.total))
               .filter(Order.status.in_(OrderStatus.REVENUE))
               .scalar() or 0)
    recent = Order.query.order_by(Order.created_at.desc()).limit(10).all()
    low_stock = (Product.query
                 .filter(Product.stock < current_app.config['LOW_STOCK_THRESHOLD'])
                 .order_by(Product.stock.asc())
                 .limit(10)
                 .all())
    return jsonify({
        'totalProducts': Product.query.count(),
        'totalOrders': Order.query.count(),
        'totalUsers': User.query.count(),
        'totalRevenue': round(revenue, 2),
        'recentOrders': [o.to_dict(with_user=True) for o in recent],
        'lowStockProducts': [p.to_dict() for p in low_stock],
    })


# products
def product_fields(data, product=None):
    name = (data.get('name') or '').strip()
    category_id = data.get('categoryId')
    if not name or data.get('price') in (None, '') or not category_id:
        raise ValidationFailed('Name, price, and category are required')

    price = money(data['price'], 'price')
    stock = parse_int(data.get('stock'), 'stock', 0, minimum=0)

    sku = (data.get('sku') or '').strip() or None
    if sku:
        clash = Product.query.filter(Product.sku == sku)
        if product is not None:
            clash = clash.filter(Product.id != product.id)
        if clash.first():
            raise Conflict('Product with this SKU already exists')

    if not db.session.get(Category, category_id):
        raise NotFound('Category not found')

    images = data.get('images')
    if images is not None and not isinstance(images, list):
        raise ValidationFailed('images must be a list')

    return {
        'name': name,
        'description': data.get('description'),
        'price': price,
        'stock': stock,
        'sku': sku,
        'featured': parse_bool(data.get('featured'), 'featured'),
        'category_id': category_id,
        'image': data.get('image'),
        'images': images,
    }


def find_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFound('Product not found')
    return product


@admin_bp.route('/products', methods=['GET'])
@admin_required
def list_products(user):
    query = Product.query
    search = (request.args.get('search') or '').strip()
    if search:
        query = query.filter(search_clause(search, Product.name, Product.description, Product.sku))
    category = request.args.get('category')
    if category:
        query = query.filter(Product.category_id == category)
    products = query.order_by(sort_clause(request.args.get('sort'), PRODUCT_SORTS)).all()
    return jsonify({'products': [p.to_dict() for p in products]})


@admin_bp.route('/products', methods=['POST'])
@admin_required
def create_product(user):
    product = Product(**product_fields(json_body()))
    db.session.add(product)
    db.session.commit()
    current_app.logger.info('product %s (%s) created by %s', product.name, product.sku, user.email)
    return jsonify({'message': 'Product created successfully', 'product': product.to_dict()}), 201


@admin_bp.route('/products/<product_id>', methods=['GET'])
@admin_required
def get_product(product_id, user):
    return jsonify({'product': find_product(product_id).to_dict()})


@admin_bp.route('/products/<product_id>', methods=['PUT'])
@admin_required
def update_product(product_id, user):
    product = find_product(product_id)
    for field, value in product_fields(json_body(), product).items():
        setattr(product, field, value)
    db.session.commit()
    current_app.logger.info('product %s updated by %s', product.id, user.email)
    return jsonify({'message': 'Product updated successfully', 'product': product.to_dict()})


@admin_bp.route('/products/<product_id>', methods=['DELETE'])
@admin_required
def delete_product(product_id, user):
    product = find_product(product_id)
    # order lines keep pointing at the product, so it has to stay
    if OrderItem.query.filter_by(product_id=product.id).first():
        raise Conflict('Cannot delete product with existing orders')
    db.session.delete(product)
    db.session.commit()
    current_app.logger.info('product %s deleted by %s', product_id, user.email)
    return jsonify({'message': 'Product deleted successfully'})


# categories
def category_fields(data, category=None):
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationFailed('Category name is required')
    clash = Category.query.filter(func.lower(Category.name) == name.lower())
    if category is not None:
        clash = clash.filter(Category.id != category.id)
    if clash.first():
        raise Conflict('Category with this name already exists')
    return {'name': name, 'description': data.get('description')}


def find_category(category_id):
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFound('Category not found')
    return category


@admin_bp.route('/categories', methods=['GET'])
@admin_required
def list_categories(user):
    return jsonify({'categories': categories_with_counts()})


@admin_bp.route('/categories', methods=['POST'])
@admin_required
def create_category(user):
    category = Category(**category_fields(json_body()))
    db.session.add(category)
    db.session.commit()
    return jsonify({'message': 'Category created successfully', 'category': category.to_dict()}), 201


@admin_bp.route('/categories/<category_id>', methods=['PUT'])
@admin_required
def update_category(category_id, user):
    category = find_category(category_id)
    for field, value in category_fields(json_body(), category).items():
        setattr(category, field, value)
    db.session.commit()
    return jsonify({'message': 'Category updated successfully', 'category': category.to_dict()})


@admin_bp.route('/categories/<category_id>', methods=['DELETE'])
@admin_required
def delete_category(category_id, user):
    category = find_category(category_id)
    if Product.query.filter_by(category_id=category.id).first():
        raise Conflict('Cannot delete category that still has products')
    db.session.delete(category)
    db.session.commit()
    return jsonify({'message': 'Category deleted successfully'})


# orders
def find_order(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound('Order not found')
    return order


@admin_bp.route('/orders', methods=['GET'])
@admin_required
def list_orders(user):
    query = Order.query.join(User, Order.user_id == User.id)
    search = (request.args.get('search') or '').strip()
    if search:
        query = query.filter(search_clause(search, Order.id, User.name, User.email))
    status = request.args.get('status')
    if status:
        query = query.filter(Order.status == status)
    orders = query.order_by(sort_clause(request.args.get('sort'), ORDER_SORTS)).all()
    return jsonify({'orders': [o.to_dict(with_user=True) for o in orders]})


@admin_bp.route('/orders/<order_id>', methods=['GET'])
@admin_required
def get_order(order_id, user):
    order = find_order(order_id)
    return jsonify({'order': order.to_dict(with_user=True, with_history=True)})


@admin_bp.route('/orders/<order_id>/status', methods=['PATCH'])
@admin_required
def update_order_status(order_id, user):
    data = json_body()
    status = data.get('status')
    if not status:
        raise ValidationFailed('Status is required')
    if status not in OrderStatus.ALL:
        raise ValidationFailed('Invalid status')
    order = change_order_status(find_order(order_id), status, user, data.get('notes'))
    return jsonify({
        'message': 'Order status updated successfully',
        'order': order.to_dict(with_user=True, with_history=True),
    })


@admin_bp.route('/orders/<order_id>/files/<file_id>', methods=['GET'])
@admin_required
def download_file(order_id, file_id, user):
    return send_upload(order_file(find_order(order_id), file_id))


# users
@admin_bp.route('/users', methods=['GET'])
@admin_required
def list_users(user):
    query = (db.session.query(User, func.count(Order.id))
             .outerjoin(Order, Order.user_id == User.id)
             .group_by(User.id))
    search = (request.args.get('search') or '').strip()
    if search:
        query = query.filter(search_clause(search, User.name, User.email))
    role = request.args.get('role')
    if role and role != 'all':
        if role not in Role.ALL:
            raise ValidationFailed('Invalid role')
        query = query.filter(User.role == role)
    rows = query.order_by(sort_clause(request.args.get('sort'), USER_SORTS)).all()

    users = []
    for account, order_count in rows:
        data = account.to_dict()
        data['orderCount'] = order_count
        users.append(data)
    return jsonify({'users': users})
