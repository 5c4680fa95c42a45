# catalog.py - public product browsing plus the filter/sort helpers shared with the admin screens

import math

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import or_, func

from models import db, Product, Category
from errors import NotFound, ValidationFailed

catalog_bp = Blueprint('catalog', __name__)

# sort key -> (column, descending)
PRODUCT_SORTS = {
    'newest': (Product.created_at, True),
    'price-low': (Product.price, False),
    'price-high': (Product.price, True),
    'name': (Product.name, False),
    'stock': (Product.stock, False),
}

TRUE_WORDS = ('1', 'true', 'yes', 'on')
FALSE_WORDS = ('0', 'false', 'no', 'off')


def sort_clause(key, table, default='newest'):
    column, descending = table.get(key) or table[default]
    return column.desc() if descending else column.asc()


def parse_int(value, name, default=None, minimum=None):
    if value in (None, ''):
        return default
    # json floats like 2.5 would otherwise be truncated by int()
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationFailed(f'{name} must be an integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f'{name} must be an integer')
    if minimum is not None and number < minimum:
        raise ValidationFailed(f'{name} must be at least {minimum}')
    return number


def parse_bool(value, name, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in TRUE_WORDS + FALSE_WORDS:
        return value.strip().lower() in TRUE_WORDS
    raise ValidationFailed(f'{name} must be true or false')


def parse_float(value, name):
    if value in (None, ''):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f'{name} must be a number')
    if not math.isfinite(number):
        raise ValidationFailed(f'{name} must be a number')
    return number


def page_args(args):
    page = parse_int(args.get('page'), 'page', 1, minimum=1)
    limit = parse_int(args.get('limit'), 'limit', current_app.config['DEFAULT_PAGE_SIZE'], minimum=1)
    return page, min(limit, current_app.config['MAX_PAGE_SIZE'])


def paginate(query, page, limit):
    total_count = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    pagination = {
        'page': page,
        'limit': limit,
        'totalCount': total_count,
        'totalPages': math.ceil(total_count / limit),
    }
    return rows, pagination


def search_clause(term, *columns):
    # user text is matched literally, % and _ included
    escaped = term.lower().replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    pattern = f'%{escaped}%'
    return or_(*[func.lower(column).like(pattern, escape='\\') for column in columns])


def build_product_filter(args):
    """Turn catalog query parameters into a list of filter predicates."""
    predicates = []
    category_id = args.get('categoryId')
    if category_id:
        predicates.append(Product.category_id == category_id)

    search = (args.get('search') or '').strip()
    if search:
        predicates.append(search_clause(search, Product.name, Product.description))

    min_price = parse_float(args.get('minPrice'), 'minPrice')
    if min_price is not None:
        predicates.append(Product.price >= min_price)
    max_price = parse_float(args.get('maxPrice'), 'maxPrice')
    if max_price is not None:
        predicates.append(Product.price <= max_price)

    if args.get('featured') == 'true':
        predicates.append(Product.featured.is_(True))
    return predicates


@catalog_bp.route('/products')
def list_products():
    page, limit = page_args(request.args)
    query = Product.query.filter(*build_product_filter(request.args))
    query = query.order_by(sort_clause(request.args.get('sortBy'), PRODUCT_SORTS))
    products, pagination = paginate(query, page, limit)
    return jsonify({'products': [p.to_dict() for p in products], 'pagination': pagination})


@catalog_bp.route('/products/featured')
def featured_products():
    products = (Product.query
                .filter(Product.featured.is_(True), Product.stock > 0)
                .order_by(Product.created_at.desc())
                .limit(8)
                .all())
    return jsonify({'products': [p.to_dict() for p in products], 'count': len(products)})


@catalog_bp.route('/products/<product_id>')
def get_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFound('Product not found')
    return jsonify({'product': product.to_dict()})


def categories_with_counts():
    rows = (db.session.query(Category, func.count(Product.id))
            .outerjoin(Product, Product.category_id == Category.id)
            .group_by(Category.id)
            .order_by(Category.name.asc())
            .all())
    return [category.to_dict(product_count=count) for category, count in rows]


@catalog_bp.route('/categories')
def list_categories():
    categories = categories_with_counts()
    return jsonify({'categories': categories, 'count': len(categories)})
