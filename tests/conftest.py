import pytest

from app import create_app
from config import TestingConfig
from models import db, User, Category, Product, Role

PASSWORD = 'secret-pass'


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    app = create_app(Config)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


def add_user(app, email, role=Role.BUYER, name='Test User'):
    with app.app_context():
        user = User(name=name, email=email, role=role)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user.id


def logged_in(app, email):
    client = app.test_client()
    response = client.post('/auth/login', json={'email': email, 'password': PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def buyer_id(app):
    return add_user(app, 'buyer@example.com')


@pytest.fixture
def buyer(app, buyer_id):
    return logged_in(app, 'buyer@example.com')


@pytest.fixture
def other_buyer(app):
    add_user(app, 'other@example.com', name='Other Buyer')
    return logged_in(app, 'other@example.com')


@pytest.fixture
def admin(app):
    add_user(app, 'admin@example.com', role=Role.ADMIN, name='Admin')
    return logged_in(app, 'admin@example.com')


@pytest.fixture
def category_id(app):
    with app.app_context():
        category = Category(name='Shoes', description='Footwear')
        db.session.add(category)
        db.session.commit()
        return category.id


@pytest.fixture
def make_product(app, category_id):
    def make(name='Sneaker', price=10.0, stock=5, sku=None, featured=False):
        with app.app_context():
            product = Product(name=name, price=price, stock=stock, sku=sku,
                              featured=featured, category_id=category_id)
            db.session.add(product)
            db.session.commit()
            return product.id
    return make


def stock_of(app, product_id):
    with app.app_context():
        return db.session.get(Product, product_id).stock


def count(app, model):
    with app.app_context():
        return model.query.count()
