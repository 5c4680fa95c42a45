# app.py - builds the flask app, wires the blueprints and the cli commands
# run this file to start the development server: python app.py

import logging

import click
from flask import Flask, jsonify

from config import Config
from models import db, User, Category, Product, Role
from auth import auth_bp, login_manager, create_user
from catalog import catalog_bp
from orders import orders_bp
from admin import admin_bp
from errors import register_error_handlers
import storage


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))

    db.init_app(app)

    # session login (role checks live in auth.py)
    login_manager.init_app(app)

    register_error_handlers(app)
    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(admin_bp)
    register_commands(app)

    with app.app_context():
        storage.upload_folder()

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    return app


# starter catalog for a fresh database
SAMPLE_CATEGORIES = [
    ("Men's Clothing", 'Premium clothing for men'),
    ("Women's Clothing", 'Elegant clothing for women'),
    ('Accessories', 'Fashion accessories and more'),
    ('Shoes', 'Premium footwear collection'),
]

SAMPLE_PRODUCTS = [
    ('Classic White Shirt', 59.99, 50, 'WS-001', True, "Women's Clothing"),
    ('Denim Jacket', 89.99, 30, 'DJ-001', True, "Men's Clothing"),
    ('Leather Handbag', 199.99, 15, 'LH-001', True, 'Accessories'),
    ('Running Shoes', 129.99, 25, 'RS-001', False, 'Shoes'),
]


def seed_catalog():
    if Category.query.count() > 0:
        return 0
    categories = {}
    for name, description in SAMPLE_CATEGORIES:
        categories[name] = Category(name=name, description=description)
        db.session.add(categories[name])
    for name, price, stock, sku, featured, category in SAMPLE_PRODUCTS:
        db.session.add(Product(name=name, price=price, stock=stock, sku=sku, featured=featured,
                               category=categories[category], image='/placeholder-product.jpg',
                               images=['/placeholder-product.jpg']))
    db.session.commit()
    return len(SAMPLE_PRODUCTS)


def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo('database ready')

    @app.cli.command('seed')
    def seed():
        """Create tables, sample catalog and the admin account from the environment."""
        db.create_all()
        added = seed_catalog()
        click.echo(f'{added} sample products added')

        email = app.config['ADMIN_EMAIL']
        password = app.config['ADMIN_PASSWORD']
        if password and not User.query.filter_by(email=email.lower()).first():
            create_user('Administrator', email, password, role=Role.ADMIN)
            click.echo(f'admin {email} created')

    @app.cli.command('create-admin')
    @click.argument('email')
    @click.password_option()
    @click.option('--name', default='Administrator')
    def create_admin(email, password, name):
        """Create an ADMIN account (public registration only makes buyers)."""
        user = create_user(name, email, password, role=Role.ADMIN)
        click.echo(f'admin {user.email} created')

    @app.cli.command('sweep-uploads')
    @click.option('--dry-run', is_flag=True, help='Only report, delete nothing.')
    def sweep_uploads(dry_run):
        """Remove stored files that no upload record points at."""
        orphans, missing = storage.sweep_orphans(dry_run=dry_run)
        verb = 'would remove' if dry_run else 'removed'
        click.echo(f'{verb} {len(orphans)} orphaned files, {len(missing)} records without a file')


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(debug=True, port=5001)
