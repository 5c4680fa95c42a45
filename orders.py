# orders.py - buyer checkout, order history and proof-of-payment files

import os

from flask import Blueprint, request, jsonify, send_file

from models import db, Order, FileUpload
from auth import login_required_user, json_body
from catalog import page_args, paginate
from errors import NotFound, Forbidden
from services import place_order
import storage

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


def visible_order(order_id, user):
    # owners and admins only
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound('Order not found')
    if not user.is_admin and order.user_id != user.id:
        raise Forbidden()
    return order


def order_file(order, file_id):
    record = FileUpload.query.filter_by(id=file_id, order_id=order.id).first()
    if not record:
        raise NotFound('File not found')
    return record


def send_upload(record):
    path = storage.file_path(record)
    if not os.path.isfile(path):
        raise NotFound('File not found on disk')
    return send_file(
        path,
        mimetype=record.mime_type,
        as_attachment=True,
        download_name=record.file_name,
    )


@orders_bp.route('', methods=['POST'])
@login_required_user
def create_order(user):
    order = place_order(user, json_body())
    return jsonify({
        'message': 'Order created successfully',
        'orderId': order.id,
        'order': order.to_dict(),
    }), 201


@orders_bp.route('', methods=['GET'])
@login_required_user
def my_orders(user):
    page, limit = page_args(request.args)
    query = Order.query.filter_by(user_id=user.id).order_by(Order.created_at.desc())
    orders, pagination = paginate(query, page, limit)
    return jsonify({'orders': [o.to_dict() for o in orders], 'pagination': pagination})


@orders_bp.route('/<order_id>')
@login_required_user
def get_order(order_id, user):
    order = visible_order(order_id, user)
    return jsonify({'order': order.to_dict()})


@orders_bp.route('/<order_id>/files', methods=['POST'])
@login_required_user
def upload_file(order_id, user):
    # uploads are for the buyer's own orders; anything else looks like a missing order
    order = Order.query.filter_by(id=order_id, user_id=user.id).first()
    if not order:
        raise NotFound('Order not found')
    record = storage.save_upload(order, request.files.get('file'))
    return jsonify({'message': 'File uploaded successfully', 'file': record.to_dict()})


@orders_bp.route('/<order_id>/files', methods=['GET'])
@login_required_user
def list_files(order_id, user):
    order = visible_order(order_id, user)
    return jsonify({'files': [f.to_dict() for f in order.files]})


@orders_bp.route('/<order_id>/files/<file_id>', methods=['GET'])
@login_required_user
def download_file(order_id, file_id, user):
    order = visible_order(order_id, user)
    return send_upload(order_file(order, file_id))


@orders_bp.route('/<order_id>/files/<file_id>', methods=['DELETE'])
@login_required_user
def delete_file(order_id, file_id, user):
    order = visible_order(order_id, user)
    storage.delete_upload(order_file(order, file_id))
    return jsonify({'message': 'File deleted successfully'})
