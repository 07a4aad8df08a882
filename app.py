import logging

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

import auth
import config
import utils
from logging_setup import setup_logging
from scanner import start_scanner

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_object(config)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _server_error():
    return jsonify({'message': 'Server error'}), 500


def _user_json(user):
    return {'id': user['id'], 'email': user['email']}


def _credentials(data):
    """Return (normalized email, password); either is '' when missing or blank."""
    email = data.get('email')
    password = data.get('password')
    email = utils.normalize_email(email) if isinstance(email, str) else ''
    if not isinstance(password, str):
        password = ''
    return email, password


@app.after_request
def add_cors_headers(response):
    response.headers['Access-Control-Allow-Origin'] = config.CORS_ORIGIN
    response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, DELETE, OPTIONS'
    return response


@app.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({'message': e.description}), e.code


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    logger.exception('Unhandled error on %s %s', request.method, request.path)
    return _server_error()


@app.route('/')
def index():
    return 'API is running...'


# Auth routes
@app.route('/api/auth/register', methods=['POST'])
def register():
    email, password = _credentials(_json_body())
    if not email or not password:
        return jsonify({'message': 'Please enter all fields'}), 400
    try:
        if utils.get_user_by_email(email):
            return jsonify({'message': 'User already exists'}), 400
        user = utils.create_user(email, auth.hash_password(password))
        # Lost a race against a concurrent registration
        if user is None:
            return jsonify({'message': 'User already exists'}), 400
    except utils.StoreError:
        logger.exception('Registration failed')
        return _server_error()
    logger.info('Registered user %s', user['id'])
    return jsonify({
        'message': 'User registered successfully',
        'user': _user_json(user),
        'token': auth.generate_token(user['id']),
    }), 201


@app.route('/api/auth/login', methods=['POST'])
def login():
    email, password = _credentials(_json_body())
    if not email or not password:
        return jsonify({'message': 'Please enter all fields'}), 400
    try:
        user = utils.get_user_by_email(email)
    except utils.StoreError:
        logger.exception('Login failed')
        return _server_error()
    # Same answer for unknown email and wrong password
    if not user or not auth.verify_password(user.get('password'), password):
        return jsonify({'message': 'Invalid credentials'}), 400
    return jsonify({
        'message': 'Logged in successfully',
        'user': _user_json(user),
        'token': auth.generate_token(user['id']),
    })


# Task routes
@app.route('/api/tasks', methods=['POST'])
@auth.token_required
def create_task():
    data = _json_body()
    if not data.get('name') or not data.get('dueDate') or not data.get('dueTime'):
        return jsonify({'message': 'Please include a name, due date, and due time for the task'}), 400
    try:
        fields = utils.validate_task_fields(data)
        task = utils.add_task(g.user_id, fields)
    except utils.ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except utils.StoreError:
        logger.exception('Creating task failed')
        return _server_error()
    return jsonify(utils.task_to_json(task)), 201


@app.route('/api/tasks', methods=['GET'])
@auth.token_required
def list_tasks():
    try:
        tasks = utils.get_tasks_by_user(g.user_id)
    except utils.StoreError:
        logger.exception('Listing tasks failed')
        return _server_error()
    return jsonify([utils.task_to_json(t) for t in tasks])


@app.route('/api/tasks/<task_id>', methods=['GET'])
@auth.token_required
def get_task(task_id):
    if not utils.is_valid_task_id(task_id):
        return jsonify({'message': 'Invalid task ID'}), 400
    try:
        task = utils.get_task(task_id, g.user_id)
    except utils.StoreError:
        logger.exception('Reading task %s failed', task_id)
        return _server_error()
    if not task:
        return jsonify({'message': 'Task not found'}), 404
    return jsonify(utils.task_to_json(task))


@app.route('/api/tasks/<task_id>', methods=['PUT'])
@auth.token_required
def update_task(task_id):
    if not utils.is_valid_task_id(task_id):
        return jsonify({'message': 'Invalid task ID'}), 400
    try:
        updates = utils.validate_task_fields(_json_body(), partial=True)
        task = utils.update_task(task_id, g.user_id, updates)
    except utils.ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except utils.StoreError:
        logger.exception('Updating task %s failed', task_id)
        return _server_error()
    if not task:
        return jsonify({'message': 'Task not found or not authorized'}), 404
    return jsonify(utils.task_to_json(task))


@app.route('/api/tasks/<task_id>', methods=['DELETE'])
@auth.token_required
def delete_task(task_id):
    if not utils.is_valid_task_id(task_id):
        return jsonify({'message': 'Invalid task ID'}), 400
    try:
        deleted = utils.delete_task(task_id, g.user_id)
    except utils.StoreError:
        logger.exception('Deleting task %s failed', task_id)
        return _server_error()
    if not deleted:
        return jsonify({'message': 'Task not found or not authorized'}), 404
    return jsonify({'message': 'Task removed'})


def main():
    setup_logging()
    start_scanner()
    logger.info('Server running on port %s', config.PORT)
    app.run(host='0.0.0.0', port=config.PORT, debug=config.DEBUG)


if __name__ == '__main__':
    main()
