import json
import os
import re
import tempfile
import threading
import uuid
from datetime import date, datetime

import config

USERS_FILE = 'users.json'
TASKS_FILE = 'tasks.json'

PRIORITIES = ('low', 'medium', 'high')
STATUSES = ('pending', 'completed')
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
DEFAULT_DURATION = 30

# Request field name -> stored field name
TASK_FIELDS = {
    'name': 'name',
    'description': 'description',
    'dueDate': 'due_date',
    'dueTime': 'due_time',
    'priority': 'priority',
    'category': 'category',
    'status': 'status',
    'duration': 'duration',
}

_TASK_ID_RE = re.compile(r'^[0-9a-f]{32}$')
_TIME_RE = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')

# Guards every read-modify-write on the JSON files (request threads + scanner)
_lock = threading.RLock()


class StoreError(Exception):
    """The document store could not be read or written."""


class ValidationError(ValueError):
    """A request field is missing or malformed."""


def load_json(file_name):
    filepath = os.path.join(config.DATA_DIR, file_name)
    if not os.path.exists(filepath):
        return {}
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise StoreError(f'cannot read {filepath}: {e}') from e


def save_json(file_name, data):
    """Write ``data`` to a temp file, then swap it in so readers never see half a file."""
    filepath = os.path.join(config.DATA_DIR, file_name)
    try:
        os.makedirs(config.DATA_DIR, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=config.DATA_DIR, prefix=file_name, suffix='.tmp')
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=4, ensure_ascii=False)
        os.replace(tmp_path, filepath)
    except OSError as e:
        raise StoreError(f'cannot write {filepath}: {e}') from e


def new_id():
    return uuid.uuid4().hex


# Users

def normalize_email(email):
    return str(email).strip().lower()


def get_user_by_id(user_id):
    users = load_json(USERS_FILE)
    return users.get(str(user_id))


def get_user_by_email(email):
    email = normalize_email(email)
    users = load_json(USERS_FILE)
    for user in users.values():
        if user.get('email') == email:
            return user
    return None


def create_user(email, password_hash):
    """Store a new user. Returns ``None`` when the email is already registered."""
    email = normalize_email(email)
    with _lock:
        users = load_json(USERS_FILE)
        if any(u.get('email') == email for u in users.values()):
            return None
        user = {
            'id': new_id(),
            'email': email,
            'password': password_hash,
            'created_at': datetime.now().isoformat(),
        }
        users[user['id']] = user
        save_json(USERS_FILE, users)
    return user


# Task validation

def is_valid_task_id(task_id):
    return isinstance(task_id, str) and bool(_TASK_ID_RE.match(task_id))


def parse_due_date(value):
    """Accept ``YYYY-MM-DD`` or a full ISO datetime; return the ``YYYY-MM-DD`` part."""
    text = str(value).strip()
    if len(text) > 10 and text[10] in 'T ':
        text = text[:10]
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        raise ValidationError('Due date must be a valid date (YYYY-MM-DD)') from None


def parse_due_time(value):
    """Normalize ``H:MM``, ``HH:MM`` or ``HH:MM:SS`` to ``HH:MM``."""
    match = _TIME_RE.match(str(value).strip())
    if not match:
        raise ValidationError('Due time must be in HH:MM format')
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise ValidationError('Due time must be in HH:MM format')
    return f'{hour:02d}:{minute:02d}'


def _parse_duration(value):
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError('Duration must be a whole number of minutes')
    try:
        duration = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Duration must be a whole number of minutes') from None
    if duration < 1:
        raise ValidationError('Duration must be at least 1 minute')
    return duration


def _clean_field(field, value):
    if field == 'name':
        name = str(value).strip()
        if not name:
            raise ValidationError('Task name is required')
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(f'Task name cannot be more than {NAME_MAX_LENGTH} characters')
        return name
    if field == 'description':
        description = str(value)
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError(f'Description cannot be more than {DESCRIPTION_MAX_LENGTH} characters')
        return description
    if field == 'due_date':
        return parse_due_date(value)
    if field == 'due_time':
        return parse_due_time(value)
    if field == 'priority':
        if value not in PRIORITIES:
            raise ValidationError('Priority must be one of: ' + ', '.join(PRIORITIES))
        return value
    if field == 'status':
        if value not in STATUSES:
            raise ValidationError('Status must be one of: ' + ', '.join(STATUSES))
        return value
    if field == 'duration':
        return _parse_duration(value)
    return str(value)


def validate_task_fields(data, partial=False):
    """Map request fields to stored fields, validating each one.

    With ``partial=True`` (updates) only truthy values are kept: an empty or
    falsy value leaves the stored field unchanged rather than clearing it.
    On create an empty string counts as absent, so the default applies.
    ``status`` is only accepted on updates.
    """
    cleaned = {}
    for request_field, field in TASK_FIELDS.items():
        value = data.get(request_field)
        if partial:
            if not value:
                continue
        else:
            if field == 'status' or value is None or value == '':
                continue
        cleaned[field] = _clean_field(field, value)
    return cleaned


# Tasks

def _task_sort_key(task):
    return task.get('due_date', ''), task.get('due_time', '')


def add_task(user_id, fields):
    task = {
        'id': new_id(),
        'user_id': user_id,
        'name': fields['name'],
        'description': fields.get('description') or '',
        'due_date': fields['due_date'],
        'due_time': fields['due_time'],
        'priority': fields.get('priority') or 'medium',
        'category': fields.get('category') or 'general',
        'status': 'pending',
        'duration': fields.get('duration') or DEFAULT_DURATION,
        'notified': False,
        'notification_attempts': 0,
        'last_attempt_at': None,
        'created_at': datetime.now().isoformat(),
    }
    with _lock:
        tasks = load_json(TASKS_FILE)
        tasks[task['id']] = task
        save_json(TASKS_FILE, tasks)
    return task


def get_tasks_by_user(user_id):
    tasks = load_json(TASKS_FILE)
    user_tasks = [t for t in tasks.values() if t.get('user_id') == user_id]
    user_tasks.sort(key=_task_sort_key)
    return user_tasks


def get_task(task_id, user_id):
    """Return the task only if ``user_id`` owns it."""
    task = load_json(TASKS_FILE).get(task_id)
    if not task or task.get('user_id') != user_id:
        return None
    return task


def update_task(task_id, user_id, updates):
    with _lock:
        tasks = load_json(TASKS_FILE)
        task = tasks.get(task_id)
        if not task or task.get('user_id') != user_id:
            return None
        task.update(updates)
        save_json(TASKS_FILE, tasks)
    return task


def delete_task(task_id, user_id):
    with _lock:
        tasks = load_json(TASKS_FILE)
        task = tasks.get(task_id)
        if not task or task.get('user_id') != user_id:
            return False
        del tasks[task_id]
        save_json(TASKS_FILE, tasks)
    return True


def task_to_json(task):
    return {
        'id': task['id'],
        'userId': task['user_id'],
        'name': task['name'],
        'description': task.get('description', ''),
        'dueDate': task['due_date'],
        'dueTime': task['due_time'],
        'priority': task.get('priority', 'medium'),
        'category': task.get('category', 'general'),
        'status': task.get('status', 'pending'),
        'duration': task.get('duration', DEFAULT_DURATION),
        'notified': task.get('notified', False),
        'createdAt': task.get('created_at'),
    }


# Scanner queries

def find_due_candidates(date_from, date_to, max_attempts=None):
    """Pending, unnotified tasks due on any day in ``[date_from, date_to]``.

    This is a coarse day-level filter; the scanner checks the exact due time.
    Tasks that already failed ``max_attempts`` sends are left out.
    """
    start, end = date_from.isoformat(), date_to.isoformat()
    candidates = []
    for task in load_json(TASKS_FILE).values():
        if task.get('status') != 'pending' or task.get('notified'):
            continue
        if max_attempts is not None and task.get('notification_attempts', 0) >= max_attempts:
            continue
        if start <= task.get('due_date', '') <= end:
            candidates.append(task)
    candidates.sort(key=_task_sort_key)
    return candidates


def get_task_owner_email(task):
    user = get_user_by_id(task.get('user_id'))
    return user.get('email') if user else None


def mark_task_notified(task_id):
    """Set only ``notified`` on the current stored copy of the task."""
    with _lock:
        tasks = load_json(TASKS_FILE)
        if task_id not in tasks:
            return False
        tasks[task_id]['notified'] = True
        save_json(TASKS_FILE, tasks)
    return True


def record_notification_failure(task_id, attempted_at):
    with _lock:
        tasks = load_json(TASKS_FILE)
        task = tasks.get(task_id)
        if not task:
            return False
        task['notification_attempts'] = task.get('notification_attempts', 0) + 1
        task['last_attempt_at'] = attempted_at.isoformat()
        save_json(TASKS_FILE, tasks)
    return True
