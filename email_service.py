import logging
from datetime import date

import requests

import config

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


def format_due_date(due_date):
    """'2025-01-02' -> 'January 2, 2025'."""
    d = date.fromisoformat(due_date) if isinstance(due_date, str) else due_date
    return f'{d.strftime("%B")} {d.day}, {d.year}'


def build_reminder(task_name, due_date, due_time):
    """Return ``(subject, text_body, html_body)`` for a due-soon reminder."""
    subject = f'Reminder: Your task "{task_name}" is due soon!'
    pretty_date = format_due_date(due_date)
    link_text = f'Log in to manage your tasks: {config.APP_URL}\n' if config.APP_URL else ''
    text = f'''Hi there,

Just a friendly reminder that your task is approaching its deadline:

Task: {task_name}
Due Date: {pretty_date}
Due Time: {due_time}

{link_text}
This is an automated message, please do not reply.
'''
    link_html = ''
    if config.APP_URL:
        link_html = f'<p>Please log in to <a href="{config.APP_URL}">Schedule Master</a> to manage your tasks.</p>'
    html = f'''<div style="font-family: sans-serif; max-width: 600px; margin: auto; padding: 20px;">
    <h2 style="color: #4F46E5; text-align: center;">Schedule Master Reminder</h2>
    <p>Hi there,</p>
    <p>Just a friendly reminder that your task is approaching its deadline:</p>
    <div style="background-color: #f8fafc; padding: 15px; border-left: 4px solid #818CF8; margin: 20px 0;">
        <h3 style="margin-top: 0;">Task: {task_name}</h3>
        <p><strong>Due Date:</strong> {pretty_date}</p>
        <p><strong>Due Time:</strong> {due_time}</p>
    </div>
    {link_html}
    <p style="font-size: 12px; color: #94a3b8; text-align: center;">This is an automated message, please do not reply.</p>
</div>'''
    return subject, text, html


def send_task_due_notification(user_email, task_name, due_date, due_time):
    """Email a due-soon reminder through the SendGrid v3 API.

    Returns True only when the provider accepted the message. Every failure
    (bad arguments, missing configuration, network or API error) is logged
    and reported as False so the scanner can retry later.
    """
    if not user_email or not task_name or not due_date or not due_time:
        logger.error('Missing required email notification parameters, cannot send email')
        return False
    if not config.SENDGRID_API_KEY or not config.SENDGRID_SENDER_EMAIL:
        logger.error('SENDGRID_API_KEY or SENDGRID_SENDER_EMAIL is not configured, cannot send email')
        return False

    subject, text, html = build_reminder(task_name, due_date, due_time)
    payload = {
        'personalizations': [{'to': [{'email': user_email}]}],
        'from': {'email': config.SENDGRID_SENDER_EMAIL},
        'subject': subject,
        'content': [
            {'type': 'text/plain', 'value': text},
            {'type': 'text/html', 'value': html},
        ],
    }
    headers = {
        'Authorization': f'Bearer {config.SENDGRID_API_KEY}',
        'Content-Type': 'application/json',
    }
    try:
        response = requests.post(config.SENDGRID_API_URL, headers=headers, json=payload, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.HTTPError as e:
        logger.error('Error sending email to %s for task "%s": %s %s',
                     user_email, task_name, e.response.status_code, e.response.text)
        return False
    except requests.RequestException as e:
        logger.error('Error sending email to %s for task "%s": %s', user_email, task_name, e)
        return False
    logger.info('Email notification sent to %s for task "%s"', user_email, task_name)
    return True
