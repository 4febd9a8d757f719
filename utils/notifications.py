import logging
from datetime import datetime
from html import escape

from errors import ExternalServiceError

logger = logging.getLogger(__name__)


def _send(mailer, to: str, subject: str, html_body: str) -> bool:
    """Best-effort send; notification failures never fail the request that caused them."""
    if mailer is None or not mailer.configured:
        logger.info(f"Mail not configured, skipping '{subject}' to {to}")
        return False
    if not to:
        logger.warning(f"No recipient for '{subject}'")
        return False
    try:
        mailer.send_email(to, subject, html_body)
        return True
    except ExternalServiceError as e:
        logger.error(f"Error sending notification '{subject}' to {to}: {e.message}")
        return False


def _format_time(value) -> str:
    if isinstance(value, datetime):
        return value.strftime('%d %b %Y, %H:%M')
    return str(value or 'Just now')


def notify_submission_ready(mailer, submission: dict, work: dict, student: dict, teacher: dict) -> bool:
    """
    Notify the teacher that a student handed in an activity or assignment
    """
    subject = f"New submission: {work.get('title', 'Untitled')}"
    body = (
        f"<p>{escape(student.get('name', 'A student'))} submitted "
        f"<strong>{escape(work.get('title', 'Untitled'))}</strong>.</p>"
        f"<p>Submitted at: {_format_time(submission.get('submitted_at'))}</p>"
    )
    return _send(mailer, teacher.get('email'), subject, body)


def notify_feedback_ready(mailer, work: dict, student: dict, grade=None) -> bool:
    """
    Notify the student that their submission has been graded
    """
    subject = f"Your work has been graded: {work.get('title', 'Untitled')}"
    grade_line = f"<p>Grade: {grade}/{work.get('points', 100)}</p>" if grade is not None else ''
    body = (
        f"<p>Hi {escape(student.get('name', 'there'))},</p>"
        f"<p>Your teacher has reviewed <strong>{escape(work.get('title', 'Untitled'))}</strong>.</p>"
        f"{grade_line}"
    )
    return _send(mailer, student.get('email'), subject, body)


def notify_work_published(mailer, work: dict, students: list, teacher: dict) -> int:
    """Email every enrolled student about new classwork; returns how many were sent."""
    logger.info(f"New classwork '{work.get('title')}' published by {teacher.get('name')} "
                f"for {len(students)} students")
    subject = f"New classwork: {work.get('title', 'Untitled')}"
    due = f"<p>Due: {_format_time(work['due_date'])}</p>" if work.get('due_date') else ''
    body = f"<p>{escape(teacher.get('name', 'Your teacher'))} posted " \
           f"<strong>{escape(work.get('title', 'Untitled'))}</strong>.</p>{due}"
    return sum(1 for student in students if _send(mailer, student.get('email'), subject, body))


def notify_weekly_projects_ready(mailer, user: dict, project_count: int) -> bool:
    subject = "Your new weekly mini projects are ready"
    body = (
        f"<p>Hi {escape(user.get('name', 'there'))},</p>"
        f"<p>{project_count} new mini projects are waiting for you this week.</p>"
    )
    return _send(mailer, user.get('email'), subject, body)
