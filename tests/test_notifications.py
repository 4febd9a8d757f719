"""Best-effort email notifications."""
from datetime import datetime

from conftest import FakeMailer
from errors import ExternalServiceError
from utils.notifications import (notify_feedback_ready, notify_submission_ready, notify_weekly_projects_ready,
                                 notify_work_published)


class BrokenMailer(FakeMailer):

    def send_email(self, to, subject, html_body):
        raise ExternalServiceError("Failed to send email")


STUDENT = {'name': 'Jose <Rizal>', 'email': 'jose@school.edu'}
TEACHER = {'name': 'Maria Santos', 'email': 'maria@school.edu'}
WORK = {'title': 'Loops', 'points': 50, 'due_date': datetime(2025, 3, 10, 23, 59)}


def test_teacher_hears_about_submission():
    mailer = FakeMailer()
    assert notify_submission_ready(mailer, {'submitted_at': datetime(2025, 3, 3, 9)}, WORK, STUDENT, TEACHER)

    sent = mailer.sent[0]
    assert sent['to'] == 'maria@school.edu'
    assert sent['subject'] == 'New submission: Loops'
    assert 'Jose &lt;Rizal&gt;' in sent['body']
    assert '03 Mar 2025, 09:00' in sent['body']


def test_grade_is_included():
    mailer = FakeMailer()
    notify_feedback_ready(mailer, WORK, STUDENT, grade=45)
    assert 'Grade: 45/50' in mailer.sent[0]['body']


def test_publish_counts_delivered_mails():
    mailer = FakeMailer()
    sent = notify_work_published(mailer, WORK, [STUDENT, {'name': 'No email'}], TEACHER)
    assert sent == 1
    assert 'Due: 10 Mar 2025, 23:59' in mailer.sent[0]['body']


def test_failures_and_missing_mailer_are_swallowed():
    assert notify_weekly_projects_ready(BrokenMailer(), STUDENT, 6) is False
    assert notify_weekly_projects_ready(None, STUDENT, 6) is False
