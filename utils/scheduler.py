"""
Weekly mini-project jobs.

- Sunday 23:59: remember how many projects each student finished and empty
  the current week.
- Monday 01:00: generate a new week for every student with generation enabled.

Both jobs can also be run directly (tests, scripts, manual triggers).
"""
import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from errors import PortalError
from utils.mini_projects import reset_week
from utils.notifications import notify_weekly_projects_ready
from utils.project_generation import generate_week_for_user
from utils.weeks import iso_week_label

logger = logging.getLogger(__name__)


def run_weekly_reset(database) -> int:
    """Rotate every record; returns how many were reset."""
    reset = 0
    for user_id in database.mini_projects.all_user_ids():
        try:
            database.mini_projects.mutate(user_id, reset_week)
            reset += 1
        except PortalError as e:
            logger.error(f"Weekly reset failed for user {user_id}: {e.message}")
    logger.info(f"Reset {reset} student project records")
    return reset


def run_weekly_generation(database, ai_service, retention_weeks: int = 52, mailer=None,
                          now: datetime = None) -> int:
    """Generate next week's projects for every record with generation enabled."""
    now = now or datetime.utcnow()
    generated = 0
    for record in database.mini_projects.with_generation_enabled():
        user_id = record['user_id']
        try:
            updated = generate_week_for_user(database, ai_service, user_id,
                                             retention_weeks=retention_weeks, now=now)
        except PortalError as e:
            logger.error(f"Weekly generation failed for user {user_id}: {e.message}")
            continue
        generated += 1
        if mailer is not None:
            user = database.users.find_one({'user_id': user_id})
            week = next((w for w in updated['weekly_project_history']
                         if w['week_number'] == updated['current_week_number']), {})
            count = len(week.get('java_projects', [])) + len(week.get('python_projects', []))
            if user:
                notify_weekly_projects_ready(mailer, user, count)
    logger.info(f"Generated projects for {generated} students ({iso_week_label(now)})")
    return generated


def init_scheduler(database, ai_service, config, mailer=None) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone='UTC')
    scheduler.add_job(
        run_weekly_reset,
        CronTrigger(day_of_week='sun', hour=23, minute=59),
        args=[database],
        id='weekly_reset',
        replace_existing=True,
    )
    scheduler.add_job(
        run_weekly_generation,
        CronTrigger(day_of_week='mon', hour=1, minute=0),
        args=[database, ai_service],
        kwargs={'retention_weeks': config.get('HISTORY_RETENTION_WEEKS', 52), 'mailer': mailer},
        id='weekly_generation',
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started: Sunday 23:59 weekly reset, Monday 01:00 project generation")
    return scheduler
