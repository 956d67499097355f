"""
Streak Pick'em Background Scheduler Service

Runs deferred outcome checks and periodic maintenance using APScheduler.
Outcome checks are persisted, so jobs lost with a previous process are
resumed on start and a periodic sweep catches any that were missed.
"""

import atexit
import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from streak_pickem import db
from streak_pickem.models import OutcomeCheck
from streak_pickem.models.outcome_check import STATE_CHECKING
from streak_pickem.utils.calendar import ensure_aware

logger = logging.getLogger(__name__)

SWEEP_GRACE = timedelta(minutes=2)
# A check left in "checking" longer than this is assumed to have died with its worker
CHECKING_TIMEOUT = timedelta(minutes=10)


def _is_in_flight(check, now):
    """True while another worker is still running the check"""
    if check.state != STATE_CHECKING or check.updated_at is None:
        return False
    return ensure_aware(check.updated_at) > now - CHECKING_TIMEOUT


class SchedulerService:
    """Manages background scheduling for outcome checks and maintenance"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.run_stats = {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "checks_resumed": 0,
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        # Register shutdown
        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler and resume pending outcome checks"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()

            self.scheduler.start()
            self.is_running = True
            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

        self._resume_pending_checks()

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add core scheduled jobs"""

        # Catch outcome checks whose timers were lost
        self.scheduler.add_job(
            func=self._sweep_due_checks,
            trigger=IntervalTrigger(minutes=5),
            id="sweep_outcome_checks",
            name="Sweep Due Outcome Checks",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        # Warm the live matchup cache shortly after local midnight
        self.scheduler.add_job(
            func=self._warm_daily_matchup,
            trigger=CronTrigger(hour=0, minute=5, timezone=self.app.config.get("TIMEZONE", "UTC")),
            id="warm_daily_matchup",
            name="Warm Daily Matchup",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info("Core scheduled jobs added")

    def schedule_once(self, job_id, run_at, func, args=None):
        """
        Run func(*args) once at run_at inside the app context.

        Rescheduling the same job_id replaces the previous job.
        """
        self.scheduler.add_job(
            func=self._run_in_context,
            trigger=DateTrigger(run_date=run_at),
            args=[job_id, func, list(args or [])],
            id=job_id,
            name=f"Outcome {job_id}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

    def _run_in_context(self, job_id, func, args):
        with self.app.app_context():
            try:
                func(*args)
                self._update_stats(True)
            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.run_stats["last_error"] = str(e)
                logger.error(f"Error running job {job_id}: {e}", exc_info=True)

    def _resume_pending_checks(self):
        from streak_pickem.services.factory import build_outcome_service

        with self.app.app_context():
            try:
                resumed = build_outcome_service(scheduler=self).resume_pending()
                self.run_stats["checks_resumed"] += resumed
            except Exception as e:
                db.session.rollback()
                logger.error(f"Error resuming outcome checks: {e}", exc_info=True)

    def _sweep_due_checks(self):
        """Run overdue pending checks that have no scheduled job"""
        from streak_pickem.services.factory import run_outcome_check

        with self.app.app_context():
            try:
                now = datetime.now(timezone.utc)
                cutoff = now - SWEEP_GRACE
                overdue = [
                    check
                    for check in OutcomeCheck.get_pending()
                    if check.run_at <= cutoff
                    and self.scheduler.get_job(check.job_id) is None
                    and not _is_in_flight(check, now)
                ]

                for check in overdue:
                    logger.info(f"Sweeping overdue outcome check {check.id}")
                    run_outcome_check(check.id)

                if overdue:
                    self._update_stats(True)

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.run_stats["last_error"] = str(e)
                logger.error(f"Error in outcome check sweep: {e}", exc_info=True)

    def _warm_daily_matchup(self):
        from streak_pickem.services.factory import build_matchup_service

        with self.app.app_context():
            try:
                matchup = build_matchup_service().resolve_todays_matchup()
                logger.info(f"Daily matchup ready: {matchup.id}")
            except Exception as e:
                logger.error(f"Error warming daily matchup: {e}", exc_info=True)

    def _update_stats(self, success):
        """Update run statistics"""
        self.run_stats["last_run"] = datetime.now(timezone.utc)
        self.run_stats["total_runs"] += 1

        if success:
            self.run_stats["successful_runs"] += 1
            self.run_stats["last_error"] = None
        else:
            self.run_stats["failed_runs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.run_stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}


# Global scheduler instance
scheduler_service = SchedulerService()
