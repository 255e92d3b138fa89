"""
Example schedule. Run it every minute from cron on each host:

    * * * * * cd /srv/app && task-scheduler --schedule examples.schedule:schedule run

or keep a worker running instead:

    task-scheduler --schedule examples.schedule:schedule work
"""
import logging

from task_scheduler import Schedule

logger = logging.getLogger(__name__)

schedule = Schedule(timezone="Europe/Amsterdam")


def prune_sessions(older_than: int = 30) -> None:
    logger.info("Pruning sessions older than %s days", older_than)


async def refresh_rates() -> bool:
    logger.info("Refreshing exchange rates")
    return True


schedule.exec("echo heartbeat").every_minute()

schedule.exec("./bin/backup.sh", {"--full": True, "target": "/var/backups"}) \
    .daily_at("02:30") \
    .on_one_host() \
    .in_background() \
    .append_output_to("var/log/backup.log") \
    .ping_on_failure("https://hc-ping.example.com/backup/fail")

schedule.call(prune_sessions, {"older_than": 14}) \
    .name("prune-sessions") \
    .hourly() \
    .on_one_host() \
    .in_environments("production")

schedule.call(refresh_rates) \
    .name("refresh-rates") \
    .every_fifteen_seconds() \
    .between("08:00", "20:00") \
    .prevent_overlapping(expires_after=5)
