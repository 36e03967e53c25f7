# backend/interview_scoring/worker.py
# Long-running alternative to calling /jobs/process from a scheduler.
import asyncio
import logging
import signal
from typing import Optional

from .bootstrap import Services, build_services, configure_logging
from .config import Settings, settings as default_settings
from .db import Database

log = logging.getLogger("interview_scoring.worker")


async def worker_loop(services: Services, poll_interval: float, stop: asyncio.Event, max_cycles: Optional[int] = None):
    """
    Run claim + execute cycles until ``stop`` is set.

    After a job finishes the next cycle starts straight away; when the queue is
    empty the loop waits ``poll_interval`` seconds (or until stopped).
    """
    cycles = 0
    while not stop.is_set():
        try:
            outcome = await services.runner.run_once()
        except Exception:
            log.exception("Worker cycle crashed; backing off")
            outcome = None

        cycles += 1
        if max_cycles is not None and cycles >= max_cycles:
            break

        if outcome is None or outcome.status == "no_jobs":
            try:
                await asyncio.wait_for(stop.wait(), timeout=poll_interval)
            except asyncio.TimeoutError:
                pass
    log.info("Worker loop exiting after %d cycles", cycles)


async def main(settings: Optional[Settings] = None):
    settings = settings or default_settings
    db = Database.from_settings(settings, application_name="interview-scoring-worker")
    await db.wait_for_db(max_retries=8, delay=2.0)
    services = build_services(settings, db)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    log.info("Worker started (poll every %.1fs)", settings.WORKER_POLL_INTERVAL)
    try:
        await worker_loop(services, settings.WORKER_POLL_INTERVAL, stop)
    finally:
        await services.alerter.drain()
        await db.dispose()
        log.info("Worker stopped")


if __name__ == "__main__":
    configure_logging(default_settings.LOG_LEVEL)
    asyncio.run(main())
