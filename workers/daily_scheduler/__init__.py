from .scheduler import next_daily_run, run_daily_scheduler

__all__ = ["next_daily_run", "run_daily_scheduler"]
