from .main import AutoDrawReport, due_elections, run_once

__all__ = ["AutoDrawReport", "due_elections", "run_once"]
