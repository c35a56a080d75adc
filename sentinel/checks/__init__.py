"""Check subsystem: HEAD probe executor and polling scheduler."""

from .engine import CheckResult, execute_check
from .scheduler import CheckScheduler, is_due
