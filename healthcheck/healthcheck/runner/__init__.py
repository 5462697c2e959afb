"""Pass orchestration."""

from healthcheck.checks.models import RepairMode
from healthcheck.runner.engine import TestRunner, prepare_pass, run_pass

__all__ = ["RepairMode", "TestRunner", "prepare_pass", "run_pass"]
