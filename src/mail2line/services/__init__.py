from .doctor import run_doctor_checks
from .orchestrator import RunOrchestrator
from .summary import ProcessingError, RunSummary

__all__ = ["ProcessingError", "RunOrchestrator", "RunSummary", "run_doctor_checks"]
