from pingwatch.monitor.probe import ProbeOutcome, compute_state, run_probe
from pingwatch.monitor.rotation import LogRotator, RotationReport
from pingwatch.monitor.worker import CheckWorker, CycleResult

__all__ = [
    "CheckWorker",
    "CycleResult",
    "LogRotator",
    "ProbeOutcome",
    "RotationReport",
    "compute_state",
    "run_probe",
]
