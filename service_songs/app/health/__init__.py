"""
Process health: fault supervision and periodic store liveness probes.
"""

from .monitor import HealthMonitor
from .supervisor import ProcessFaultSupervisor, get_process_supervisor

__all__ = [
    "HealthMonitor",
    "ProcessFaultSupervisor",
    "get_process_supervisor",
]
