"""Probe subsystem — executor, classifier, emitter, pool, scheduler."""

from .emitter import MetricEmitter, build_rows
from .engine import HealthVerdict, ProbeResult, classify, execute_probe
from .pool import ResponsePool
from .scheduler import SessionState, SessionSupervisor, SiteSession
