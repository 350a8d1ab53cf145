"""
AUTH_METRICS.PY - Metrics Exporter for the ZKP Auth Server

Exports production metrics:
- zkp_registrations_total (by status)
- zkp_challenges_issued_total
- zkp_verifications_total (by outcome)
- zkp_errors_total (by kind)
- zkp_verify_time_ms (avg / p95)
- zkp_challenges_pending, zkp_users_registered

Usage:
    from auth_metrics import AuthMetricsExporter

    metrics = AuthMetricsExporter()
    metrics.record_registration("registered")
    metrics.record_verification(authenticated=True, duration_ms=2.1)

    # Served by the auth server at GET /metrics
    text = metrics.get_metrics_text()
"""
import time
import logging
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger("ZKP-METRICS")


@dataclass
class MetricValue:
    """Single metric value with timestamp"""
    value: float
    timestamp: float


class AuthMetricsExporter:
    """Prometheus-compatible metrics for the auth protocol"""

    def __init__(self, retention_seconds: int = 3600):
        """
        Initialize exporter

        Args:
            retention_seconds: How long timing samples count towards avg/p95
        """
        self.retention_seconds = retention_seconds
        self._lock = threading.Lock()

        # Counters
        self.registrations = defaultdict(int)  # status -> count
        self.verifications = defaultdict(int)  # outcome -> count
        self.errors = defaultdict(int)  # error kind -> count
        self.challenges_issued = 0

        # Timings
        self.verify_times = deque(maxlen=1000)  # Last 1000 verifications

        # Gauges, read at render time
        self.pending_challenges_fn: Optional[Callable[[], int]] = None
        self.registered_users_fn: Optional[Callable[[], int]] = None
        self.reaped_total_fn: Optional[Callable[[], int]] = None

        logger.info("Metrics exporter initialized")

    def record_registration(self, status: str):
        with self._lock:
            self.registrations[status] += 1

    def record_challenge(self):
        with self._lock:
            self.challenges_issued += 1

    def record_verification(self, authenticated: bool, duration_ms: float):
        outcome = "authenticated" if authenticated else "not_authenticated"
        with self._lock:
            self.verifications[outcome] += 1
            self.verify_times.append(MetricValue(duration_ms, time.time()))

    def record_error(self, error_kind: str):
        with self._lock:
            self.errors[error_kind] += 1

    def _recent(self) -> list:
        cutoff = time.time() - self.retention_seconds
        with self._lock:
            return [m.value for m in self.verify_times if m.timestamp >= cutoff]

    def _compute_avg(self) -> float:
        recent = self._recent()
        return sum(recent) / len(recent) if recent else 0.0

    def _compute_percentile(self, percentile: float) -> float:
        recent = sorted(self._recent())
        if not recent:
            return 0.0

        idx = int(len(recent) * percentile / 100.0)
        return recent[min(idx, len(recent) - 1)]

    def get_metrics_text(self) -> str:
        """
        Generate Prometheus-compatible metrics text

        Returns:
            Metrics in Prometheus text format
        """
        lines = []

        with self._lock:
            registrations = dict(self.registrations)
            verifications = dict(self.verifications)
            errors = dict(self.errors)
            challenges_issued = self.challenges_issued

        lines.append("# HELP zkp_registrations_total Register calls by status")
        lines.append("# TYPE zkp_registrations_total counter")
        for status, count in sorted(registrations.items()):
            lines.append(f"zkp_registrations_total{{status=\"{status}\"}} {count}")

        lines.append("# HELP zkp_challenges_issued_total Authentication challenges issued")
        lines.append("# TYPE zkp_challenges_issued_total counter")
        lines.append(f"zkp_challenges_issued_total {challenges_issued}")

        lines.append("# HELP zkp_verifications_total Completed verifications by outcome")
        lines.append("# TYPE zkp_verifications_total counter")
        for outcome, count in sorted(verifications.items()):
            lines.append(f"zkp_verifications_total{{outcome=\"{outcome}\"}} {count}")

        lines.append("# HELP zkp_errors_total Protocol errors by kind")
        lines.append("# TYPE zkp_errors_total counter")
        for kind, count in sorted(errors.items()):
            lines.append(f"zkp_errors_total{{kind=\"{kind}\"}} {count}")

        lines.append("# HELP zkp_verify_time_ms Verification time in milliseconds")
        lines.append("# TYPE zkp_verify_time_ms gauge")
        lines.append(f"zkp_verify_time_ms{{stat=\"avg\"}} {self._compute_avg():.2f}")
        lines.append(f"zkp_verify_time_ms{{stat=\"p95\"}} {self._compute_percentile(95):.2f}")

        if self.pending_challenges_fn is not None:
            lines.append("# HELP zkp_challenges_pending Challenges awaiting verification")
            lines.append("# TYPE zkp_challenges_pending gauge")
            lines.append(f"zkp_challenges_pending {self.pending_challenges_fn()}")

        if self.reaped_total_fn is not None:
            lines.append("# HELP zkp_challenges_reaped_total Challenges dropped after expiry")
            lines.append("# TYPE zkp_challenges_reaped_total counter")
            lines.append(f"zkp_challenges_reaped_total {self.reaped_total_fn()}")

        if self.registered_users_fn is not None:
            lines.append("# HELP zkp_users_registered Registered users")
            lines.append("# TYPE zkp_users_registered gauge")
            lines.append(f"zkp_users_registered {self.registered_users_fn()}")

        return "\n".join(lines) + "\n"
