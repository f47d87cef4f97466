"""
Prometheus-compatible metrics for observability.

Tracks booking operations:
- Reminder dispatches (by reminder type, channel, status)
- Availability checks (single slot vs batch)
- Booking status transitions

Usage:
    from carwash.lib.metrics import get_metrics_collector

    metrics = get_metrics_collector()
    metrics.increment_reminders(reminder_type="24_hour", channel="email", status="sent")
    metrics.increment_availability_checks(mode="single")

    # Export for Prometheus
    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Tuple
from threading import Lock


class MetricsCollector:
    """
    Prometheus-style metrics collector.

    Counters:
    - booking_reminders_sent_total: Reminder channel attempts (labels: type, channel, status)
    - availability_checks_total: Availability lookups (labels: mode)
    - booking_transitions_total: Status changes (labels: from_status, to_status)

    Thread-safe for concurrent increments.
    """

    def __init__(self):
        self._lock = Lock()

        # Counters: key = (metric_name, labels_tuple), value = count
        self._counters: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}

    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        """Generate unique key for counter with sorted labels."""
        return (metric_name, tuple(sorted(labels.items())))

    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        """Thread-safe increment of counter."""
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def _get_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def increment_reminders(self, reminder_type: str, channel: str, status: str, amount: int = 1):
        """
        Increment reminder channel attempts.

        Args:
            reminder_type: 24_hour, 2_hour or 30_min
            channel: email or sms
            status: sent or failed
            amount: Increment amount (default 1)
        """
        labels = {
            "type": reminder_type.lower(),
            "channel": channel.lower(),
            "status": status.lower(),
        }
        self._increment("booking_reminders_sent_total", labels, amount)

    def increment_availability_checks(self, mode: str, amount: int = 1):
        """Increment availability lookups (mode: single or batch)."""
        self._increment("availability_checks_total", {"mode": mode.lower()}, amount)

    def increment_transitions(self, from_status: str, to_status: str, amount: int = 1):
        """Increment booking status transitions."""
        labels = {
            "from_status": from_status.upper(),
            "to_status": to_status.upper(),
        }
        self._increment("booking_transitions_total", labels, amount)

    # ===== Export =====

    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            Prometheus-compatible text output
        """
        output_lines = []

        metrics_by_name: Dict[str, list] = {}
        with self._lock:
            for (metric_name, labels_tuple), value in self._counters.items():
                metrics_by_name.setdefault(metric_name, []).append((dict(labels_tuple), value))

        for metric_name in sorted(metrics_by_name.keys()):
            output_lines.append(f"# HELP {metric_name} {self._get_help_text(metric_name)}")
            output_lines.append(f"# TYPE {metric_name} counter")

            for labels_dict, value in sorted(metrics_by_name[metric_name], key=lambda x: str(x[0])):
                labels_str = ",".join([f'{k}="{v}"' for k, v in sorted(labels_dict.items())])
                output_lines.append(f"{metric_name}{{{labels_str}}} {value}")

            output_lines.append("")

        return "\n".join(output_lines)

    def _get_help_text(self, metric_name: str) -> str:
        help_texts = {
            "booking_reminders_sent_total": "Booking reminder channel attempts",
            "availability_checks_total": "Slot availability lookups",
            "booking_transitions_total": "Booking status transitions",
        }
        return help_texts.get(metric_name, "Counter metric")

    def get_counter_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        """Get current value of a specific counter."""
        return self._get_value(metric_name, labels)

    def reset_all(self):
        """Reset all counters (for testing)."""
        with self._lock:
            self._counters.clear()


# Global singleton instance
_metrics_collector: MetricsCollector | None = None
_metrics_lock = Lock()


def get_metrics_collector() -> MetricsCollector:
    """
    Get global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics():
    """Reset global metrics collector (for testing)."""
    with _metrics_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset_all()
