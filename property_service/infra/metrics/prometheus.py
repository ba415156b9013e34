"""Prometheus metrics for jobs, cron runs and real-time delivery."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

REGISTRY = CollectorRegistry()

# Cron jobs run from seconds to several minutes
JOB_DURATION_BUCKETS = (
    0.01,
    0.05,
    0.1,
    0.5,
    1.0,
    5.0,
    15.0,
    30.0,
    60.0,
    300.0,
    600.0,
)

# Job registry metrics
tracked_jobs_total = Counter(
    "tracked_jobs_total",
    "Jobs recorded in the job registry",
    ["job_type"],
    registry=REGISTRY,
)

# Lazy queue/worker registry metrics
queue_initializations_total = Counter(
    "queue_initializations_total",
    "Queue and worker handles built on first use",
    ["kind"],
    registry=REGISTRY,
)

# Cron metrics
cron_job_runs_total = Counter(
    "cron_job_runs_total",
    "Cron job executions by outcome",
    ["job", "status"],
    registry=REGISTRY,
)

cron_job_duration_seconds = Histogram(
    "cron_job_duration_seconds",
    "Cron job handler duration in seconds",
    ["job"],
    buckets=JOB_DURATION_BUCKETS,
    registry=REGISTRY,
)

# Real-time delivery metrics
sse_sessions_active = Gauge(
    "sse_sessions_active",
    "Open push sessions in this process",
    registry=REGISTRY,
)

push_deliveries_total = Counter(
    "push_deliveries_total",
    "Payloads handed to push sessions",
    ["event_type"],
    registry=REGISTRY,
)

push_delivery_failures_total = Counter(
    "push_delivery_failures_total",
    "Pushes that raised and were skipped",
    ["event_type"],
    registry=REGISTRY,
)

event_bus_published_total = Counter(
    "event_bus_published_total",
    "Events published on the real-time event bus",
    ["event_type"],
    registry=REGISTRY,
)

event_bus_listener_errors_total = Counter(
    "event_bus_listener_errors_total",
    "Pub/Sub listener failures followed by a resubscribe on the event bus",
    registry=REGISTRY,
)

# Task queue metrics
task_runs_total = Counter(
    "task_runs_total",
    "Task executions by outcome",
    ["task_name", "status"],
    registry=REGISTRY,
)

task_duration_seconds = Histogram(
    "task_duration_seconds",
    "Task handler duration in seconds",
    ["task_name"],
    buckets=JOB_DURATION_BUCKETS,
    registry=REGISTRY,
)
