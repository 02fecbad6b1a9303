"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram, Summary

log = logging.getLogger(__name__)


REQUEST_COUNTER = Counter(
	"squadron_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"squadron_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SQUADS_CREATED = Counter(
	"squadron_squads_created_total",
	"Squads created",
)

SQUADS_DISMANTLED = Counter(
	"squadron_squads_dismantled_total",
	"Squads dismantled by their creator or captain",
)

SQUAD_MEMBERSHIP_CHANGES = Counter(
	"squadron_squad_membership_changes_total",
	"Membership transitions by source",
	["change"],
)

SQUAD_INVITE_TRANSITIONS = Counter(
	"squadron_squad_invite_transitions_total",
	"Invite state transitions",
	["status"],
)

SQUAD_APPLICATION_TRANSITIONS = Counter(
	"squadron_squad_application_transitions_total",
	"Application state transitions",
	["status"],
)

SQUAD_POSITION_EVENTS = Counter(
	"squadron_squad_position_events_total",
	"Open position lifecycle events",
	["event"],
)

SQUAD_OPERATION_REJECTS = Counter(
	"squadron_squad_operation_rejects_total",
	"Workflow operations rejected by a domain rule",
	["kind"],
)

SQUAD_NOTIFICATIONS = Counter(
	"squadron_squad_notifications_total",
	"Notification emissions by outcome",
	["type", "result"],
)

REPUTATION_LOOKUPS = Counter(
	"squadron_reputation_lookups_total",
	"External reputation/vouch lookups",
	["kind", "result"],
)

REPUTATION_LATENCY = Histogram(
	"squadron_reputation_lookup_duration_seconds",
	"External reputation lookup latency",
	["kind"],
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REDIS_UP = Gauge("squadron_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("squadron_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("squadron_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("squadron_postgres_latency_seconds", "Postgres ping latency (seconds)")

BACKGROUND_RUNS = Counter(
	"squadron_jobs_runs_total",
	"Background job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"squadron_jobs_duration_seconds",
	"Background job duration",
	["name"],
	buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 15.0, 30.0, 60.0),
)

EXPIRED_ENTITIES = Counter(
	"squadron_expired_entities_total",
	"Rows flipped by the expiry sweep",
	["entity"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_squad_created() -> None:
	SQUADS_CREATED.inc()


def inc_squad_dismantled() -> None:
	SQUADS_DISMANTLED.inc()


def inc_membership_change(change: str) -> None:
	SQUAD_MEMBERSHIP_CHANGES.labels(change=change).inc()


def inc_invite_transition(status: str) -> None:
	SQUAD_INVITE_TRANSITIONS.labels(status=status.lower()).inc()


def inc_application_transition(status: str, count: int = 1) -> None:
	if count <= 0:
		return
	SQUAD_APPLICATION_TRANSITIONS.labels(status=status.lower()).inc(count)


def inc_position_event(event: str, count: int = 1) -> None:
	if count <= 0:
		return
	SQUAD_POSITION_EVENTS.labels(event=event).inc(count)


def inc_operation_reject(kind: str) -> None:
	SQUAD_OPERATION_REJECTS.labels(kind=kind).inc()


def inc_notification(type_: str, result: str) -> None:
	SQUAD_NOTIFICATIONS.labels(type=type_.lower(), result=result).inc()


def record_reputation_lookup(kind: str, *, result: str, latency_seconds: float | None = None) -> None:
	REPUTATION_LOOKUPS.labels(kind=kind, result=result).inc()
	if latency_seconds is not None:
		REPUTATION_LATENCY.labels(kind=kind).observe(latency_seconds)


def inc_expired(entity: str, count: int) -> None:
	if count <= 0:
		return
	EXPIRED_ENTITIES.labels(entity=entity).inc(count)


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)


def record_job_run(name: str, *, result: str, duration_seconds: float | None = None) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()
	if duration_seconds is not None:
		BACKGROUND_DURATION.labels(name=name).observe(duration_seconds)
