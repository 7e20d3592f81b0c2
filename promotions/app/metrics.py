# promotions/app/metrics.py
from prometheus_client import Counter, Histogram

# === Core metrics (definitions ONLY here) ===
requests_submitted_total = Counter(
    "promotion_requests_submitted_total", "Promotion requests submitted", ["tier"]
)

workflow_transitions_total = Counter(
    "workflow_transitions_total", "Committed workflow transitions", ["action"]
)

workflow_rejections_total = Counter(
    "workflow_rejections_total", "Workflow operations refused", ["code"]
)

notifications_failed_total = Counter(
    "notifications_failed_total", "Notification dispatches that failed"
)

request_latency_seconds = Histogram(
    "request_latency_seconds", "Request latency"
)

ACTIONS = ["submit", "approve", "reject", "escalate", "cancel", "complete"]
ERROR_CODES = [
    "invalid_tier", "invalid_outcome", "invalid_schedule", "justification_too_short",
    "duplicate_active_request", "not_current_step", "step_already_decided",
    "invalid_state", "vacant_approver", "not_eligible_approver",
    "request_not_found", "step_not_found", "member_not_found",
]

def init_metrics_zero():
    # create label combos at 0 so Grafana never sees “no data”
    for t in ("tier_a", "tier_b", "training"):
        requests_submitted_total.labels(tier=t).inc(0)
    for a in ACTIONS:
        workflow_transitions_total.labels(action=a).inc(0)
    for c in ERROR_CODES:
        workflow_rejections_total.labels(code=c).inc(0)

    # unlabeled counters – make them visible
    notifications_failed_total.inc(0)
