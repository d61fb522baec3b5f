"""
Prometheus collectors shared by every machine in the process.

Collectors are labelled with the machine name so several machines with the
same name can coexist without registering duplicate time series.
"""

from prometheus_client import Counter, Histogram, Info

TRANSITIONS = Counter(
    'fsm_transitions_total',
    'Total state transitions',
    labelnames=['fsm', 'from_state', 'to_state', 'event']
)

TRANSITION_LATENCY = Histogram(
    'fsm_transition_latency_seconds',
    'Latency of state transitions',
    labelnames=['fsm'],
    buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1)
)

DISPATCH_ERRORS = Counter(
    'fsm_dispatch_errors_total',
    'Rejected or failed event dispatches',
    labelnames=['fsm', 'error']
)

STATE_INFO = Info(
    'fsm_state',
    'Current state of the machine',
    labelnames=['fsm']
)


def record_transition(fsm_name: str,
                      from_state: str,
                      to_state: str,
                      event: str,
                      latency: float) -> None:
    """Record one successful dispatch"""
    TRANSITIONS.labels(
        fsm=fsm_name,
        from_state=from_state,
        to_state=to_state,
        event=event
    ).inc()

    TRANSITION_LATENCY.labels(fsm=fsm_name).observe(latency)

    STATE_INFO.labels(fsm=fsm_name).info({
        'state': to_state,
        'previous_state': from_state,
        'trigger': event,
    })


def record_error(fsm_name: str, error: Exception) -> None:
    DISPATCH_ERRORS.labels(fsm=fsm_name, error=type(error).__name__).inc()
