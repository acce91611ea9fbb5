"""
Numerical constants for circsim.

This module centralizes magic numbers used throughout the simulation.

NOTE: Only add constants here that are ACTIVELY IMPORTED elsewhere.
"""

# Timing (all simulation times are in milliseconds).

# Fixed integration step (ms). Never adapted.
PHYSICS_DT_MS = 2.0

# Maximum physics steps executed per rendered frame (backpressure after stalls).
MAX_STEPS_PER_FRAME = 20

# Rolling history kept per instance (ms of simulated time).
BUFFER_RETENTION_MS = 21000.0

# Milliseconds per minute; cycle length is MS_PER_MINUTE / HR.
MS_PER_MINUTE = 60000.0

# Volume-matching control loop (applied at end-diastole only).

# Largest volume (mL) injected or withdrawn per beat.
MAX_VOLUME_DELTA = 500.0

# Discrepancies at or below this magnitude (mL) are ignored.
VOLUME_DEADBAND = 1.0

# Valves.

# Regurgitation resistance at or above this value models a competent valve.
VALVE_CLOSED_RESISTANCE = 100000.0

# Metrics.

# Minimum buffered records before per-beat metrics are reported.
METRICS_MIN_BUFFER = 100

# Minimum records inside the last cycle window.
METRICS_MIN_WINDOW = 10

# Canonical seed for every new instance.

# Order: Qvs, Qas, Qap, Qvp, Qlv, Qla, Qrv, Qra, Qas_prox, Qda, Qap_prox, Qtube
INITIAL_STATE_VECTOR = (
    749.9842973712131,
    149.3527787113375,
    405.08061599015554,
    135.97317102061024,
    144.32186565319813,
    75.34345155268299,
    117.70495107318685,
    73.76400781737635,
    68.42882775454605,
    42.75963410693713,
    20.28639894876003,
    10.0,
)

INITIAL_TIME = 954.931700000081

STATE_LABELS = (
    "qvs", "qas", "qap", "qvp",
    "qlv", "qla", "qrv", "qra",
    "qas_prox", "qda", "qap_prox", "qtube",
)

STATE_SIZE = len(STATE_LABELS)

# Indices used outside the RHS.
IDX_QVS = 0
IDX_QLV = 4
