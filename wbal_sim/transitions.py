"""Cycle phases and shaped transitions between work and recovery power."""
import enum
import math

from .noise import uniform

RAMP_UP_SECS = 8
RAMP_DOWN_SECS = 15
STABILIZE_SECS = 10

RAMP_UP_STEEPNESS = 6.0
RAMP_UP_JITTER = 0.075
RAMP_UP_MIN_FACTOR = 0.3
RAMP_UP_MAX_FACTOR = 1.0

RAMP_DOWN_EXP_RATE = 1.5
RAMP_DOWN_STEEPNESS = 4.0
RAMP_DOWN_MIDPOINT = 0.7

STABILIZE_MIN_FACTOR = 0.98
STABILIZE_MAX_FACTOR = 1.02


class CyclePhase(enum.Enum):
    REST = "Rest"
    RAMP_UP = "RampUp"
    STEADY_WORK = "SteadyWork"
    RAMP_DOWN = "RampDown"
    STABILIZING = "Stabilizing"
    STEADY_RECOVERY = "SteadyRecovery"

    @property
    def is_transition(self):
        return self in TRANSITION_PHASES

    @property
    def label(self):
        return SEGMENT_LABELS[self]


TRANSITION_PHASES = frozenset({
    CyclePhase.RAMP_UP,
    CyclePhase.RAMP_DOWN,
    CyclePhase.STABILIZING,
})

# Labels written to the Tipo_Segmento column
SEGMENT_LABELS = {
    CyclePhase.REST: "Reposo",
    CyclePhase.RAMP_UP: "Intervalo",
    CyclePhase.STEADY_WORK: "Intervalo",
    CyclePhase.RAMP_DOWN: "Recuperación",
    CyclePhase.STABILIZING: "Recuperación",
    CyclePhase.STEADY_RECOVERY: "Recuperación",
}


def classify_phase(time_in_cycle, interval_duration):
    """Phase of a tick from its position within a work/recovery cycle.

    Windows are closed on the right, so a tick sitting exactly on a
    boundary belongs to the earlier phase:

        [0, 8]                    RampUp
        (8, interval]             SteadyWork
        (interval, interval+15]   RampDown
        (interval+15, interval+25] Stabilizing
        beyond                    SteadyRecovery

    Args:
        time_in_cycle: seconds since the start of the current cycle
        interval_duration: length of the work segment in seconds

    Returns:
        CyclePhase
    """
    if time_in_cycle <= RAMP_UP_SECS:
        return CyclePhase.RAMP_UP
    if time_in_cycle <= interval_duration:
        return CyclePhase.STEADY_WORK
    if time_in_cycle <= interval_duration + RAMP_DOWN_SECS:
        return CyclePhase.RAMP_DOWN
    if time_in_cycle <= interval_duration + RAMP_DOWN_SECS + STABILIZE_SECS:
        return CyclePhase.STABILIZING
    return CyclePhase.STEADY_RECOVERY


def ramp_up_factor(time_in_cycle, jitter=0.0):
    """Sigmoid blend coefficient for the rise into a work segment.

    The jitter is added before clamping to [0.3, 1.0], so the first
    seconds of every ramp sit on the 0.3 floor.
    """
    progress = time_in_cycle / RAMP_UP_SECS
    sigmoid = 1.0 / (1.0 + math.exp(-RAMP_UP_STEEPNESS * (progress - 0.5)))
    return min(RAMP_UP_MAX_FACTOR, max(RAMP_UP_MIN_FACTOR, sigmoid + jitter))


def ramp_down_weight(time_in_cycle, interval_duration):
    """Fraction of work power still present during the fall to recovery."""
    progress = (time_in_cycle - interval_duration) / RAMP_DOWN_SECS
    smooth_decay = math.exp(-RAMP_DOWN_EXP_RATE * progress)
    sigmoid_decay = 1.0 / (1.0 + math.exp(RAMP_DOWN_STEEPNESS * (progress - RAMP_DOWN_MIDPOINT)))
    return sigmoid_decay * smooth_decay


def target_power(phase, time_in_cycle, params, rng=None):
    """Deterministic target power for one tick, plus the shaping jitter.

    RampUp and Stabilizing draw one uniform each from rng; the other
    phases draw nothing. Pass rng=None to get the jitter-free curve.

    Args:
        phase: CyclePhase of this tick
        time_in_cycle: seconds since the start of the current cycle
        params: SimulationParameters
        rng: numpy Generator owned by the run, or None

    Returns:
        target power in watts
    """
    work = params.interval_power
    recovery = params.recovery_power

    if phase is CyclePhase.RAMP_UP:
        jitter = uniform(rng, -RAMP_UP_JITTER, RAMP_UP_JITTER) if rng is not None else 0.0
        factor = ramp_up_factor(time_in_cycle, jitter)
        return recovery + (work - recovery) * factor
    if phase is CyclePhase.STEADY_WORK:
        return work
    if phase is CyclePhase.RAMP_DOWN:
        weight = ramp_down_weight(time_in_cycle, params.interval_duration)
        return work * weight + recovery * (1.0 - weight)
    if phase is CyclePhase.STABILIZING:
        micro = uniform(rng, STABILIZE_MIN_FACTOR, STABILIZE_MAX_FACTOR) if rng is not None else 1.0
        return recovery * micro
    return recovery


def evaluate(time_in_cycle, params, rng=None):
    """Phase and target power for a tick inside the cycle.

    Returns:
        (CyclePhase, target power in watts)
    """
    phase = classify_phase(time_in_cycle, params.interval_duration)
    return phase, target_power(phase, time_in_cycle, params, rng)
