import math

from .transitions import CyclePhase

BASE_STD_FRACTION = 0.05
FATIGUE_STEP_MINUTES = 4
FATIGUE_STEP_FRACTION = 0.01

PHASE_STD_SCALE = {
    CyclePhase.RAMP_UP: 1.3,
    CyclePhase.RAMP_DOWN: 0.8,
    CyclePhase.STABILIZING: 0.6,
}


def base_std_fraction(elapsed_secs):
    """Spread before phase scaling: 5% plus 1% per 4 full elapsed minutes."""
    steps = math.floor(elapsed_secs / 60.0 / FATIGUE_STEP_MINUTES)
    return BASE_STD_FRACTION + steps * FATIGUE_STEP_FRACTION


def std_dev_fraction(elapsed_secs, phase):
    """
    Standard deviation of power noise as a fraction of target power.

    Variability grows with fatigue (a step every four minutes, never
    capped) and is scaled during transitions: riders overshoot when
    ramping up and settle when backing off.

    Args:
        elapsed_secs: seconds since the start of the run
        phase: CyclePhase of this tick

    Returns:
        fraction, e.g. 0.065 for +/-6.5%
    """
    return base_std_fraction(elapsed_secs) * PHASE_STD_SCALE.get(phase, 1.0)
