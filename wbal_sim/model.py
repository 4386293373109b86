# Tick-by-tick interval simulation: shaped power, noise, smoothing and W'bal
import dataclasses
import json
import logging
import math
import numbers
from typing import Optional

import numpy as np

from .export import records_to_frame, interval_summary, summary_stats
from .noise import NoiseSource, make_rng
from .power import emit
from .transitions import (CyclePhase, RAMP_UP_SECS, RAMP_DOWN_SECS,
                          STABILIZE_SECS, evaluate)
from .variability import std_dev_fraction
from .wbal import DT, advance

logger = logging.getLogger(__name__)

MIN_RECOVERY_TAIL_SECS = RAMP_DOWN_SECS + STABILIZE_SECS

FLOAT_FIELDS = ('cp', 'w_prime', 'tau', 'interval_power', 'recovery_power')
INT_FIELDS = ('interval_duration', 'recovery_duration', 'repeats',
              'rest_duration', 'total_duration')

# camelCase keys accepted by SimulationParameters.from_dict
PARAM_ALIASES = {
    'wPrime': 'w_prime',
    'intervalPower': 'interval_power',
    'recoveryPower': 'recovery_power',
    'intervalDuration': 'interval_duration',
    'recoveryDuration': 'recovery_duration',
    'restDuration': 'rest_duration',
    'totalDuration': 'total_duration',
}


@dataclasses.dataclass(frozen=True)
class SimulationParameters:
    """Protocol and rider parameters for one run.

    Powers in watts, durations in seconds, w_prime in joules.
    rest_duration adds idle seconds before the first work segment.
    total_duration truncates the protocol; None runs every repeat.
    """
    cp: float = 250.0
    w_prime: float = 20000.0
    tau: float = 300.0
    interval_power: float = 350.0
    recovery_power: float = 150.0
    interval_duration: int = 180
    recovery_duration: int = 120
    repeats: int = 4
    rest_duration: int = 0
    total_duration: Optional[int] = None

    @property
    def cycle_length(self):
        return self.interval_duration + self.recovery_duration

    @property
    def protocol_duration(self):
        return self.rest_duration + self.repeats * self.cycle_length

    @property
    def duration(self):
        """Number of 1-second ticks the run produces."""
        if self.total_duration is None:
            return self.protocol_duration
        return self.total_duration

    @classmethod
    def from_dict(cls, values):
        """Build parameters from a mapping with snake_case or camelCase keys.

        Raises:
            ValueError: on unknown keys or fractional durations/counts
        """
        fields = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, val in values.items():
            name = PARAM_ALIASES.get(key, key)
            if name not in fields:
                raise ValueError(f"Unknown simulation parameter: {key!r}")
            if name in INT_FIELDS and val is not None:
                val = _as_int(name, val)
            kwargs[name] = val
        return cls(**kwargs)


def _as_int(name, val):
    """Whole seconds/counts from config; 180.0 becomes 180, 180.5 is rejected."""
    if isinstance(val, bool) or not isinstance(val, numbers.Real):
        raise ValueError(f"{name} must be a whole number, got {val!r}")
    if isinstance(val, numbers.Integral):
        return int(val)
    if not math.isfinite(val) or not float(val).is_integer():
        raise ValueError(f"{name} must be a whole number, got {val!r}")
    return int(val)


def load_params(path):
    """Read SimulationParameters from a JSON object on disk."""
    with open(path, encoding='utf-8') as fh:
        values = json.load(fh)
    if not isinstance(values, dict):
        raise ValueError(f"Expected a JSON object in {path}, got {type(values).__name__}")
    return SimulationParameters.from_dict(values)


def validate_params(params):
    """Validate simulation parameters before any tick runs.

    The work segment must be longer than the ramp-up window and the
    recovery segment must hold both the ramp-down and stabilization
    windows; a zero-length recovery between work segments is rejected
    rather than ramping from a power the rider never held.

    Raises:
        ValueError: If any parameter is invalid
    """
    for name in FLOAT_FIELDS:
        val = getattr(params, name)
        if isinstance(val, bool) or not isinstance(val, numbers.Real) or not math.isfinite(val):
            raise ValueError(f"{name} must be a finite number, got {val!r}")
    for name in INT_FIELDS:
        val = getattr(params, name)
        if val is None and name == 'total_duration':
            continue
        if isinstance(val, bool) or not isinstance(val, numbers.Integral):
            raise ValueError(f"{name} must be an integer, got {val!r}")
    if params.cp <= 0:
        raise ValueError(f"cp must be positive, got {params.cp}")
    if params.w_prime <= 0:
        raise ValueError(f"w_prime must be positive, got {params.w_prime}")
    if params.tau <= 0:
        raise ValueError(f"tau must be positive, got {params.tau}")
    if params.interval_power < 0:
        raise ValueError(f"interval_power must be non-negative, got {params.interval_power}")
    if params.recovery_power < 0:
        raise ValueError(f"recovery_power must be non-negative, got {params.recovery_power}")
    if params.interval_duration <= RAMP_UP_SECS:
        raise ValueError(
            f"interval_duration must exceed the {RAMP_UP_SECS}s ramp-up window, "
            f"got {params.interval_duration}"
        )
    if params.recovery_duration < MIN_RECOVERY_TAIL_SECS:
        raise ValueError(
            f"recovery_duration must be at least {MIN_RECOVERY_TAIL_SECS}s "
            f"(ramp-down + stabilization), got {params.recovery_duration}"
        )
    if params.repeats < 1:
        raise ValueError(f"repeats must be >= 1, got {params.repeats}")
    if params.rest_duration < 0:
        raise ValueError(f"rest_duration must be non-negative, got {params.rest_duration}")
    if params.total_duration is not None:
        if not 1 <= params.total_duration <= params.protocol_duration:
            raise ValueError(
                f"total_duration must be between 1 and {params.protocol_duration}, "
                f"got {params.total_duration}"
            )


@dataclasses.dataclass(frozen=True)
class SimulationState:
    """Values carried from one tick to the next."""
    previous_power: float
    w_bal: float
    elapsed: int = 0

    @classmethod
    def initial(cls, params):
        return cls(previous_power=0.0, w_bal=float(params.w_prime), elapsed=0)


@dataclasses.dataclass(frozen=True)
class TimestepRecord:
    time: int
    base_power: float
    power: float
    cp: float
    w_bal: float
    phase: CyclePhase
    std_fraction: float

    @property
    def wbal_kj(self):
        return self.w_bal / 1000.0

    @property
    def segment(self):
        return self.phase.label

    @property
    def std_pct(self):
        return self.std_fraction * 100.0


def time_in_cycle(elapsed, params):
    """Seconds into the current work/recovery cycle, or None while resting."""
    if elapsed < params.rest_duration:
        return None
    return (elapsed - params.rest_duration) % params.cycle_length


def step(state, params, noise):
    """
    Advance the simulation by one tick.

    Random draws come from noise.rng in a fixed order: the shaping
    jitter (RampUp and Stabilizing only), one NoiseSource sample, then
    the recovery jitter (only when power is at or below cp).

    Args:
        state: SimulationState before this tick
        params: validated SimulationParameters
        noise: NoiseSource owned by the run

    Returns:
        (next SimulationState, TimestepRecord for this tick)
    """
    t_cycle = time_in_cycle(state.elapsed, params)
    if t_cycle is None:
        phase, base_power = CyclePhase.REST, float(params.recovery_power)
    else:
        phase, base_power = evaluate(t_cycle, params, noise.rng)

    std_fraction = std_dev_fraction(state.elapsed, phase)
    power = emit(base_power, std_fraction, noise.sample(), state.previous_power, phase)
    w_bal = advance(state.w_bal, power, params.cp, params.w_prime, params.tau,
                    dt=DT, rng=noise.rng)

    record = TimestepRecord(
        time=state.elapsed,
        base_power=base_power,
        power=power,
        cp=params.cp,
        w_bal=w_bal,
        phase=phase,
        std_fraction=std_fraction,
    )
    next_state = SimulationState(previous_power=power, w_bal=w_bal,
                                 elapsed=state.elapsed + 1)
    return next_state, record


def simulate(params, seed=None, unit_variance_noise=False):
    """Validate parameters and return an iterator over TimestepRecords.

    Validation happens here, before the first tick is produced.

    Args:
        params: SimulationParameters
        seed: integer seed, numpy Generator, or None for fresh entropy
        unit_variance_noise: rescale the averaged noise to unit variance

    Returns:
        iterator yielding one TimestepRecord per second
    """
    try:
        validate_params(params)
    except ValueError as exc:
        logger.warning("Rejected simulation parameters: %s", exc)
        raise
    noise = NoiseSource(make_rng(seed), unit_variance=unit_variance_noise)
    return _run_ticks(params, noise, seed)


def _run_ticks(params, noise, seed):
    logger.info("Starting simulation: %d s, seed=%s", params.duration, seed)
    state = SimulationState.initial(params)
    min_bal = state.w_bal
    for _ in range(params.duration):
        state, record = step(state, params, noise)
        min_bal = min(min_bal, record.w_bal)
        yield record
    logger.info("Simulation finished: final W'bal %.3f kJ, minimum %.3f kJ",
                state.w_bal / 1000.0, min_bal / 1000.0)


def run_simulation(params=None, seed=None, unit_variance_noise=False):
    """Run a full simulation and collect tables and summaries.

    Args:
        params: SimulationParameters (defaults to the standard 4x 3min protocol)
        seed: integer seed, numpy Generator, or None
        unit_variance_noise: rescale the averaged noise to unit variance

    Returns:
        dict with 'records', 'table' (DataFrame in export column order),
        'interval_summary' (DataFrame), 'summary_stats' (dict) and
        'parameters'
    """
    if params is None:
        params = SimulationParameters()
    records = list(simulate(params, seed=seed, unit_variance_noise=unit_variance_noise))
    table = records_to_frame(records)
    return {
        "records": records,
        "table": table,
        "interval_summary": interval_summary(records, params),
        "summary_stats": summary_stats(records, params),
        "parameters": {
            **dataclasses.asdict(params),
            "duration": params.duration,
            "cycle_length": params.cycle_length,
            "seed": None if isinstance(seed, np.random.Generator) else seed,
            "unit_variance_noise": unit_variance_noise,
        },
    }
