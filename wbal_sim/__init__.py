from .model import (
    SimulationParameters,
    SimulationState,
    TimestepRecord,
    load_params,
    validate_params,
    step,
    simulate,
    run_simulation,
)
from .transitions import CyclePhase, classify_phase, evaluate
from .noise import NoiseSource, make_rng
from .variability import std_dev_fraction
from .power import emit
from .wbal import advance
from .export import EXPORT_COLUMNS, records_to_frame, export_csv, interval_summary, summary_stats
