import numpy as np
import pandas as pd

from .transitions import CyclePhase
from .wbal import DT

EXPORT_COLUMNS = [
    'Tiempo(s)',
    'Potencia_Base(W)',
    'Potencia_Real(W)',
    'CP(W)',
    'WBAL(kJ)',
    'Tipo_Segmento',
    'Desvio_STD(%)',
]

WORK_PHASES = (CyclePhase.RAMP_UP, CyclePhase.STEADY_WORK)


def records_to_frame(records):
    """Tabulate TimestepRecords in export column order and precision.

    Args:
        records: iterable of TimestepRecord

    Returns:
        DataFrame with the EXPORT_COLUMNS, one row per second
    """
    rows = [
        (r.time, r.base_power, r.power, r.cp, r.wbal_kj, r.segment, r.std_pct)
        for r in records
    ]
    table = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    table['Tiempo(s)'] = table['Tiempo(s)'].astype(int)
    return table.round({
        'Potencia_Base(W)': 1,
        'Potencia_Real(W)': 1,
        'WBAL(kJ)': 3,
        'Desvio_STD(%)': 2,
    })


def export_csv(records, destination=None):
    """Write records (or a table from records_to_frame) as CSV.

    Args:
        records: iterable of TimestepRecord, or an export DataFrame
        destination: path or writable text buffer; None returns the CSV text

    Returns:
        CSV text when destination is None, otherwise None
    """
    if isinstance(records, pd.DataFrame):
        table = records
    else:
        table = records_to_frame(records)
    if list(table.columns) != EXPORT_COLUMNS:
        raise ValueError(f"Expected columns {EXPORT_COLUMNS}, got {list(table.columns)}")
    return table.to_csv(destination, index=False, encoding='utf-8')


def _tick_frame(records):
    """time/power/w_bal/is_work columns from records or an export table.

    An export table carries power and W'bal at export precision, so
    summaries built from one are rounded accordingly.
    """
    if isinstance(records, pd.DataFrame):
        if list(records.columns) != EXPORT_COLUMNS:
            raise ValueError(f"Expected columns {EXPORT_COLUMNS}, got {list(records.columns)}")
        work_labels = {phase.label for phase in WORK_PHASES}
        return pd.DataFrame({
            'time': records['Tiempo(s)'].astype(int).to_numpy(),
            'power': records['Potencia_Real(W)'].astype(float).to_numpy(),
            'w_bal': records['WBAL(kJ)'].astype(float).to_numpy() * 1000.0,
            'is_work': records['Tipo_Segmento'].isin(work_labels).to_numpy(),
        })
    return pd.DataFrame({
        'time': [r.time for r in records],
        'power': [float(r.power) for r in records],
        'w_bal': [float(r.w_bal) for r in records],
        'is_work': [r.phase in WORK_PHASES for r in records],
    })


def interval_summary(records, params):
    """Per-repeat power and W'bal summary.

    Repeats cut short by total_duration are included with whatever
    ticks they have; a repeat truncated inside its work segment has NaN
    recovery figures.

    Args:
        records: list of TimestepRecord from one run, or its export table
        params: SimulationParameters of that run

    Returns:
        DataFrame with one row per repeat
    """
    frame = _tick_frame(records)
    frame = frame[frame.time >= params.rest_duration].copy()
    frame['repeat'] = (frame.time - params.rest_duration) // params.cycle_length + 1
    rows = []
    for repeat, ticks in frame.groupby('repeat'):
        work = ticks[ticks.is_work]
        recovery = ticks[~ticks.is_work]
        rows.append({
            'repeat': int(repeat),
            'start_s': int(ticks.time.iloc[0]),
            'end_s': int(ticks.time.iloc[-1]),
            'work_avg_power_w': float(work.power.mean()) if len(work) else np.nan,
            'recovery_avg_power_w': float(recovery.power.mean()) if len(recovery) else np.nan,
            'wbal_end_work_kj': float(work.w_bal.iloc[-1]) / 1000.0 if len(work) else np.nan,
            'wbal_end_cycle_kj': float(ticks.w_bal.iloc[-1]) / 1000.0,
        })
    return pd.DataFrame(rows, columns=[
        'repeat', 'start_s', 'end_s', 'work_avg_power_w', 'recovery_avg_power_w',
        'wbal_end_work_kj', 'wbal_end_cycle_kj',
    ])


def summary_stats(records, params):
    """Aggregate figures for a whole run, from records or its export table."""
    frame = _tick_frame(records)
    power = frame.power.to_numpy()
    w_bal = frame.w_bal.to_numpy()
    excess = np.clip(power - params.cp, 0.0, None)
    i_min = int(np.argmin(w_bal))
    return {
        'duration_s': len(frame),
        'avg_power_w': float(power.mean()),
        'max_power_w': float(power.max()),
        'min_wbal_kj': float(w_bal[i_min]) / 1000.0,
        'min_wbal_time_s': int(frame.time.iloc[i_min]),
        'depleted_s': int(np.count_nonzero(w_bal == 0.0)),
        'time_above_cp_s': int(np.count_nonzero(excess > 0.0)),
        'work_above_cp_kj': float(excess.sum() * DT) / 1000.0,
    }
