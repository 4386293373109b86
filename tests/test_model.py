import dataclasses
import json
import logging
import math

import numpy as np
import pytest

from wbal_sim import (CyclePhase, NoiseSource, SimulationParameters, SimulationState,
                      load_params, simulate, step, validate_params)


@pytest.mark.parametrize("changes,match", [
    ({'cp': 0}, "cp"),
    ({'w_prime': -1}, "w_prime"),
    ({'tau': 0}, "tau"),
    ({'interval_power': -5}, "interval_power"),
    ({'recovery_power': -5}, "recovery_power"),
    ({'interval_duration': 8}, "interval_duration"),
    ({'recovery_duration': 24}, "recovery_duration"),
    ({'recovery_duration': 0}, "recovery_duration"),
    ({'repeats': 0}, "repeats"),
    ({'rest_duration': -1}, "rest_duration"),
    ({'total_duration': 0}, "total_duration"),
    ({'total_duration': 1201}, "total_duration"),
    ({'cp': float("nan")}, "cp"),
    ({'w_prime': float("nan")}, "w_prime"),
    ({'tau': float("inf")}, "tau"),
    ({'interval_power': float("inf")}, "interval_power"),
    ({'recovery_power': float("nan")}, "recovery_power"),
    ({'interval_duration': 180.5}, "interval_duration"),
    ({'recovery_duration': 120.0}, "recovery_duration"),
    ({'repeats': 2.0}, "repeats"),
])
def test_invalid_params_rejected(scenario_params, changes, match):
    params = dataclasses.replace(scenario_params, **changes)
    with pytest.raises(ValueError, match=match):
        validate_params(params)
    with pytest.raises(ValueError, match=match):
        simulate(params, seed=1)


def test_minimal_valid_windows(scenario_params):
    validate_params(dataclasses.replace(scenario_params, interval_duration=9,
                                        recovery_duration=25))


def test_from_dict_accepts_camel_case():
    params = SimulationParameters.from_dict({
        'cp': 280, 'wPrime': 18000, 'tau': 400,
        'intervalPower': 360, 'recoveryPower': 140,
        'intervalDuration': 240, 'recoveryDuration': 120, 'repeats': 5,
        'rest_duration': 30,
    })
    assert params.w_prime == 18000
    assert params.interval_duration == 240
    assert params.rest_duration == 30
    assert params.duration == 30 + 5 * 360


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="ftp"):
        SimulationParameters.from_dict({'cp': 250, 'ftp': 260})


def test_load_params(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({'cp': 240, 'wPrime': 22000, 'repeats': 2}))
    params = load_params(path)
    assert params.cp == 240
    assert params.w_prime == 22000
    assert params.repeats == 2


def test_load_params_requires_object(tmp_path):
    path = tmp_path / "params.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_params(path)


def test_one_record_per_second(scenario_params):
    records = list(simulate(scenario_params, seed=3))
    assert len(records) == 1200
    assert [r.time for r in records] == list(range(1200))


def test_deterministic_under_seed(scenario_params):
    a = list(simulate(scenario_params, seed=2024))
    b = list(simulate(scenario_params, seed=2024))
    assert a == b


def test_seeds_change_output(scenario_params):
    a = [r.power for r in simulate(scenario_params, seed=1)]
    b = [r.power for r in simulate(scenario_params, seed=2)]
    assert a != b


def test_injected_generator_matches_seed(scenario_params):
    a = list(simulate(scenario_params, seed=77))
    b = list(simulate(scenario_params, seed=np.random.default_rng(77)))
    assert a == b


@pytest.mark.parametrize("interval_power", [350.0, 600.0, 1200.0])
def test_bounded(scenario_params, interval_power):
    params = dataclasses.replace(scenario_params, interval_power=interval_power)
    for r in simulate(params, seed=5):
        assert 0.0 <= r.w_bal <= params.w_prime
        assert r.power >= 0.0


def test_hard_intervals_empty_the_tank(scenario_params):
    params = dataclasses.replace(scenario_params, interval_power=600.0)
    assert min(r.w_bal for r in simulate(params, seed=5)) == 0.0


def test_scenario_start(scenario_params):
    records = list(simulate(scenario_params, seed=42))
    assert records[0].phase is CyclePhase.RAMP_UP
    # ramp-up factor is held at its 0.3 floor on the first tick
    assert records[0].base_power == pytest.approx(210.0)
    assert records[8].phase is CyclePhase.RAMP_UP
    assert 320.0 < records[8].base_power <= 350.0
    assert records[9].base_power == 350.0
    assert records[1].std_pct == pytest.approx(6.5)  # 5% base, x1.3 ramp-up
    assert records[0].w_bal <= scenario_params.w_prime


def test_scenario_fatigue_at_five_minutes(scenario_params):
    records = list(simulate(scenario_params, seed=42))
    # second 300 opens the second repeat: 6% base, x1.3 ramp-up
    assert records[300].phase is CyclePhase.RAMP_UP
    assert records[300].std_fraction == pytest.approx(0.06 * 1.3)
    assert records[250].std_fraction == pytest.approx(0.06)


def test_phases_follow_cycle(scenario_params):
    records = list(simulate(scenario_params, seed=42))
    assert records[180].phase is CyclePhase.STEADY_WORK
    assert records[181].phase is CyclePhase.RAMP_DOWN
    assert records[205].phase is CyclePhase.STABILIZING
    assert records[206].phase is CyclePhase.STEADY_RECOVERY
    assert records[206].base_power == 150.0


def test_rest_before_protocol(scenario_params):
    params = dataclasses.replace(scenario_params, rest_duration=30, repeats=1)
    records = list(simulate(params, seed=8))
    assert len(records) == 330
    assert all(r.phase is CyclePhase.REST for r in records[:30])
    assert records[0].segment == "Reposo"
    assert records[0].base_power == 150.0
    assert records[30].phase is CyclePhase.RAMP_UP
    assert records[30 + 181].phase is CyclePhase.RAMP_DOWN


def test_total_duration_truncates(scenario_params):
    params = dataclasses.replace(scenario_params, total_duration=450)
    records = list(simulate(params, seed=8))
    assert len(records) == 450
    assert records[-1].phase is CyclePhase.STEADY_WORK


def test_unit_variance_noise_changes_output(scenario_params):
    a = [r.power for r in simulate(scenario_params, seed=6)]
    b = [r.power for r in simulate(scenario_params, seed=6, unit_variance_noise=True)]
    assert a != b


def test_step_is_a_function_of_its_inputs(scenario_params):
    state = SimulationState(previous_power=340.0, w_bal=15000.0, elapsed=100)
    next_a, rec_a = step(state, scenario_params, NoiseSource(np.random.default_rng(9)))
    next_b, rec_b = step(state, scenario_params, NoiseSource(np.random.default_rng(9)))
    assert (next_a, rec_a) == (next_b, rec_b)
    assert state == SimulationState(previous_power=340.0, w_bal=15000.0, elapsed=100)
    assert next_a.elapsed == 101
    assert next_a.previous_power == rec_a.power
    assert next_a.w_bal == rec_a.w_bal
    assert rec_a.time == 100
    assert rec_a.phase is CyclePhase.STEADY_WORK


def test_step_depletes_above_cp(scenario_params):
    state = SimulationState(previous_power=350.0, w_bal=15000.0, elapsed=100)
    _, record = step(state, scenario_params, NoiseSource(np.random.default_rng(9)))
    assert record.power > scenario_params.cp
    assert record.w_bal == pytest.approx(15000.0 - (record.power - scenario_params.cp))


def test_initial_state(scenario_params):
    state = SimulationState.initial(scenario_params)
    assert state.previous_power == 0.0
    assert state.w_bal == scenario_params.w_prime
    assert state.elapsed == 0


def test_std_noise_is_under_configured_spread(scenario_params):
    # steady work at 350W: raw spread is 0.05 / sqrt(3), blending narrows it further
    params = dataclasses.replace(scenario_params, interval_duration=230, repeats=1,
                                 total_duration=230)
    steady = [r.power for r in simulate(params, seed=10)
              if r.phase is CyclePhase.STEADY_WORK and r.time > 20 and r.time < 230]
    rel_std = np.std(steady) / 350.0
    assert rel_std < 0.05 / math.sqrt(3)
    assert rel_std > 0.005


def test_whole_float_durations_from_json_run_to_completion(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({
        'intervalDuration': 180.0, 'recoveryDuration': 120.0,
        'repeats': 1.0, 'restDuration': 10.0, 'totalDuration': 250.0,
    }))
    params = load_params(path)
    assert params.interval_duration == 180
    assert isinstance(params.interval_duration, int)
    assert isinstance(params.total_duration, int)
    validate_params(params)
    assert len(list(simulate(params, seed=1))) == 250


@pytest.mark.parametrize("values,match", [
    ({'intervalDuration': 180.5}, "interval_duration"),
    ({'recoveryDuration': float("nan")}, "recovery_duration"),
    ({'repeats': "4"}, "repeats"),
    ({'rest_duration': True}, "rest_duration"),
])
def test_from_dict_rejects_fractional_counts(values, match):
    with pytest.raises(ValueError, match=match):
        SimulationParameters.from_dict(values)


def test_nan_cp_does_not_reach_the_records(scenario_params):
    params = dataclasses.replace(scenario_params, cp=float("nan"))
    with pytest.raises(ValueError, match="finite"):
        simulate(params, seed=1)


def test_run_is_logged(scenario_params, caplog):
    params = dataclasses.replace(scenario_params, repeats=1)
    with caplog.at_level(logging.INFO, logger="wbal_sim.model"):
        list(simulate(params, seed=12))
    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
    assert any(m.startswith("Starting simulation: 300 s, seed=12") for m in messages)
    assert any(m.startswith("Simulation finished: final W'bal") for m in messages)


def test_rejected_params_are_logged(scenario_params, caplog):
    params = dataclasses.replace(scenario_params, tau=0)
    with caplog.at_level(logging.WARNING, logger="wbal_sim.model"):
        with pytest.raises(ValueError):
            simulate(params, seed=1)
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "Rejected simulation parameters" in warnings[0].getMessage()
    assert "tau must be positive" in warnings[0].getMessage()
