import pytest

from wbal_sim import SimulationParameters


@pytest.fixture
def scenario_params():
    """3min @ 350W / 2min @ 150W with CP 250W, W' 20kJ, tau 300s."""
    return SimulationParameters(
        cp=250.0, w_prime=20000.0, tau=300.0,
        interval_power=350.0, recovery_power=150.0,
        interval_duration=180, recovery_duration=120,
        repeats=4,
    )
