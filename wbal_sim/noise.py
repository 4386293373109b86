import math
import numpy as np

# Uniforms are clamped to this floor before taking the log
MIN_UNIFORM = 1e-10
N_AVERAGED_DRAWS = 3


def make_rng(seed=None):
    """Return a generator owned by a single simulation run.

    Accepts None (fresh entropy), an integer seed, or an existing
    numpy Generator which is returned unchanged.
    """
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def box_muller(u1, u2):
    """Unit-normal draw from two uniform(0,1) numbers."""
    u1 = max(u1, MIN_UNIFORM)
    u2 = max(u2, MIN_UNIFORM)
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


class NoiseSource:
    """Smoothed normal noise: the mean of three Box-Muller draws.

    Averaging three unit normals leaves a standard deviation of
    1/sqrt(3) (~0.577), so a caller multiplying the sample by an
    intended spread gets roughly 58% of it. That is the default
    behaviour. With unit_variance=True the mean is rescaled by sqrt(3)
    and the sample is unit-variance again.

    Each sample consumes six uniforms from the generator.
    """

    def __init__(self, rng, unit_variance=False):
        self.rng = rng
        self.unit_variance = unit_variance

    @property
    def std(self):
        return 1.0 if self.unit_variance else 1.0 / math.sqrt(N_AVERAGED_DRAWS)

    def sample(self):
        total = 0.0
        for _ in range(N_AVERAGED_DRAWS):
            total += box_muller(self.rng.random(), self.rng.random())
        value = total / N_AVERAGED_DRAWS
        if self.unit_variance:
            value *= math.sqrt(N_AVERAGED_DRAWS)
        return value


def uniform(rng, low, high):
    """Single uniform draw in [low, high) as a python float."""
    return float(rng.uniform(low, high))
