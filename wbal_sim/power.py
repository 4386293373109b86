from .transitions import CyclePhase

STEADY_SMOOTHING = 0.8
TRANSITION_SMOOTHING = 0.7
RAMP_DOWN_SMOOTHING = 0.85


def raw_power(target_power, std_fraction, noise_sample):
    """Target power perturbed by scaled noise, never negative."""
    return max(0.0, target_power * (1.0 + noise_sample * std_fraction))


def smoothing_factor(phase):
    """Weight given to the new sample in the exponential blend.

    Higher values follow the raw signal more closely.
    """
    if phase is CyclePhase.RAMP_DOWN:
        return RAMP_DOWN_SMOOTHING
    if phase.is_transition:
        return TRANSITION_SMOOTHING
    return STEADY_SMOOTHING


def emit(target_power, std_fraction, noise_sample, previous_power, phase):
    """
    Power reported for one tick.

    The noisy raw value is blended with the previous tick's emitted
    power: emitted = previous * (1 - k) + raw * k, with k from
    smoothing_factor().

    Args:
        target_power: shaped target for this tick (W)
        std_fraction: spread from the variability model
        noise_sample: one NoiseSource sample
        previous_power: emitted power of the previous tick (W)
        phase: CyclePhase of this tick

    Returns:
        emitted power in watts, clamped to >= 0
    """
    raw = raw_power(target_power, std_fraction, noise_sample)
    k = smoothing_factor(phase)
    return max(0.0, previous_power * (1.0 - k) + raw * k)
