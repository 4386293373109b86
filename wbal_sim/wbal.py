from .noise import uniform

DT = 1.0
RECOVERY_JITTER = 0.1


def deplete(w_bal, power, cp, dt=DT):
    """W' spent riding above critical power, floored at zero."""
    return max(0.0, w_bal - (power - cp) * dt)


def recover(w_bal, w_prime, tau, dt=DT, noise=1.0):
    """
    W' recharge below critical power.

    The rate is proportional to the missing balance, (w_prime - w_bal)
    / tau, so the balance approaches w_prime exponentially with time
    constant tau. One explicit Euler step; at dt=1s and tau of a few
    minutes the error against the exact exponential is well under 1%
    per step, but it is an approximation.

    Args:
        w_bal: current balance (J)
        w_prime: anaerobic capacity (J)
        tau: recovery time constant (s)
        dt: step length (s)
        noise: multiplier on the recovery rate

    Returns:
        new balance (J), capped at w_prime
    """
    rate = (w_prime - w_bal) / tau * noise
    return min(w_prime, w_bal + rate * dt)


def recovery_noise(rng):
    """Rate multiplier in [0.95, 1.05]."""
    return 1.0 + uniform(rng, -0.5, 0.5) * RECOVERY_JITTER


def advance(w_bal, power, cp, w_prime, tau, dt=DT, rng=None):
    """Update W'bal for one tick of emitted power.

    Above cp the balance depletes linearly with the excess. At or below
    cp it recovers; one uniform is drawn from rng for the rate jitter
    (no jitter when rng is None). The result is clamped to [0, w_prime].
    """
    if power > cp:
        new_bal = deplete(w_bal, power, cp, dt)
    else:
        noise = recovery_noise(rng) if rng is not None else 1.0
        new_bal = recover(w_bal, w_prime, tau, dt, noise)
    return min(w_prime, max(0.0, new_bal))
