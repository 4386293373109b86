#!/usr/bin/env python3
"""Example usage of the W'bal interval simulator."""

import logging
import sys

from wbal_sim import SimulationParameters, export_csv, load_params, run_simulation


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("W'BAL INTERVAL SIMULATION")
    print("=" * 60)

    # Optional: example.py OUTPUT.csv [PARAMS.json]
    out_path = argv[0] if argv else "wbal_simulation.csv"
    if len(argv) > 1:
        params = load_params(argv[1])
    else:
        params = SimulationParameters(
            cp=250, w_prime=20000, tau=300,
            interval_power=350, recovery_power=150,
            interval_duration=180, recovery_duration=120,
            repeats=4,
        )

    print(f"\nCP: {params.cp} W   W': {params.w_prime / 1000:.1f} kJ   tau: {params.tau} s")
    print(f"{params.repeats} x {params.interval_duration}s @ {params.interval_power} W "
          f"/ {params.recovery_duration}s @ {params.recovery_power} W")

    result = run_simulation(params, seed=42)

    print("\nFirst seconds:")
    print(result["table"].head(12).to_string(index=False))

    print("\nPer-interval summary:")
    print(result["interval_summary"].to_string(index=False))

    print("\nRun summary:")
    for key, val in result["summary_stats"].items():
        print(f"  {key}: {val:.3f}" if isinstance(val, float) else f"  {key}: {val}")

    export_csv(result["table"], out_path)
    print(f"\nSaved {len(result['table'])} rows to {out_path}")
    return result


if __name__ == "__main__":
    main()
