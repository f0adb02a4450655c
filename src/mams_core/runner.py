"""
mams-core CLI Runner

Minimal CLI for evaluating the operating characteristics of a design.

Usage:
    python -m mams_core.runner --rates 0.2,0.2,0.35
    python -m mams_core.runner --rates 0.2,0.2,0.2 --gamma 0.0015 --reevaluate-gammas 0.01
    python -m mams_core.runner --rates 0.5,0.5,0.7 --no-control --delta 0 --drop-control --burn 4 --batch 4 --cap 1000
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from mams_core.domain.constants import ALTERNATIVE_SCENARIO, DEFAULT_GAMMA
from mams_core.harness_config import ConfigurationError, load_config, validate_gamma
from mams_core.operating_characteristics import (
    OperatingCharacteristics,
    family_wise_error,
    power,
    summarize_run,
)
from mams_core.outcome_generator import generate_outcomes
from mams_core.use_cases.simulation import SimulationRun, reevaluate_trials, simulate_trials
from mams_core.use_cases.stage_controller import StageController


def _float_list(text: str) -> list[float]:
    try:
        return [float(x.strip()) for x in text.split(",") if x.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{text}' is not a comma-separated list of numbers")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="mams-core: Simulate decision-theoretic multi-arm multi-stage trials",
    )
    parser.add_argument(
        "--rates",
        type=_float_list,
        default=list(ALTERNATIVE_SCENARIO),
        help="Comma-separated true response rates (first entry is control unless --no-control; "
        "default: the alternative scenario)",
    )
    parser.add_argument("--gamma", type=float, default=DEFAULT_GAMMA, help="Threshold C/Q")
    parser.add_argument(
        "--reevaluate-gammas",
        type=_float_list,
        default=[],
        help="Further thresholds evaluated by reevaluating the simulated trials",
    )
    parser.add_argument("--num-trials", type=int, default=None, help="Number of replicate trials")
    parser.add_argument("--cap", type=int, default=None, help="Maximum trial size")
    parser.add_argument("--burn", type=int, default=None, help="Stage-1 patients per arm")
    parser.add_argument("--batch", type=int, default=None, help="Later-stage patients per active arm")
    parser.add_argument("--delta", type=float, default=None, help="Superiority margin")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for outcome generation")
    parser.add_argument("--workers", type=int, default=None, help="Maximum worker threads")
    parser.add_argument("--no-control", action="store_true", help="Select the best arm (no control arm)")
    parser.add_argument("--drop-control", action="store_true", help="Allow dropping the control arm")
    parser.add_argument("--no-dropping", action="store_true", help="Never drop arms before the final stage")
    parser.add_argument(
        "--output-dir",
        default="results",
        help="Directory for output CSV files (default: results)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log every stage decision")
    return parser.parse_args(argv)


def _apply_overrides(config, args: argparse.Namespace):
    design_overrides = {
        name: getattr(args, name)
        for name in ("cap", "burn", "batch", "delta")
        if getattr(args, name) is not None
    }
    if args.no_control:
        design_overrides["has_control"] = False
    if args.drop_control:
        design_overrides["drop_control"] = True
    simulation_overrides = {}
    if args.num_trials is not None:
        simulation_overrides["num_trials"] = args.num_trials
    if args.seed is not None:
        simulation_overrides["seed"] = args.seed
    if args.workers is not None:
        simulation_overrides["max_workers"] = args.workers
    return replace(
        config,
        design=replace(config.design, **design_overrides),
        simulation=replace(config.simulation, **simulation_overrides),
    )


def _print_summary(run: SimulationRun, oc: OperatingCharacteristics) -> None:
    space = run.space
    print(f"  gamma = {run.gamma:g}")
    for label, p in oc.decision_probabilities.items():
        print(f"    P({label:<12}) = {p:.4f}")
    if space.has_control:
        print(f"    FWER            = {family_wise_error(oc):.4f}")
        for arm in space.experimental_arms:
            print(f"    power {space.arm_label(arm):<9} = {power(oc, space, arm):.4f}")
    print(f"    mean N          = {oc.mean_sample_size:.1f}")
    if oc.num_failed:
        print(f"    failed trials   = {oc.num_failed}")
    print()


def _trial_rows(run: SimulationRun) -> list[dict]:
    controller = StageController(run.design, run.n_arms, allow_dropping=run.allow_dropping)
    space = controller.space
    rows = []
    for t in run.ordered():
        row = {
            "gamma": run.gamma,
            "trial_index": t.trial_index,
            "decision": space.label(t.decision),
            "sample_size": t.sample_size,
            "num_stages": t.num_stages,
            "forced_stop": t.forced_stop,
        }
        for state in controller.final_arm_states(t):
            label = space.arm_label(state.index)
            row[f"n_{label}"] = state.patients
            row[f"status_{label}"] = state.status.value
        rows.append(row)
    return rows


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _apply_overrides(load_config(), args)
        design, sim = config.design, config.simulation
        design.validate(len(args.rates))
        sim.validate()
        gammas = [validate_gamma(g) for g in [args.gamma] + args.reevaluate_gammas]
        dataset = generate_outcomes(args.rates, design.cap, sim.num_trials, seed=sim.seed)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    summary_path = output_dir / f"summary_{run_id}.csv"
    trials_path = output_dir / f"trials_{run_id}.csv"

    variant = "no dropping" if args.no_dropping else "dropping"
    print("\n=== Scenario ===\n")
    for arm in dataset.arm_configs(design.has_control, design.prior):
        role = "control" if arm.is_control else "experimental"
        print(f"  Arm {arm.index}:   p={arm.response_rate:g} ({role})")
    print(f"  Setting: {'control' if design.has_control else 'selection'} ({variant})")
    print(f"  Design:  cap={design.cap} burn={design.burn} batch={design.batch} "
          f"delta={design.delta} prior=({design.prior_a}, {design.prior_b})")
    print(f"  Trials:  {sim.num_trials}")
    print(f"  Run ID:  {run_id}")
    print()

    print(f"=== Simulating (gamma={gammas[0]:g}) ===\n")
    base_run = simulate_trials(
        dataset, design, gammas[0],
        allow_dropping=not args.no_dropping,
        max_workers=sim.max_workers,
    )
    runs = [base_run]
    for gamma in gammas[1:]:
        print(f"=== Reevaluating (gamma={gamma:g}) ===\n")
        runs.append(reevaluate_trials(base_run, dataset, gamma, max_workers=sim.max_workers))

    print("=== Operating Characteristics ===\n")
    summaries = []
    trial_rows = []
    for run in runs:
        oc = summarize_run(run, decimals=sim.decimals)
        _print_summary(run, oc)
        summaries.append(oc.to_frame())
        trial_rows.extend(_trial_rows(run))

    pd.concat(summaries, ignore_index=True).to_csv(summary_path, index=False)
    pd.DataFrame(trial_rows).to_csv(trials_path, index=False)

    print("=== Output ===\n")
    print(f"  Summary: {summary_path}")
    print(f"  Trials:  {trials_path}")
    print()


if __name__ == "__main__":
    main()
