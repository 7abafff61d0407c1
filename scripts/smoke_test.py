#!/usr/bin/env python3
"""Smoke test for congruency-sequence generation and trial building.

Runs the preview script once per strategy in a subprocess and checks that it
reports a valid sequence, then generates many seeded sequences per strategy
and full trial lists per paradigm, verifying balance, feature-set alternation
and block structure. Prints how many attempts generation needed.

Note: This is a lightweight harness to validate flow and data integrity.
"""
from __future__ import annotations

import os
import random
import subprocess
import sys

ROOT = os.path.dirname(os.path.dirname(__file__))
sys.path.insert(0, ROOT)

from congruency.paradigms import PARADIGMS, build_trials, get_paradigm  # noqa: E402
from congruency.sequences import (  # noqa: E402
    STRATEGIES,
    CongruencySequenceGenerator,
    validate_congruency_sequence,
)

SEEDS = range(50)


def run_preview(strategy: str, trials: int) -> str:
    cmd = [
        sys.executable,
        os.path.join(ROOT, 'scripts', 'preview_seq.py'),
        strategy, str(trials), '7',
    ]
    print('Running:', ' '.join(cmd))
    env = dict(os.environ, PYTHONPATH=ROOT)
    res = subprocess.run(cmd, cwd=ROOT, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, env=env)
    print(res.stdout)
    if res.returncode != 0:
        raise SystemExit(f"Preview for {strategy} failed with code {res.returncode}")
    return res.stdout


def check_strategy(strategy: str, trials: int) -> int:
    """Generate one sequence per seed; return the number of failures."""
    failures = 0
    for seed in SEEDS:
        for lead in (True, False):
            gen = CongruencySequenceGenerator(strategy, seed=seed)
            seq = gen.generate(trials, include_lead_trial=lead)
            if not seq:
                failures += 1
                continue
            ok, reason = validate_congruency_sequence(seq, trials, strategy=strategy, include_lead_trial=lead)
            assert ok, f"{strategy} seed={seed} lead={lead}: {reason}"
    return failures


def check_paradigm(name: str) -> int:
    cfg = get_paradigm(name)
    trials = build_trials(cfg, rng=random.Random(1))
    expected = cfg.practice_trials + (cfg.blocks - 1) * (cfg.trials_per_block + 1)
    assert len(trials) == expected, f"{name}: expected {expected} trials, got {len(trials)}"
    assert [t['trial_id'] for t in trials] == list(range(expected)), f"{name}: trial ids not sequential"
    assert all(t['is_practice'] == (1 if t['block'] == 0 else 0) for t in trials), f"{name}: practice flags"
    return len(trials)


def main() -> int:
    for strategy in STRATEGIES:
        out = run_preview(strategy, 32)
        assert 'valid:      True ok' in out, f'Preview for {strategy} did not report a valid sequence'

    for strategy in STRATEGIES:
        for trials in (32, 80, 96):
            failures = check_strategy(strategy, trials)
            print(f'{strategy:>10} N={trials:<3} failures: {failures}/{2 * len(SEEDS)}')
            assert failures == 0, f'{strategy} N={trials} exhausted retries'

    for name in PARADIGMS:
        n = check_paradigm(name)
        print(f'{name:>10}: {n} trials')

    print('Smoke test passed.')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
