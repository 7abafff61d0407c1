#!/usr/bin/env python3
from __future__ import annotations

"""Preview generated congruency sequences without building a task.

Usage:
    PYTHONPATH=. python scripts/preview_seq.py [strategy] [trials] [seed] [--no-lead]

Defaults: strategy=orthogonal, trials=32, seed unset
"""

import sys
import random
from congruency.sequences import (
    count_types,
    decode_type,
    generate_congruency_sequence,
    validate_congruency_sequence,
)

args = [a for a in sys.argv[1:] if not a.startswith('--')]
lead = '--no-lead' not in sys.argv[1:]
strategy = args[0] if len(args) > 0 else 'orthogonal'
trials = int(args[1]) if len(args) > 1 else 32
seed = int(args[2]) if len(args) > 2 else None
if seed is not None:
        random.seed(seed)
try:
        seq = generate_congruency_sequence(trials, lead, strategy=strategy)
except (KeyError, ValueError) as e:
        raise SystemExit(f'Error: {e}')
if not seq:
        raise SystemExit(f'Generation failed after {seq.attempts} attempts ({seq.reason})')
ok, reason = validate_congruency_sequence(seq, trials, strategy=strategy, include_lead_trial=lead)
print('strategy:', strategy, 'trials:', trials, 'lead trial:', lead)
print('codes:     ', seq)
print('congruent: ', ''.join('C' if decode_type(c).congruent else 'I' for c in seq))
print('set:       ', ''.join(str(decode_type(c).feature_set) for c in seq))
print('counts:    ', count_types(seq[1:] if lead else seq))
print('valid:     ', ok, reason)
