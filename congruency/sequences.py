"""Balanced congruency-sequence generation for conflict tasks.

Responsibilities:
- Pack and unpack trial type codes:
    flag = (8*prevCongruency)+(4*curCongruency)+(2*featureSet)+(stimulus)
- Build randomised sequences in which every trial type appears equally often,
    feature sets alternate on every trial, and the previous-congruency flag of
    each trial matches the congruency of the trial before it.
- Validate finished sequences against those constraints.

The problem is cast as a graph walk where each node must be visited exactly n
times. The next node is drawn from the available edges, weighted by how many
visits each node still needs. A walk that runs out of edges before every node
is spent is abandoned and a fresh attempt is made, up to `max_retries` times.

Two strategies are available:
- "coupled": all four flags are part of the node (16 nodes, 4 edges each).
- "orthogonal": the walk covers congruency and feature set only (8 nodes, 2
    edges each); the stimulus flag is popped from a shuffled pool per
    (congruency, feature set) pairing so stimulus identity is balanced
    separately from the sequential structure.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from psychopy import logging

from .def_parameters import (
    CONGRUENT_BIT,
    DEFAULT_STRATEGY,
    FEATURE_SET_BIT,
    MAX_RETRIES,
    N_TYPES,
    PREV_CONGRUENT_BIT,
    SLOW_GENERATION_ATTEMPTS,
    STIMULUS_BIT,
)

Sequence = List[int]

# Trial counts must split evenly over the nodes each strategy balances
TRIAL_MULTIPLES: Dict[str, int] = {
    "coupled": N_TYPES,
    "orthogonal": N_TYPES // 2,
}


class InvalidInput(ValueError):
    """Raised when generator arguments cannot produce a balanced sequence."""


class InfeasibleSequenceError(RuntimeError):
    """Raised by callers that cannot continue without a generated sequence."""

    def __init__(self, failure: "SequenceFailure"):
        super().__init__(
            f"Could not generate a {failure.strategy} sequence for N={failure.n_trials} "
            f"after {failure.attempts} attempts ({failure.reason})"
        )
        self.failure = failure


@dataclass(frozen=True)
class TrialType:
    """Unpacked trial type code. Every field is 0 or 1."""
    prev_congruent: int
    congruent: int
    feature_set: int
    stimulus: int

    @property
    def code(self) -> int:
        return encode_type(self.prev_congruent, self.congruent, self.feature_set, self.stimulus)


@dataclass(frozen=True)
class SequenceFailure:
    """Result returned when no balanced sequence was found.

    Falsy, so callers can write `if not result:` as with an empty sequence.
    """
    strategy: str
    n_trials: int
    attempts: int
    reason: str

    def __bool__(self) -> bool:
        return False


def encode_type(prev_congruent: int, congruent: int, feature_set: int, stimulus: int) -> int:
    """Pack the four binary flags into a trial type code (0-15)."""
    fields = (
        ("prev_congruent", prev_congruent),
        ("congruent", congruent),
        ("feature_set", feature_set),
        ("stimulus", stimulus),
    )
    for name, value in fields:
        if value not in (0, 1):
            raise ValueError(f"{name} must be 0 or 1, got {value!r}")
    return (PREV_CONGRUENT_BIT * int(prev_congruent)
            + CONGRUENT_BIT * int(congruent)
            + FEATURE_SET_BIT * int(feature_set)
            + STIMULUS_BIT * int(stimulus))


def decode_type(code: int) -> TrialType:
    """Unpack a trial type code into its four flags."""
    if isinstance(code, bool) or not isinstance(code, int) or not 0 <= code < N_TYPES:
        raise ValueError(f"Trial type code must be an integer in [0, {N_TYPES - 1}], got {code!r}")
    return TrialType(
        prev_congruent=1 if code & PREV_CONGRUENT_BIT else 0,
        congruent=1 if code & CONGRUENT_BIT else 0,
        feature_set=1 if code & FEATURE_SET_BIT else 0,
        stimulus=1 if code & STIMULUS_BIT else 0,
    )


def count_types(seq: Sequence) -> Dict[int, int]:
    """Return occurrence counts for all 16 trial types (zeros included)."""
    counts = {code: 0 for code in range(N_TYPES)}
    for code in seq:
        counts[code] += 1
    return counts


def _coin(rng: Any) -> int:
    return 1 if rng.random() > .5 else 0


def _successors(code: int, with_stimulus: bool) -> List[int]:
    """Nodes reachable from `code`.

    The current congruency becomes the previous congruency and the feature set
    flips. With `with_stimulus` both stimuli of the new set are separate nodes.
    """
    prev = PREV_CONGRUENT_BIT if code & CONGRUENT_BIT else 0
    feature_set = FEATURE_SET_BIT - (code & FEATURE_SET_BIT)
    options: List[int] = []
    for congruent in (0, CONGRUENT_BIT):
        node = prev + congruent + feature_set
        if with_stimulus:
            options.extend([node, node + STIMULUS_BIT])
        else:
            options.append(node)
    return options


def _pool_key(code: int) -> Tuple[int, int]:
    return (1 if code & CONGRUENT_BIT else 0, 1 if code & FEATURE_SET_BIT else 0)


def _weighted_choice(options: List[int], weights: List[int], rng: Any, use_weights: bool = True) -> int:
    """Choose an option with probability proportional to its weight.

    Uniform when weighting is off or every weight is zero. If rounding leaves the
    cumulative draw short of 1.0 the last option is returned.
    """
    if len(options) == 1:
        return options[0]
    total = float(sum(weights))
    if not use_weights or total <= 0:
        return rng.choice(options)
    r = rng.random()
    acc = 0.0
    for option, w in zip(options, weights):
        acc += w / total
        if r < acc:
            return option
    return options[-1]


def _walk(remaining: Dict[int, int], trials: Sequence, rng: Any, *,
          with_stimulus: bool, use_weights: bool = True,
          pools: Optional[Dict[Tuple[int, int], List[int]]] = None) -> bool:
    """Extend `trials` until every node in `remaining` has been visited.

    `remaining` and `trials` are modified in place. When `pools` is given the
    chosen node has its stimulus flag popped from the matching pool.
    Returns False if the walk reaches a node with no unspent successors.
    """
    left = sum(remaining.values())
    while left > 0:
        options = [o for o in _successors(trials[-1], with_stimulus) if remaining.get(o, 0) > 0]
        if not options:
            return False
        choice = _weighted_choice(options, [remaining[o] for o in options], rng, use_weights)
        remaining[choice] -= 1
        left -= 1
        if pools is not None:
            choice += pools[_pool_key(choice)].pop()
        trials.append(choice)
    return True


def _coupled_attempt(n_trials: int, include_lead_trial: bool, rng: Any,
                     use_weights: bool) -> Optional[Sequence]:
    per_type = n_trials // N_TYPES
    remaining = {code: per_type for code in range(N_TYPES)}

    # First trial has random prev/current congruency, feature set and stimulus
    seed = encode_type(_coin(rng), _coin(rng), _coin(rng), _coin(rng))
    if not include_lead_trial:
        remaining[seed] -= 1

    trials = [seed]
    if not _walk(remaining, trials, rng, with_stimulus=True, use_weights=use_weights):
        return None
    return trials


def _stimulus_pools(n_trials: int, rng: Any) -> Dict[Tuple[int, int], List[int]]:
    """One shuffled list of stimulus flags per (congruency, feature set) pairing.

    Each pool holds as many entries as the two walk nodes sharing its
    congruency and feature set will be visited, half of them per stimulus.
    """
    per_stimulus = n_trials // TRIAL_MULTIPLES["orthogonal"]
    pools: Dict[Tuple[int, int], List[int]] = {}
    for congruent in (0, 1):
        for feature_set in (0, 1):
            pool = [0, 1] * per_stimulus
            rng.shuffle(pool)
            pools[(congruent, feature_set)] = pool
    return pools


def _orthogonal_attempt(n_trials: int, include_lead_trial: bool, rng: Any,
                        use_weights: bool) -> Optional[Sequence]:
    per_node = n_trials // TRIAL_MULTIPLES["orthogonal"]
    # Only even codes are nodes; the stimulus flag is added after the walk step
    remaining = {code: per_node for code in range(0, N_TYPES, 2)}
    pools = _stimulus_pools(n_trials, rng)

    node = encode_type(_coin(rng), _coin(rng), _coin(rng), 0)
    if include_lead_trial:
        # Lead trial sits outside the budget so the pools stay exact
        seed = node + _coin(rng)
    else:
        remaining[node] -= 1
        seed = node + pools[_pool_key(node)].pop()

    trials = [seed]
    if not _walk(remaining, trials, rng, with_stimulus=False, use_weights=use_weights, pools=pools):
        return None
    return trials


def _check_arguments(strategy: str, n_trials: int, max_retries: int) -> None:
    if isinstance(n_trials, bool) or not isinstance(n_trials, int):
        raise InvalidInput(f"n_trials must be an integer, got {n_trials!r}")
    multiple = TRIAL_MULTIPLES[strategy]
    if n_trials <= 0 or n_trials % multiple:
        raise InvalidInput(
            f"{strategy} balance needs a positive multiple of {multiple} trials, got {n_trials}"
        )
    if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
        raise InvalidInput(f"max_retries must be a non-negative integer, got {max_retries!r}")


def _generate_with_retries(attempt: Callable[[], Optional[Sequence]], *, strategy: str,
                           n_trials: int, max_retries: int) -> Union[Sequence, SequenceFailure]:
    """Call `attempt` until it returns a sequence, at most max_retries + 1 times."""
    for attempts in range(1, max_retries + 2):
        trials = attempt()
        if trials is not None:
            if attempts > SLOW_GENERATION_ATTEMPTS:
                logging.info(
                    f"Sequence generation for N={n_trials} took >{SLOW_GENERATION_ATTEMPTS} "
                    f"({attempts}) attempts."
                )
            return trials
        logging.debug(f"{strategy} sequence for N={n_trials}: dead end on attempt {attempts}")
    logging.warning(f"{strategy} sequence generation for N={n_trials} failed: retry limit reached")
    return SequenceFailure(
        strategy=strategy,
        n_trials=n_trials,
        attempts=max_retries + 1,
        reason="retry limit reached",
    )


def coupled_balance(n_trials: int, include_lead_trial: bool = True,
                    max_retries: int = MAX_RETRIES, *, rng: Any = None,
                    use_weights: bool = True) -> Union[Sequence, SequenceFailure]:
    """Generate a sequence in which each of the 16 trial types appears N/16 times.

    Inputs:
    - n_trials: budgeted trials, a positive multiple of 16
    - include_lead_trial: prepend one free trial of random type (length N+1)
    - max_retries: extra attempts allowed after a dead end
    - rng: source with random()/choice()/shuffle(); defaults to the `random` module
    - use_weights: weight candidate nodes by their remaining visits

    Returns: list of trial type codes, or a SequenceFailure when retries run out.
    Raises InvalidInput for a trial count that cannot be balanced.
    """
    _check_arguments("coupled", n_trials, max_retries)
    rng = random if rng is None else rng
    return _generate_with_retries(
        lambda: _coupled_attempt(n_trials, include_lead_trial, rng, use_weights),
        strategy="coupled",
        n_trials=n_trials,
        max_retries=max_retries,
    )


def orthogonal_balance(n_trials: int, include_lead_trial: bool = True,
                       max_retries: int = MAX_RETRIES, *, rng: Any = None,
                       use_weights: bool = True) -> Union[Sequence, SequenceFailure]:
    """Generate a sequence balanced over congruency history and feature set,
    with stimulus identity balanced separately per (congruency, feature set).

    Each of the 8 (prev congruency, congruency, feature set) combinations appears
    N/8 times, and within every (congruency, feature set) pairing both stimuli
    appear N/8 times. `n_trials` must be a positive multiple of 8; the other
    arguments are as for `coupled_balance`.
    """
    _check_arguments("orthogonal", n_trials, max_retries)
    rng = random if rng is None else rng
    return _generate_with_retries(
        lambda: _orthogonal_attempt(n_trials, include_lead_trial, rng, use_weights),
        strategy="orthogonal",
        n_trials=n_trials,
        max_retries=max_retries,
    )


STRATEGIES: Dict[str, Callable[..., Union[Sequence, SequenceFailure]]] = {
    "coupled": coupled_balance,
    "orthogonal": orthogonal_balance,
}


def _strategy(name: str) -> Callable[..., Union[Sequence, SequenceFailure]]:
    if name not in STRATEGIES:
        raise KeyError(f"Unknown sequence strategy: {name}")
    return STRATEGIES[name]


def generate_congruency_sequence(n_trials: int, include_lead_trial: bool = True,
                                 max_retries: int = MAX_RETRIES, *,
                                 strategy: str = DEFAULT_STRATEGY, rng: Any = None,
                                 use_weights: bool = True) -> Union[Sequence, SequenceFailure]:
    """Generate a balanced sequence with the named strategy."""
    return _strategy(strategy)(
        n_trials, include_lead_trial, max_retries, rng=rng, use_weights=use_weights
    )


def validate_congruency_sequence(seq: Sequence, n_trials: int, *,
                                 strategy: str = DEFAULT_STRATEGY,
                                 include_lead_trial: bool = True) -> Tuple[bool, str]:
    """Validate a generated sequence against the balance and adjacency constraints.

    Returns (ok, reason).
    """
    _strategy(strategy)
    expected_len = n_trials + (1 if include_lead_trial else 0)
    if len(seq) != expected_len:
        return False, f"Length {len(seq)} != {expected_len}"
    for code in seq:
        if isinstance(code, bool) or not isinstance(code, int) or not 0 <= code < N_TYPES:
            return False, f"Invalid trial type code {code!r}"
    for i in range(1, len(seq)):
        if (seq[i] & FEATURE_SET_BIT) == (seq[i - 1] & FEATURE_SET_BIT):
            return False, f"Feature set repeated at trial {i}"
        if bool(seq[i] & PREV_CONGRUENT_BIT) != bool(seq[i - 1] & CONGRUENT_BIT):
            return False, f"Previous congruency mismatch at trial {i}"

    counts = count_types(seq[1:] if include_lead_trial else seq)
    if strategy == "coupled":
        expected = n_trials // N_TYPES
        for code, n in counts.items():
            if n != expected:
                return False, f"Type {code} appears {n} times, expected {expected}"
        return True, "ok"

    expected = n_trials // TRIAL_MULTIPLES["orthogonal"]
    for node in range(0, N_TYPES, 2):
        n = counts[node] + counts[node + STIMULUS_BIT]
        if n != expected:
            return False, f"Types {node}/{node + STIMULUS_BIT} appear {n} times, expected {expected}"
    for congruent in (0, 1):
        for feature_set in (0, 1):
            for stimulus in (0, 1):
                n = sum(counts[encode_type(prev, congruent, feature_set, stimulus)] for prev in (0, 1))
                if n != expected:
                    return False, (
                        f"Stimulus {stimulus} appears {n} times for congruency {congruent}, "
                        f"feature set {feature_set}, expected {expected}"
                    )
    return True, "ok"


class CongruencySequenceGenerator:
    """Generator settings held together so each task block can request a sequence.

    Each instance owns its random source (seeded from `seed` unless `rng` is
    given), so instances never share state.
    """

    def __init__(self, strategy: str = DEFAULT_STRATEGY, max_retries: int = MAX_RETRIES,
                 use_weights: bool = True, seed: Optional[int] = None, rng: Any = None):
        _strategy(strategy)
        self.strategy = strategy
        self.max_retries = max_retries
        self.use_weights = use_weights
        self.rng = rng if rng is not None else random.Random(seed)

    @property
    def trial_multiple(self) -> int:
        return TRIAL_MULTIPLES[self.strategy]

    def generate(self, n_trials: int, include_lead_trial: bool = True) -> Union[Sequence, SequenceFailure]:
        return generate_congruency_sequence(
            n_trials,
            include_lead_trial,
            self.max_retries,
            strategy=self.strategy,
            rng=self.rng,
            use_weights=self.use_weights,
        )

    def __repr__(self) -> str:
        return (f"CongruencySequenceGenerator(strategy={self.strategy!r}, "
                f"max_retries={self.max_retries}, use_weights={self.use_weights})")


__all__ = [
    "Sequence",
    "TRIAL_MULTIPLES",
    "STRATEGIES",
    "InvalidInput",
    "InfeasibleSequenceError",
    "TrialType",
    "SequenceFailure",
    "encode_type",
    "decode_type",
    "count_types",
    "coupled_balance",
    "orthogonal_balance",
    "generate_congruency_sequence",
    "validate_congruency_sequence",
    "CongruencySequenceGenerator",
]
