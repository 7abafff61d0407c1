"""Trial builders for the flanker, prime-probe, Simon and Stroop paradigms.

Each paradigm reads the flags of a trial type code the same way:
- feature set picks the stimulus pair (first two or last two stimuli)
- stimulus picks the target within that pair
- congruency decides whether the distractor is the target itself or its partner

Records carry plain stimulus identifiers and the expected response key;
rendering, timing and response collection are left to the presentation layer.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from psychopy import logging

from .def_parameters import (
    BLOCKS,
    DEFAULT_STRATEGY,
    FLANKER_KEYS,
    FLANKER_REPEATS,
    FLANKER_STIMULI,
    PRACTICE_TRIALS,
    PRIMEPROBE_KEYS,
    PRIMEPROBE_STIMULI,
    PRIMEPROBE_TRIALS_PER_BLOCK,
    SIMON_COLOURS,
    SIMON_KEYS,
    STROOP_COLOURS,
    STROOP_KEYS,
    TRIALS_PER_BLOCK,
)
from .sequences import (
    STRATEGIES,
    CongruencySequenceGenerator,
    InfeasibleSequenceError,
    SequenceFailure,
    TrialType,
    decode_type,
)

TrialRecord = Dict[str, Any]


@dataclass
class ParadigmConfig:
    """Per-paradigm block structure and stimulus-response material.

    Fields:
    - name: paradigm key in PARADIGMS ("flanker", "primeprobe", "simon", "stroop")
    - stimuli: four stimulus identifiers; the first two form feature set 0
    - response_keys: four keys, bound to stimuli by position
    - shuffle_stimuli / shuffle_keys: randomise order per participant
    - blocks: total blocks including the practice block (block 0)
    - trials_per_block / practice_trials: budgeted trials per block
    - strategy: sequence strategy name ("coupled" or "orthogonal")
    """
    name: str
    stimuli: List[str]
    response_keys: List[str]
    shuffle_stimuli: bool = False
    shuffle_keys: bool = False
    blocks: int = BLOCKS
    trials_per_block: int = TRIALS_PER_BLOCK
    practice_trials: int = PRACTICE_TRIALS
    strategy: str = DEFAULT_STRATEGY

    def __post_init__(self) -> None:
        if len(self.stimuli) != 4 or len(self.response_keys) != 4:
            raise ValueError(f"{self.name}: need exactly 4 stimuli and 4 response keys")
        if len(set(self.stimuli)) != 4:
            raise ValueError(f"{self.name}: stimuli must be distinct")
        if self.blocks < 1:
            raise ValueError(f"{self.name}: blocks must be at least 1")
        if self.strategy not in STRATEGIES:
            raise KeyError(f"Unknown sequence strategy: {self.strategy}")


def _flanker_fields(t: TrialType, target: str, partner: str, response_map: Dict[str, str]) -> Dict[str, Any]:
    flank = target if t.congruent else partner
    return {
        "flanker": flank,
        "stimulus": flank * FLANKER_REPEATS + target + flank * FLANKER_REPEATS,
    }


def _primeprobe_fields(t: TrialType, target: str, partner: str, response_map: Dict[str, str]) -> Dict[str, Any]:
    return {
        "prime": target if t.congruent else partner,
        "probe": target,
    }


def _key_direction(key: str) -> str:
    # "ArrowUp" -> "up"
    return key[len("Arrow"):].lower() if key.startswith("Arrow") else key.lower()


def _simon_fields(t: TrialType, target: str, partner: str, response_map: Dict[str, str]) -> Dict[str, Any]:
    # Congruent: shown where the colour's own key points; incongruent: where its partner's does
    location_key = response_map[target if t.congruent else partner]
    return {
        "colour": target,
        "location": _key_direction(location_key),
    }


def _stroop_fields(t: TrialType, target: str, partner: str, response_map: Dict[str, str]) -> Dict[str, Any]:
    return {
        "colour": target,
        "word": target if t.congruent else partner,
    }


FIELD_BUILDERS: Dict[str, Callable[[TrialType, str, str, Dict[str, str]], Dict[str, Any]]] = {
    "flanker": _flanker_fields,
    "primeprobe": _primeprobe_fields,
    "simon": _simon_fields,
    "stroop": _stroop_fields,
}


PARADIGMS: Dict[str, ParadigmConfig] = {
    # Letter pairs and their keys are both drawn per participant
    "flanker": ParadigmConfig(
        name="flanker",
        stimuli=FLANKER_STIMULI,
        response_keys=FLANKER_KEYS,
        shuffle_stimuli=True,
        shuffle_keys=True,
    ),
    # Left/right and up/down pairs with constant bindings
    "primeprobe": ParadigmConfig(
        name="primeprobe",
        stimuli=PRIMEPROBE_STIMULI,
        response_keys=PRIMEPROBE_KEYS,
        trials_per_block=PRIMEPROBE_TRIALS_PER_BLOCK,
    ),
    # Random colour pairs; each pair shares a key axis (up/down, left/right)
    "simon": ParadigmConfig(
        name="simon",
        stimuli=SIMON_COLOURS,
        response_keys=SIMON_KEYS,
        shuffle_stimuli=True,
    ),
    "stroop": ParadigmConfig(
        name="stroop",
        stimuli=STROOP_COLOURS,
        response_keys=STROOP_KEYS,
        shuffle_stimuli=True,
        shuffle_keys=True,
    ),
}


def get_paradigm(name: str) -> ParadigmConfig:
    """Return a copy of the default configuration for a paradigm."""
    if name not in PARADIGMS:
        raise KeyError(f"Unknown paradigm: {name}")
    cfg = PARADIGMS[name]
    return replace(cfg, stimuli=list(cfg.stimuli), response_keys=list(cfg.response_keys))


def get_response_map(config: ParadigmConfig, rng: Any = None,
                     stimuli: Optional[List[str]] = None) -> Tuple[List[str], Dict[str, str]]:
    """Bind stimuli to response keys for one participant.

    Returns the stimulus order (which defines the two feature sets) and the
    stimulus -> key mapping. A given `stimuli` order is kept as is; only the
    keys are then shuffled, if the paradigm shuffles them.
    """
    rng = random if rng is None else rng
    keys = list(config.response_keys)
    if stimuli is not None:
        stimuli = list(stimuli)
        if len(stimuli) != 4 or len(set(stimuli)) != 4:
            raise ValueError(f"{config.name}: stimulus order needs 4 distinct stimuli, got {stimuli}")
    else:
        stimuli = list(config.stimuli)
        if config.shuffle_stimuli:
            rng.shuffle(stimuli)
    if config.shuffle_keys:
        rng.shuffle(keys)
    return stimuli, dict(zip(stimuli, keys))


def build_trial(config: ParadigmConfig, code: int, *, stimuli: List[str],
                response_map: Dict[str, str]) -> TrialRecord:
    """Map one trial type code onto the paradigm's stimulus and response content."""
    if config.name not in FIELD_BUILDERS:
        raise KeyError(f"Unknown paradigm: {config.name}")
    t = decode_type(code)
    pair = stimuli[2 * t.feature_set: 2 * t.feature_set + 2]
    target = pair[t.stimulus]
    partner = pair[1 - t.stimulus]
    record: TrialRecord = {
        "type_code": code,
        "is_congruent": t.congruent,
        "target": target,
        "response_target": response_map[target],
    }
    record.update(FIELD_BUILDERS[config.name](t, target, partner, response_map))
    return record


def build_trials(config: ParadigmConfig, *,
                 generator: Optional[CongruencySequenceGenerator] = None,
                 rng: Any = None,
                 stimuli: Optional[List[str]] = None,
                 response_map: Optional[Dict[str, str]] = None) -> List[TrialRecord]:
    """Build the trial list for every block of a paradigm.

    Block 0 is practice and is generated without a lead trial; main blocks get
    one extra lead trial ahead of their budgeted trials. Trial ids run across
    blocks. A `stimuli` order given without `response_map` fixes the feature
    sets; the keys are then bound to it as the paradigm configures.

    Raises InfeasibleSequenceError if a block's sequence cannot be generated.
    """
    rng = random if rng is None else rng
    if generator is None:
        generator = CongruencySequenceGenerator(config.strategy, rng=rng)
    if response_map is None:
        stimuli, response_map = get_response_map(config, rng, stimuli)
    elif stimuli is None:
        stimuli = list(response_map)

    trials: List[TrialRecord] = []
    for block in range(config.blocks):
        is_practice = 1 if block == 0 else 0
        n_trials = config.practice_trials if is_practice else config.trials_per_block
        types = generator.generate(n_trials, include_lead_trial=not is_practice)
        if isinstance(types, SequenceFailure):
            logging.error(f"{config.name}: no sequence for block {block} (N={n_trials})")
            raise InfeasibleSequenceError(types)
        for code in types:
            record: TrialRecord = {
                "trial_id": len(trials),
                "block": block,
                "is_practice": is_practice,
            }
            record.update(build_trial(config, code, stimuli=stimuli, response_map=response_map))
            trials.append(record)
    logging.info(f"{config.name}: built {len(trials)} trials over {config.blocks} blocks")
    return trials


__all__ = [
    "TrialRecord",
    "ParadigmConfig",
    "FIELD_BUILDERS",
    "PARADIGMS",
    "get_paradigm",
    "get_response_map",
    "build_trial",
    "build_trials",
]
