"""Default parameters and constants for the congruency-sequence tasks.

Separated from the generator and trial builders to keep things tidy and reusable.
"""

from __future__ import annotations

# Trial type flags: (8*prevCongruency)+(4*curCongruency)+(2*featureSet)+(stimulus)
PREV_CONGRUENT_BIT = 8
CONGRUENT_BIT = 4
FEATURE_SET_BIT = 2
STIMULUS_BIT = 1
N_TYPES = 16

# Generator
MAX_RETRIES = 1000
SLOW_GENERATION_ATTEMPTS = 100  # log when a sequence needed more attempts than this
DEFAULT_STRATEGY = "orthogonal"

# Task structure
BLOCKS = 1 + 4  # practice + main blocks
TRIALS_PER_BLOCK = 80
PRIMEPROBE_TRIALS_PER_BLOCK = 96
PRACTICE_TRIALS = 24

# Stimulus sets: first two form feature set 0, last two feature set 1
FLANKER_STIMULI = ["M", "S", "T", "H"]
FLANKER_KEYS = ["m", "n", "x", "c"]

PRIMEPROBE_STIMULI = ["left", "right", "up", "down"]
PRIMEPROBE_KEYS = ["f", "g", "j", "n"]

SIMON_COLOURS = ["red", "green", "blue", "yellow"]
SIMON_KEYS = ["ArrowUp", "ArrowDown", "ArrowLeft", "ArrowRight"]

STROOP_COLOURS = ["red", "green", "blue", "yellow"]
STROOP_KEYS = ["c", "x", "n", "m"]

FLANKER_REPEATS = 3  # flankers drawn on each side of the target

__all__ = [
    # type codes
    "PREV_CONGRUENT_BIT",
    "CONGRUENT_BIT",
    "FEATURE_SET_BIT",
    "STIMULUS_BIT",
    "N_TYPES",
    # generator
    "MAX_RETRIES",
    "SLOW_GENERATION_ATTEMPTS",
    "DEFAULT_STRATEGY",
    # structure
    "BLOCKS",
    "TRIALS_PER_BLOCK",
    "PRIMEPROBE_TRIALS_PER_BLOCK",
    "PRACTICE_TRIALS",
    # stimuli / keys
    "FLANKER_STIMULI",
    "FLANKER_KEYS",
    "PRIMEPROBE_STIMULI",
    "PRIMEPROBE_KEYS",
    "SIMON_COLOURS",
    "SIMON_KEYS",
    "STROOP_COLOURS",
    "STROOP_KEYS",
    "FLANKER_REPEATS",
]
