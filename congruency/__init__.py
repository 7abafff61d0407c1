"""congruency package

Balanced congruency-sequence generation for conflict tasks (flanker,
prime-probe, Simon, Stroop) and the trial builders that turn trial type codes
into stimulus/response content. Presentation lives outside this package.
"""

from .sequences import (
    CongruencySequenceGenerator,
    InfeasibleSequenceError,
    InvalidInput,
    SequenceFailure,
    coupled_balance,
    generate_congruency_sequence,
    orthogonal_balance,
    validate_congruency_sequence,
)

__all__ = [
	"__version__",
	"CongruencySequenceGenerator",
	"InfeasibleSequenceError",
	"InvalidInput",
	"SequenceFailure",
	"coupled_balance",
	"generate_congruency_sequence",
	"orthogonal_balance",
	"validate_congruency_sequence",
]

__version__ = "2.0.0"
