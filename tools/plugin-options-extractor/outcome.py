"""
Result values for static evaluation.

Evaluation of plugin source is best-effort: most failures (an identifier that
cannot be resolved, an operator outside the supported set, an options idiom we
do not recognize) are expected and must not abort extraction of the sibling
settings. They are therefore returned as values rather than raised.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    UNRESOLVED_IDENTIFIER = "UnresolvedIdentifier"
    UNRESOLVABLE_ACCESS = "UnresolvableAccess"
    NON_NUMERIC_OPERAND = "NonNumericOperand"
    UNSUPPORTED_OPERATOR = "UnsupportedOperator"
    UNSUPPORTED_EXPRESSION_KIND = "UnsupportedExpressionKind"
    UNSUPPORTED_PATTERN = "UnsupportedPattern"
    MISSING_REQUIRED_PROPERTY = "MissingRequiredProperty"


@dataclass(frozen=True)
class EvaluationError:
    """Why a node could not be turned into a value, and which node it was."""
    kind: ErrorKind
    message: str
    node: Any = None

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Outcome:
    """Either ``value`` (when ``error`` is None) or an ``EvaluationError``."""
    value: Any = None
    error: Optional[EvaluationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value) -> "Outcome":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, node=None) -> "Outcome":
        return cls(error=EvaluationError(kind, message, node))

    def value_or(self, default):
        return self.value if self.ok else default
