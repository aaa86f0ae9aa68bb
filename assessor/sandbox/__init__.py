"""Deadline-bounded routine execution.

- ExecutionSandbox.invoke(): run one routine and return a CheckOutcome
- validate_result(): check a routine's return value against the outcome contract
"""

from assessor.sandbox.sandbox import ExecutionSandbox, validate_result

__all__ = [
    "ExecutionSandbox",
    "validate_result",
]
