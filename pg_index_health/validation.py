"""Argument checks shared by the model, context and predicates."""

from __future__ import annotations

from typing import Any


def not_none(value: Any, argument_name: str) -> Any:
    if value is None:
        raise TypeError(f"{argument_name} cannot be None")
    return value


def not_blank(value: str | None, argument_name: str) -> str:
    if not_none(value, argument_name).strip() == "":
        raise ValueError(f"{argument_name} cannot be blank")
    return value


def not_negative(value: int, argument_name: str) -> int:
    if not_none(value, argument_name) < 0:
        raise ValueError(f"{argument_name} cannot be less than zero")
    return value


def valid_percent(value: float, argument_name: str) -> float:
    if not 0.0 <= not_none(value, argument_name) <= 100.0:
        raise ValueError(f"{argument_name} should be in the range from 0.0 to 100.0 inclusive")
    return value
