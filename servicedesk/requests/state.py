from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from .errors import ForbiddenError, InvalidInputError
from .principals import Role
from .variants import RequestStatus, RequestVariant


class CompletionEffect(str, Enum):
    """What a transition does to ``completed_at``."""

    KEEP = "keep"
    SET = "set"
    CLEAR = "clear"


@dataclass(frozen=True, slots=True)
class TransitionDecision:
    """Outcome of evaluating a requested status change."""

    current: RequestStatus
    target: RequestStatus
    completion: CompletionEffect = CompletionEffect.KEEP

    @property
    def changed(self) -> bool:
        return self.current != self.target


class RequestStateMachine:
    """Validate request lifecycle transitions.

    Statuses are caller-set rather than strictly forward-only, so every
    status of a variant is reachable from every other one. Only admins may
    move a request at all.
    """

    def __init__(self, variant: RequestVariant) -> None:
        self._variant = variant
        self._transitions: Mapping[RequestStatus, frozenset[RequestStatus]] = {
            status: frozenset(variant.statuses) for status in variant.statuses
        }

    @property
    def variant(self) -> RequestVariant:
        return self._variant

    def initial_state(self) -> RequestStatus:
        return self._variant.initial_status

    def can_transition(self, current: RequestStatus, target: RequestStatus) -> bool:
        if current == target:
            return True
        return target in self._transitions.get(current, frozenset())

    def assert_transition(self, current: RequestStatus, target: RequestStatus) -> None:
        if not self.can_transition(current, target):
            raise InvalidInputError(
                f"Invalid {self._variant.noun} status transition: {current.value} -> {target.value}"
            )

    def evaluate(self, current: RequestStatus, target: RequestStatus | str, role: Role) -> TransitionDecision:
        if role is not Role.ADMIN:
            raise ForbiddenError("Admin access required")
        try:
            resolved = RequestStatus(target)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown status: {target}") from exc
        if not self._variant.allows_status(resolved):
            raise InvalidInputError(f"Status '{resolved.value}' is not valid for a {self._variant.noun}")
        self.assert_transition(current, resolved)

        completed = self._variant.completed_status
        if resolved == current:
            effect = CompletionEffect.KEEP
        elif resolved == completed:
            effect = CompletionEffect.SET
        elif current == completed:
            effect = CompletionEffect.CLEAR
        else:
            effect = CompletionEffect.KEEP
        return TransitionDecision(current=current, target=resolved, completion=effect)
