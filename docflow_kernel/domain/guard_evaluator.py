"""
Guard evaluator (``docflow_kernel.domain.guard_evaluator``).

Responsibility:
    Decides whether a requested transition is legal for an actor role,
    given the candidate rules from the transition table and the caller's
    business guard result.

Architecture position:
    Kernel > Domain -- pure function, zero I/O, never blocks.

Decision order:
    1. No candidate rule for (from, to)      -> NO_SUCH_TRANSITION
    2. No candidate open to the actor role   -> ROLE_NOT_AUTHORIZED
    3. More than one candidate for the role  -> AMBIGUOUS_TRANSITION
    4. Rule has a guard, result is not True  -> GUARD_NOT_SATISFIED
    5. Otherwise                             -> allowed, carrying the rule

Step 3 cannot fire against a table that passed load-time validation; it
is kept so a hand-built rule list fails closed instead of picking one.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from docflow_kernel.domain.transition_table import TransitionTable
from docflow_kernel.domain.workflow import ReasonCode, TransitionRule


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of a guard evaluation.

    Exactly one of ``rule`` (allowed) or ``reason_code`` (rejected) is set.
    """

    rule: TransitionRule | None = None
    reason_code: ReasonCode | None = None
    match_count: int = 0
    guard_name: str | None = None

    @property
    def allowed(self) -> bool:
        return self.rule is not None

    @classmethod
    def allow(cls, rule: TransitionRule) -> GuardDecision:
        return cls(rule=rule, match_count=1)

    @classmethod
    def reject(
        cls,
        reason_code: ReasonCode,
        match_count: int = 0,
        guard_name: str | None = None,
    ) -> GuardDecision:
        return cls(reason_code=reason_code, match_count=match_count, guard_name=guard_name)


def evaluate_rules(
    candidates: Sequence[TransitionRule],
    actor_role: str,
    business_guard_result: bool | None = None,
) -> GuardDecision:
    """Apply the decision order to an explicit candidate list."""
    if not candidates:
        return GuardDecision.reject(ReasonCode.NO_SUCH_TRANSITION)

    matching = [rule for rule in candidates if rule.permits(actor_role)]
    if not matching:
        return GuardDecision.reject(ReasonCode.ROLE_NOT_AUTHORIZED)

    if len(matching) > 1:
        return GuardDecision.reject(
            ReasonCode.AMBIGUOUS_TRANSITION, match_count=len(matching),
        )

    rule = matching[0]
    # Only an explicit True satisfies a guard; None means "not supplied".
    if rule.guard is not None and business_guard_result is not True:
        return GuardDecision.reject(
            ReasonCode.GUARD_NOT_SATISFIED, match_count=1, guard_name=rule.guard_name,
        )

    return GuardDecision.allow(rule)


def evaluate_transition(
    table: TransitionTable,
    document_type: str,
    from_state: str,
    to_state: str,
    actor_role: str,
    business_guard_result: bool | None = None,
) -> GuardDecision:
    """Evaluate a request against the rules registered in ``table``."""
    candidates = table.lookup(document_type, from_state, to_state)
    return evaluate_rules(candidates, actor_role, business_guard_result)
