"""Performance workflows — transition tables and their checks.

A plan moves draft → supervisor_review → supervisor_approved →
reviewer_review → reviewer_approved → completed. An appraisal moves
draft → submitted → reviewer_assessment → approved, with
revision_requested as the way back to the employee. Every move is an
action with allowed source statuses, a target status and the parties who
may perform it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from sirtis.common.constants import AppraisalStatus, PlanStatus
from sirtis.common.exceptions import BadRequestException, ForbiddenException, ValidationException


class Actor(str, enum.Enum):
    owner = "owner"
    supervisor = "supervisor"
    reviewer = "reviewer"
    hr = "hr"


@dataclass(frozen=True)
class Transition:
    action: str
    sources: Optional[frozenset[enum.Enum]]  # None: any status
    target: Optional[enum.Enum]  # None: status unchanged
    actors: frozenset[Actor]
    comment_type: str
    stamp: Optional[str] = None  # attribute set to "now"
    comment_field: Optional[str] = None  # attribute receiving the comment
    needs_reviewer: bool = False
    target_without_reviewer: Optional[enum.Enum] = None
    clears: Optional[str] = None  # attribute reset to None


def _t(action, sources, target, actors, comment_type, **kw) -> Transition:
    return Transition(
        action=action,
        sources=frozenset(sources) if sources is not None else None,
        target=target,
        actors=frozenset(actors),
        comment_type=comment_type,
        **kw,
    )


_S = PlanStatus
_A = Actor

TRANSITIONS: dict[str, Transition] = {
    t.action: t
    for t in (
        _t("submit", [_S.draft], _S.supervisor_review, [_A.owner],
           "submission", stamp="submitted_at"),
        _t("supervisor_approve", [_S.supervisor_review], _S.supervisor_approved,
           [_A.supervisor, _A.hr], "approval",
           stamp="supervisor_approved_at", comment_field="supervisor_comments"),
        _t("supervisor_reject", [_S.supervisor_review], _S.draft,
           [_A.supervisor, _A.hr], "rejection", comment_field="supervisor_comments"),
        _t("assign_reviewer", [_S.supervisor_approved], _S.reviewer_review,
           [_A.supervisor, _A.hr], "assignment", needs_reviewer=True),
        _t("reviewer_approve", [_S.reviewer_review], _S.reviewer_approved,
           [_A.reviewer, _A.hr], "approval",
           stamp="reviewer_approved_at", comment_field="reviewer_comments"),
        _t("reviewer_reject", [_S.reviewer_review], _S.supervisor_review,
           [_A.reviewer, _A.hr], "rejection", comment_field="reviewer_comments"),
        _t("complete", [_S.reviewer_approved], _S.completed, [_A.hr],
           "completion", stamp="completed_at"),
        _t("reopen", [_S.completed], _S.supervisor_review, [_A.hr], "reopening"),
        _t("comment", None, None, list(Actor), "general"),
    )
}

_AS = AppraisalStatus

# request_changes appears twice: the supervisor sends the appraisal back to
# the employee, the reviewer sends it back to the supervisor.
APPRAISAL_TRANSITIONS: tuple[Transition, ...] = (
    _t("submit", [_AS.draft, _AS.revision_requested], _AS.submitted,
       [_A.owner, _A.hr], "submission", stamp="submitted_at"),
    _t("request_changes", [_AS.submitted], _AS.revision_requested,
       [_A.supervisor, _A.hr], "request_changes"),
    _t("approve", [_AS.submitted], _AS.reviewer_assessment,
       [_A.supervisor, _A.hr], "approve",
       stamp="supervisor_approved_at", target_without_reviewer=_AS.approved),
    _t("request_changes", [_AS.reviewer_assessment], _AS.submitted,
       [_A.reviewer, _A.hr], "request_changes", clears="supervisor_approved_at"),
    _t("final_approve", [_AS.reviewer_assessment], _AS.approved,
       [_A.reviewer, _A.hr], "final_approve", stamp="reviewer_approved_at"),
    _t("comment", [_AS.draft, _AS.submitted, _AS.revision_requested, _AS.reviewer_assessment],
       None, list(Actor), "comment"),
)


def allows(transition: Transition, status: enum.Enum) -> bool:
    return transition.sources is None or status in transition.sources


def _table(transitions: Optional[Iterable[Transition]]) -> list[Transition]:
    return list(TRANSITIONS.values()) if transitions is None else list(transitions)


def next_actions(
    status: enum.Enum,
    actors: set[Actor],
    transitions: Optional[Iterable[Transition]] = None,
) -> list[str]:
    """Actions the given parties may take in *status*."""
    names = [
        t.action
        for t in _table(transitions)
        if allows(t, status) and t.actors & actors
    ]
    return list(dict.fromkeys(names))


def resolve(
    action: str,
    status: enum.Enum,
    actors: set[Actor],
    transitions: Optional[Iterable[Transition]] = None,
    noun: str = "plan",
) -> Transition:
    """Return the transition for *action* or raise the matching API error."""
    table = _table(transitions)
    candidates = [t for t in table if t.action == action]
    if not candidates:
        known = ", ".join(dict.fromkeys(t.action for t in table))
        raise ValidationException(
            {"action": [f"Unknown action '{action}'. Expected one of: {known}."]}
        )
    verb = action.replace("_", " ")
    in_status = [t for t in candidates if allows(t, status)]
    if not in_status:
        raise BadRequestException(f"Cannot {verb} a {noun} in status '{status.value}'.")
    for transition in in_status:
        if transition.actors & actors:
            return transition
    allowed = ", ".join(sorted({a.value for t in in_status for a in t.actors}))
    raise ForbiddenException(detail=f"Only {allowed} may {verb} this {noun}.")


def acting_as(transition: Transition, actors: set[Actor]) -> Actor:
    """The party a transition is recorded under when the caller holds several."""
    for actor in (Actor.reviewer, Actor.supervisor, Actor.owner, Actor.hr):
        if actor in transition.actors and actor in actors:
            return actor
    raise ForbiddenException()
