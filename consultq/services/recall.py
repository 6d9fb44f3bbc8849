"""Missed-token derivation and the recall policy.

Everything here is a pure function over an appointment snapshot and the
session cursor. Nothing is cached between calls, so the result always agrees
with the appointment records, including ones edited by hand.

Cursor semantics:

* ``position`` is the session's ``queue_position``: the highest token reached
  by a sequential call. Zero means the session has not started.
* A token is *missed* when it is still ``confirmed`` and not above
  ``position``. The token being served is ``in-progress`` and therefore never
  missed while it is on screen, including during the call that moves past it.
  It turns ``confirmed`` when that call commits and counts as missed from the
  following call on.
* ``served_since_recall`` counts regular calls, the first call of the session
  included, and resets on every recall.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Literal, Optional, Sequence

from consultq.schemas.records import AppointmentRecord
from consultq.services.exceptions import NoMoreAppointments

DecisionReason = Literal["first", "sequential", "interval", "forced"]


@dataclass(frozen=True)
class CallDecision:
    token_number: int
    is_recall: bool
    missed_tokens_count: int
    reason: DecisionReason


def confirmed_tokens(appointments: Iterable[AppointmentRecord]) -> List[int]:
    """Return the ascending tokens still waiting to be seen."""

    return sorted({item.token_number for item in appointments if item.status == "confirmed"})


def missed_tokens(confirmed: Sequence[int], position: int) -> List[int]:
    if position <= 0:
        return []
    return [token for token in confirmed if token <= position]


def decide_next(
    confirmed: Sequence[int],
    *,
    position: int,
    served_since_recall: int,
    recall_enabled: bool,
    recall_check_interval: int,
) -> CallDecision:
    """Pick the token the next call should serve.

    ``confirmed`` never holds the token on screen, so a call can neither
    recall the patient it is moving past nor count them as missed.

    Raises :class:`NoMoreAppointments` when nothing is left to call.
    """

    ordered = sorted(confirmed)
    if position <= 0:
        if not ordered:
            raise NoMoreAppointments("No confirmed appointments left for today")
        return CallDecision(ordered[0], False, 0, "first")

    missed = missed_tokens(ordered, position)
    if missed and recall_enabled and served_since_recall >= recall_check_interval:
        return CallDecision(missed[0], True, len(missed), "interval")

    for token in ordered:
        if token > position:
            return CallDecision(token, False, len(missed), "sequential")

    if missed:
        return CallDecision(missed[0], True, len(missed), "forced")
    raise NoMoreAppointments("No more appointments for today")


def calls_until_recall(
    served_since_recall: int, recall_check_interval: int, recall_enabled: bool
) -> Optional[int]:
    """Regular calls left before the next interval recall becomes due.

    Zero means the next call recalls if any token is missed. ``None`` when
    interval recall is switched off.
    """

    if not recall_enabled:
        return None
    return max(recall_check_interval - served_since_recall, 0)
