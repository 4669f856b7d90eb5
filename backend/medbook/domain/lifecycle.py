"""
Booking status state machine.

Statuses move forward only. Users may cancel their own live booking; staff
may move bookings along the lifecycle and correct attendance outcomes; the
attendance scanner may mark a confirmed or waitlisted booking attended.
cancelled is terminal.

A booking holds a seat while it is confirmed, attended or no_show. The
event's confirmed_count is the number of seat holders, so every transition
changes it by seat_delta(current, target).
"""


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    WAITLIST = "waitlist"
    CANCELLED = "cancelled"
    ATTENDED = "attended"
    NO_SHOW = "no_show"

    ALL = (PENDING, CONFIRMED, WAITLIST, CANCELLED, ATTENDED, NO_SHOW)
    SEAT_HOLDING = frozenset({CONFIRMED, ATTENDED, NO_SHOW})
    LIVE = frozenset({PENDING, CONFIRMED, WAITLIST, ATTENDED, NO_SHOW})


class Actor:
    USER = "user"
    ADMIN = "admin"
    ATTENDANCE = "attendance"


S = BookingStatus

TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    Actor.USER: {
        S.PENDING: frozenset({S.CANCELLED}),
        S.CONFIRMED: frozenset({S.CANCELLED}),
        S.WAITLIST: frozenset({S.CANCELLED}),
    },
    Actor.ADMIN: {
        S.PENDING: frozenset({S.CONFIRMED, S.WAITLIST, S.CANCELLED}),
        S.WAITLIST: frozenset({S.CONFIRMED, S.CANCELLED}),
        S.CONFIRMED: frozenset({S.ATTENDED, S.NO_SHOW, S.CANCELLED}),
        # corrections
        S.ATTENDED: frozenset({S.NO_SHOW, S.CONFIRMED}),
        S.NO_SHOW: frozenset({S.ATTENDED, S.CONFIRMED}),
    },
    Actor.ATTENDANCE: {
        S.CONFIRMED: frozenset({S.ATTENDED}),
        S.WAITLIST: frozenset({S.ATTENDED}),
    },
}


class TransitionError(ValueError):
    def __init__(self, current: str, target: str, actor: str):
        self.current = current
        self.target = target
        self.actor = actor
        super().__init__(f"Invalid booking transition: {current} -> {target}")


def allowed_targets(current: str, actor: str) -> frozenset[str]:
    return TRANSITIONS.get(actor, {}).get(current, frozenset())


def can_transition(current: str, target: str, actor: str) -> bool:
    return target in allowed_targets(current, actor)


def assert_transition(current: str, target: str, actor: str) -> None:
    if target not in BookingStatus.ALL:
        raise TransitionError(current, target, actor)
    if not can_transition(current, target, actor):
        raise TransitionError(current, target, actor)


def holds_seat(status: str) -> bool:
    return status in BookingStatus.SEAT_HOLDING


def seat_delta(current: str, target: str) -> int:
    """+1 if the transition takes a seat, -1 if it frees one, else 0."""
    return int(holds_seat(target)) - int(holds_seat(current))
