"""Actor domain model: human and system principals.

An actor is either a human account or a named system process. The kind
is carried by the type, not by a boolean flag, so a record produced by
a system process can never be attributed to a human id by accident.

System principals use ids of the form ``system:<process_name>``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from approval_audit.domain.errors.decision import ValidationError

SYSTEM_ACTOR_PREFIX: Final[str] = "system:"


@dataclass(frozen=True)
class HumanActor:
    """An authenticated human account (manager, admin, auditor).

    Attributes:
        actor_id: Account id from the authentication context.
        email: Account email, if known.
        role: Role name from the authentication context, if known.
        display_name: Full name for audit display, if known.
    """

    actor_id: str
    email: str | None = None
    role: str | None = None
    display_name: str | None = None

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValidationError("actor_id is required", field="actor_id")
        if self.actor_id.startswith(SYSTEM_ACTOR_PREFIX):
            raise ValidationError(
                f"Human actor id may not use the '{SYSTEM_ACTOR_PREFIX}' prefix",
                field="actor_id",
            )

    @property
    def is_system(self) -> bool:
        return False

    @property
    def name(self) -> str:
        """Name shown in audit trails."""
        return self.display_name or self.email or "Unknown"


@dataclass(frozen=True)
class SystemActor:
    """A named system process acting without a human behind it.

    Attributes:
        process_name: Short process name, e.g. "appeal_window_sweeper".
    """

    process_name: str

    def __post_init__(self) -> None:
        if not self.process_name:
            raise ValidationError("process_name is required", field="process_name")

    @property
    def actor_id(self) -> str:
        return f"{SYSTEM_ACTOR_PREFIX}{self.process_name}"

    @property
    def is_system(self) -> bool:
        return True

    @property
    def name(self) -> str:
        return self.actor_id


Actor = HumanActor | SystemActor


def is_system_principal(
    actor_id: str,
    extra_principals: frozenset[str] = frozenset(),
) -> bool:
    """Check whether an actor id names a recognized system principal.

    Args:
        actor_id: The id recorded on an audit record.
        extra_principals: Configured ids treated as system principals
            even without the ``system:`` prefix (legacy service accounts).

    Returns:
        True if the id belongs to a system principal.
    """
    return actor_id.startswith(SYSTEM_ACTOR_PREFIX) or actor_id in extra_principals
