"""
Ability evaluation: turns a role's permission rules into a queryable
``can(action, subject, field)`` check.

Rules form a strict allow-list. A query is granted when any rule matches;
there is no ordering, precedence or deny rule. ``manage`` matches every
action and ``all`` matches every subject.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union, FrozenSet
import enum
import logging

from .roles import RoleName

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    MANAGE = "manage"
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Subject(str, enum.Enum):
    USER = "User"
    PATIENT = "Patient"
    DOCTOR = "Doctor"
    APPOINTMENT = "Appointment"
    DASHBOARD = "Dashboard"
    INVOICES = "Invoices"
    ALL = "all"


ActionLike = Union[Action, str]
SubjectLike = Union[Subject, str]


@dataclass(frozen=True)
class PermissionRule:
    action: Action
    subject: Subject
    fields: Optional[FrozenSet[str]] = None
    conditions: Optional[Mapping[str, Any]] = None

    @classmethod
    def of(
        cls,
        action: ActionLike,
        subject: SubjectLike,
        fields: Optional[Iterable[str]] = None,
        conditions: Optional[Mapping[str, Any]] = None,
    ) -> "PermissionRule":
        """Build a rule from raw values, rejecting unknown actions or subjects."""
        try:
            parsed_action = Action(action)
        except ValueError:
            raise ValueError(f"Unknown permission action: {action!r}")
        try:
            parsed_subject = Subject(subject)
        except ValueError:
            raise ValueError(f"Unknown permission subject: {subject!r}")

        if isinstance(fields, str):
            fields = [fields]
        field_set = frozenset(f for f in fields) if fields is not None else None

        return cls(
            action=parsed_action,
            subject=parsed_subject,
            fields=field_set,
            conditions=conditions,
        )

    def matches(self, action: str, subject: str, field: Optional[str] = None) -> bool:
        if self.action is not Action.MANAGE and self.action.value != action:
            return False
        if self.subject is not Subject.ALL and self.subject.value != subject:
            return False
        if field is None or not self.fields:
            # An empty or unresolved field list allows every field.
            return True
        return field in self.fields


def _value(item: Union[enum.Enum, str]) -> str:
    return item.value if isinstance(item, enum.Enum) else str(item)


class Ability:
    """Read-only capability set built once per request."""

    def __init__(self, rules: Iterable[PermissionRule] = ()):
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple:
        return self._rules

    def can(
        self,
        action: ActionLike,
        subject: SubjectLike,
        field: Optional[str] = None,
    ) -> bool:
        action_value = _value(action)
        subject_value = _value(subject)
        return any(
            rule.matches(action_value, subject_value, field)
            for rule in self._rules
        )

    def cannot(
        self,
        action: ActionLike,
        subject: SubjectLike,
        field: Optional[str] = None,
    ) -> bool:
        return not self.can(action, subject, field)

    def to_list(self) -> List[dict]:
        """Serializable form of the rules, for clients that mirror the checks."""
        serialized = []
        for rule in self._rules:
            item = {"action": rule.action.value, "subject": rule.subject.value}
            if rule.fields:
                item["fields"] = sorted(rule.fields)
            if rule.conditions:
                item["conditions"] = dict(rule.conditions)
            serialized.append(item)
        return serialized

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self):
        return f"<Ability(rules={len(self._rules)})>"


def create_ability(rules: Iterable[PermissionRule]) -> Ability:
    """Build an Ability from rules. An empty list denies everything."""
    return Ability(rules)


# Fixed role table
ROLE_RULES = {
    RoleName.SUPERADMIN: [
        (Action.MANAGE, Subject.ALL),
    ],
    RoleName.ADMIN: [
        (Action.MANAGE, Subject.USER),
        (Action.MANAGE, Subject.PATIENT),
        (Action.MANAGE, Subject.DOCTOR),
        (Action.MANAGE, Subject.APPOINTMENT),
        (Action.MANAGE, Subject.INVOICES),
        (Action.READ, Subject.DASHBOARD),
    ],
    RoleName.DOCTOR: [
        (Action.READ, Subject.DOCTOR),
        (Action.UPDATE, Subject.DOCTOR),
        (Action.READ, Subject.PATIENT),
        (Action.READ, Subject.APPOINTMENT),
        (Action.UPDATE, Subject.APPOINTMENT),
        (Action.CREATE, Subject.APPOINTMENT),
        (Action.READ, Subject.DASHBOARD),
        (Action.READ, Subject.INVOICES),
    ],
    RoleName.PATIENT: [
        (Action.READ, Subject.PATIENT),
        (Action.READ, Subject.APPOINTMENT),
        (Action.CREATE, Subject.APPOINTMENT),
        (Action.READ, Subject.INVOICES),
    ],
    RoleName.GUEST: [
        (Action.READ, Subject.DOCTOR),
        (Action.READ, Subject.APPOINTMENT),
    ],
}


def define_ability_rules_for(role: Optional[Union[RoleName, str]]) -> List[PermissionRule]:
    """Return the fixed rules for a role name; unknown or missing roles get none."""
    if role is None:
        return []
    try:
        role_name = RoleName(role)
    except ValueError:
        return []
    return [PermissionRule(action, subject) for action, subject in ROLE_RULES[role_name]]


def define_ability_for(role: Optional[Union[RoleName, str]]) -> Ability:
    return create_ability(define_ability_rules_for(role))


# Lexicon for persisted role_permissions rows
SUBJECT_LEXICON = {
    "ALL": Subject.ALL,
    "USERS": Subject.USER,
    "USER": Subject.USER,
    "PATIENTS": Subject.PATIENT,
    "PATIENT": Subject.PATIENT,
    "DOCTORS": Subject.DOCTOR,
    "DOCTOR": Subject.DOCTOR,
    "APPOINTMENTS": Subject.APPOINTMENT,
    "APPOINTMENT": Subject.APPOINTMENT,
    "DASHBOARD": Subject.DASHBOARD,
    "INVOICES": Subject.INVOICES,
    "INVOICE": Subject.INVOICES,
}

ACTION_LEXICON = {
    "MANAGE": Action.MANAGE,
    "READ": Action.READ,
    "CREATE": Action.CREATE,
    "UPDATE": Action.UPDATE,
    "DELETE": Action.DELETE,
}


def _row_value(row: Mapping[str, Any], key: str) -> Any:
    if key in row:
        return row[key]
    return row.get(key.lower())


def _grants_access(can_access: Any) -> bool:
    """Missing CAN_ACCESS grants; zero or an unparseable value denies."""
    if can_access is None:
        return True
    try:
        return int(can_access) != 0
    except (TypeError, ValueError):
        return False


def map_permission_rows(rows: Iterable[Mapping[str, Any]]) -> List[PermissionRule]:
    """
    Translate persisted permission rows into rules.

    Rows carry SUBJECT, ACTION and optionally FIELD_NAME and CAN_ACCESS.
    Rows with an unknown subject or action are skipped, and rows with
    CAN_ACCESS of zero or a non-numeric value are dropped rather than
    turned into negative rules.
    """
    rules = []
    for row in rows:
        subject = SUBJECT_LEXICON.get(str(_row_value(row, "SUBJECT") or "").strip().upper())
        action = ACTION_LEXICON.get(str(_row_value(row, "ACTION") or "").strip().upper())
        if subject is None or action is None:
            logger.debug("Ignoring unknown permission row: %s", dict(row))
            continue

        if not _grants_access(_row_value(row, "CAN_ACCESS")):
            continue

        fields = None
        field_name = _row_value(row, "FIELD_NAME")
        if field_name and str(field_name).strip():
            fields = [f.strip() for f in str(field_name).split(",") if f.strip()]

        rules.append(PermissionRule.of(action, subject, fields=fields))

    return rules
