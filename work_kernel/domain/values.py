"""Closed enumerations shared by the domain, models and services."""

from enum import Enum


class EntityKind(str, Enum):
    """Kind of entity a workflow or history entry belongs to."""

    WORK = "work"
    ACTIVITY = "activity"


class WorkStatus(str, Enum):
    """States of the reference work lifecycle."""

    NEW = "New"
    SCHEDULED_JOB = "ScheduledJob"
    REVIEW = "Review"
    CLOSED = "Closed"


class ActivityStatus(str, Enum):
    NEW = "New"
    COMPLETED = "Completed"


class ActivityTypeSubtype(str, Enum):
    """Coarse classification of an activity, independent of its type."""

    BUG_FIX = "BugFix"
    INSTALLATION = "Installation"
    MAINTENANCE = "Maintenance"
    SAFETY = "Safety"
    SOFTWARE = "Software"
    OTHER = "Other"


class ValueType(str, Enum):
    """Declared value type of a custom field."""

    STRING = "String"
    NUMBER = "Number"
    DOUBLE = "Double"
    LOGICAL = "Logical"
    DATE = "Date"
    DATE_TIME = "DateTime"
    LOV = "LOV"
