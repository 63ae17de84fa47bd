from enum import Enum


class Region(str, Enum):
    NORTHEAST = "NORTHEAST"
    SOUTHEAST = "SOUTHEAST"
    MIDWEST = "MIDWEST"
    SOUTHWEST = "SOUTHWEST"
    MOUNTAIN = "MOUNTAIN"
    PACIFIC = "PACIFIC"


class SchoolStatus(str, Enum):
    COLLECTING = "COLLECTING"
    READY = "READY"
    MATCHED = "MATCHED"
    CORRESPONDING = "CORRESPONDING"
    DONE = "DONE"


# Statuses a school may hold when a match is recorded
RECORD_MATCH_STATUSES = (SchoolStatus.COLLECTING.value, SchoolStatus.READY.value)
# Statuses a school may hold when pen pals are assigned
ASSIGN_PENPALS_STATUSES = (SchoolStatus.READY.value, SchoolStatus.MATCHED.value)


class PenpalPreference(str, Enum):
    ONE = "ONE"
    MULTIPLE = "MULTIPLE"


class UnitKind(str, Enum):
    SCHOOL = "school"
    GROUP = "group"


class MatchType(str, Enum):
    SCHOOL_SCHOOL = "school-school"
    GROUP_GROUP = "group-group"
    GROUP_SCHOOL = "group-school"


class GroupEditOutcome(str, Enum):
    UPDATED = "UPDATED"
    DISSOLVED = "DISSOLVED"


class AuditAction(str, Enum):
    MATCH_RECORDED = "MATCH_RECORDED"
    PENPALS_ASSIGNED = "PENPALS_ASSIGNED"
    STATUS_PROMOTED = "STATUS_PROMOTED"
    GROUP_CREATED = "GROUP_CREATED"
    GROUP_MEMBERS_ADDED = "GROUP_MEMBERS_ADDED"
    GROUP_MEMBERS_REMOVED = "GROUP_MEMBERS_REMOVED"
    GROUP_DISSOLVED = "GROUP_DISSOLVED"
    GROUP_DELETED = "GROUP_DELETED"
