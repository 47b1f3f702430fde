from enum import IntEnum


class PublishStatus(IntEnum):
    PUBLISHED = 1001
    UNPUBLISHED = 1009


class PatternStatus(IntEnum):
    ACTIVE = 1
    INACTIVE = 2
    ARCHIVED = 3


class AssignmentStatus(IntEnum):
    ACTIVE = 1
    ENDED = 2
    SUPERSEDED = 3


class GenerationType(IntEnum):
    MANUAL = 1
    SCHEDULED = 2
    ON_DEMAND = 3


class AbsenceStatus(IntEnum):
    PENDING = 1
    REJECTED = 2
    APPROVED = 3


# 星期一 = 1 … 星期日 = 7，與地區設定的週起始日無關
DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}

GENERATION_WINDOW_WEEKS = (1, 2, 4)
