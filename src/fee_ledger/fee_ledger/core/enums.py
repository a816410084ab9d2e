from __future__ import annotations

from enum import Enum


class FeeComponentType(str, Enum):
    """Loại khoản phí ở cấp tổ chức."""

    TUITION = "tuition"
    ADMISSION = "admission"
    TRANSPORT = "transport"
    LAB = "lab"
    LIBRARY = "library"
    SPORTS = "sports"
    EXAM = "exam"
    UNIFORM = "uniform"
    MISC = "misc"


class FeeStructureSource(str, Enum):
    BATCH_DEFAULT = "batch_default"
    CUSTOM = "custom"
    MIGRATED = "migrated"


class InstallmentStatus(str, Enum):
    """Trạng thái kỳ đóng phí, suy ra từ số đã trả, số phải trả và hạn nộp."""

    UPCOMING = "upcoming"
    DUE = "due"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentMode(str, Enum):
    CASH = "cash"
    UPI = "upi"
    BANK = "bank"


class ScholarshipType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    COMPONENT_WAIVER = "component_waiver"


class ScholarshipBasis(str, Enum):
    MERIT = "merit"
    NEED_BASED = "need_based"
    SPORTS = "sports"
    SIBLING = "sibling"
    STAFF_WARD = "staff_ward"
    GOVERNMENT = "government"
    CUSTOM = "custom"


class WriteMode(str, Enum):
    """How a structure write lands in storage: fresh row or replacement of an existing one."""

    INSERT = "insert"
    REPLACE = "replace"
