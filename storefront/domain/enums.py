# storefront/domain/enums.py
import enum


class CouponType(str, enum.Enum):
    percentage = "percentage"
    fixed = "fixed"
    shipping = "shipping"


class MigrationStatus(str, enum.Enum):
    idle = "idle"
    validating_items = "validating_items"
    merging = "merging"
    success = "success"
    partial_success = "partial_success"
    failure = "failure"


class MutationKind(str, enum.Enum):
    adding = "adding"
    updating = "updating"
    removing = "removing"
    clearing = "clearing"
    applying_coupon = "applying_coupon"
