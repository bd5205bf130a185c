from enum import Enum


class TaskStatus(str, Enum):
    PLANNED = "PLANNED"
    ASSIGNED = "ASSIGNED"
    ACCEPTED = "ACCEPTED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"


class Priority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class QuantityUnit(str, Enum):
    KG = "kg"
    T = "t"
    M3 = "m3"
    PCS = "pcs"


class ContainerType(str, Enum):
    CUSTOMER = "customer"
    WAREHOUSE = "warehouse"


class ScanContext(str, Enum):
    WAREHOUSE_INFO = "WAREHOUSE_INFO"
    CUSTOMER_INFO = "CUSTOMER_INFO"
    TASK_ACCEPT_AT_CUSTOMER = "TASK_ACCEPT_AT_CUSTOMER"
    TASK_PICKUP = "TASK_PICKUP"
    TASK_COMPLETE_AT_WAREHOUSE = "TASK_COMPLETE_AT_WAREHOUSE"


class LocationType(str, Enum):
    WAREHOUSE = "WAREHOUSE"
    CUSTOMER = "CUSTOMER"
    OTHER = "OTHER"


class ScanResult(str, Enum):
    SUCCESS = "SUCCESS"
    INVALID_CONTAINER = "INVALID_CONTAINER"
    ERROR = "ERROR"


class ActivityType(str, Enum):
    TASK_CREATED = "TASK_CREATED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_ACCEPTED = "TASK_ACCEPTED"
    TASK_PICKED_UP = "TASK_PICKED_UP"
    TASK_IN_TRANSIT = "TASK_IN_TRANSIT"
    TASK_DELIVERED = "TASK_DELIVERED"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_CANCELLED = "TASK_CANCELLED"
    CONTAINER_SCANNED_AT_CUSTOMER = "CONTAINER_SCANNED_AT_CUSTOMER"
    CONTAINER_SCANNED_AT_WAREHOUSE = "CONTAINER_SCANNED_AT_WAREHOUSE"
    WEIGHT_RECORDED = "WEIGHT_RECORDED"


class TaskOperation(str, Enum):
    CREATE = "create"
    ASSIGN = "assign"
    REASSIGN = "reassign"
    ACCEPT = "accept"
    PICKUP = "pickup"
    RECORD_WEIGHT = "record_weight"
    DELIVER = "deliver"
    CANCEL = "cancel"
    INFO_SCAN = "info_scan"
