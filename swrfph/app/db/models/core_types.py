import enum

class Role(str, enum.Enum):
    admin = "ADMIN"
    provider = "PROVIDER"

class OrderStatus(str, enum.Enum):
    pending = "PENDING"
    processing = "PROCESSING"
    shipped = "SHIPPED"
    delivered = "DELIVERED"
    cancelled = "CANCELLED"

class NotificationType(str, enum.Enum):
    order = "ORDER"
    inventory = "INVENTORY"
    system = "SYSTEM"
    shipment = "SHIPMENT"
    price_change = "PRICE_CHANGE"
    stock_alert = "STOCK_ALERT"
    promotion = "PROMOTION"

class AuditAction(str, enum.Enum):
    create = "CREATE"
    read = "READ"
    update = "UPDATE"
    delete = "DELETE"
    login = "LOGIN"
    logout = "LOGOUT"
    login_failed = "LOGIN_FAILED"

class AuditSeverity(str, enum.Enum):
    low = "LOW"
    medium = "MEDIUM"
    high = "HIGH"
    critical = "CRITICAL"

class SettingCategory(str, enum.Enum):
    general = "GENERAL"
    notification = "NOTIFICATION"
    integration = "INTEGRATION"
    backup = "BACKUP"
    organization = "ORGANIZATION"

class InvoiceStatus(str, enum.Enum):
    pending = "PENDING"
    paid = "PAID"
    overdue = "OVERDUE"
    cancelled = "CANCELLED"

class ReportFormat(str, enum.Enum):
    json = "JSON"
    csv = "CSV"
    excel = "EXCEL"
    pdf = "PDF"

class ReportStatus(str, enum.Enum):
    pending = "PENDING"
    processing = "PROCESSING"
    completed = "COMPLETED"
    failed = "FAILED"


# Orders that no longer move (history views)
PAST_ORDER_STATUSES = {
    OrderStatus.delivered,
    OrderStatus.cancelled,
}
