CUSTOMER_STATUS_ACTIVE = "ACTIVE"
CUSTOMER_STATUS_SUSPENDED = "SUSPENDED"
CUSTOMER_STATUS_PENDING = "PENDING"
CUSTOMER_STATUS_CANCELLED = "CANCELLED"

WEBSITE_STATUS_ACTIVE = "ACTIVE"
WEBSITE_STATUS_SSL_PENDING = "SSL_PENDING"
WEBSITE_STATUS_FAILED = "FAILED"
WEBSITE_STATUS_PENDING = "PENDING"
WEBSITE_STATUS_DNS_PENDING = "DNS_PENDING"
WEBSITE_PENDING_STATUSES = (WEBSITE_STATUS_PENDING, WEBSITE_STATUS_SSL_PENDING, WEBSITE_STATUS_DNS_PENDING)

ACTIVITY_STATUS_SUCCESS = "SUCCESS"
ACTIVITY_STATUS_FAILED = "FAILED"

ACTION_CREATE_CUSTOMER = "CREATE_CUSTOMER"
ACTION_DELETE_CUSTOMER = "DELETE_CUSTOMER"
ACTION_SUSPEND_CUSTOMER = "SUSPEND_CUSTOMER"
ACTION_UNSUSPEND_CUSTOMER = "UNSUSPEND_CUSTOMER"
ACTION_BILLING_EXTENDED = "BILLING_EXTENDED"
ACTION_AUTO_SUSPEND = "AUTO_SUSPEND_EXPIRED"
ACTION_UPDATE_CUSTOMER = "UPDATE_CUSTOMER"
ACTION_CREATE_WEBSITE = "CREATE_WEBSITE"
ACTION_UPDATE_WEBSITE = "UPDATE_WEBSITE"
ACTION_DELETE_WEBSITE = "DELETE_WEBSITE"
ACTION_ADD_CUSTOM_DOMAIN = "ADD_CUSTOM_DOMAIN"
ACTION_ENABLE_SSL = "ENABLE_SSL"

RESOURCE_CUSTOMER = "customer"
RESOURCE_WEBSITE = "website"

BILLING_CYCLES = ("MONTHLY", "QUARTERLY", "YEARLY")
PHP_VERSIONS = ("7.4", "8.0", "8.1", "8.2", "8.3")

BILLING_MIN_MONTHS = 1
BILLING_MAX_MONTHS = 12
