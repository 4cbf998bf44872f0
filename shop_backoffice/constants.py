APP_NAME = "Shop Back Office"

# Remote API defaults (overridable through environment, see config.py)
DEFAULT_API_BASE_URL = "http://localhost:3000"
DEFAULT_API_TIMEOUT = 15.0

LOG_DIR = "logs"
AUDIT_LOG_FILE = "reconciliation.log"

# Money
CURRENCY_PLACES = 2
MONEY_TOLERANCE = 0.01

# Exchange form rules
MIN_REASON_LENGTH = 3
MIN_PRODUCT_QUERY_LENGTH = 2
PRODUCT_SEARCH_LIMIT = 10

# Search debounce (milliseconds). SEARCH_DEBOUNCE_MS is reserved for the
# customer and installment list filters, which are not part of this client;
# only the exchange product search reads a debounce today.
SEARCH_DEBOUNCE_MS = 3000
EXCHANGE_SEARCH_DEBOUNCE_MS = 350

# Payment methods understood by the remote API, with display labels.
PAYMENT_METHODS = {
    "cash": "Cash",
    "pix": "PIX",
    "debit_card": "Debit Card",
    "credit_card": "Credit Card",
    "installment": "Installment",
    "store_credit": "Store Credit",
}

# Store credit is produced by an exchange, never entered as an instrument.
NON_SELECTABLE_METHODS = {"store_credit"}

# Methods accepted when paying installments.
INSTALLMENT_PAYMENT_METHODS = ("cash", "pix", "credit_card", "debit_card")

DEFAULT_PAYMENT_METHOD = "cash"
