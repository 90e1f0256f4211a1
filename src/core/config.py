"""
Configuration constants and environment setup.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# PATHS
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.parent
DB_PATH = Path(
    os.environ.get("BILLING_DB_PATH", PROJECT_ROOT / "data" / "db" / "ticket-billing.db")
)

# =============================================================================
# XERO CONFIGURATION
# =============================================================================

XERO_CLIENT_ID = os.environ.get("XERO_CLIENT_ID", "")
XERO_CLIENT_SECRET = os.environ.get("XERO_CLIENT_SECRET", "")
XERO_API_BASE = os.environ.get("XERO_API_BASE", "https://api.xero.com/api.xro/2.0")
XERO_TOKEN_URL = os.environ.get("XERO_TOKEN_URL", "https://identity.xero.com/connect/token")
XERO_TIMEOUT_SECONDS = int(os.environ.get("XERO_TIMEOUT_SECONDS", "30"))

# Catalog item every generated line item references
XERO_ITEM_CODE = os.environ.get("XERO_ITEM_CODE", "Consulting Services")

XERO_DEFAULT_RETRY_AFTER_SECONDS = 60
XERO_TOKEN_REFRESH_MARGIN_SECONDS = int(
    os.environ.get("XERO_TOKEN_REFRESH_MARGIN_SECONDS", "120")
)

# Base64 encoded 32-byte key for token encryption at rest
ENCRYPTION_KEY = os.environ.get("ENCRYPTION_KEY", "")

# =============================================================================
# INVOICE CONFIGURATION
# =============================================================================

VALID_INVOICE_STATUSES = {"DRAFT", "AUTHORISED"}
DEFAULT_INVOICE_STATUS = "DRAFT"

# =============================================================================
# EMAIL CONFIGURATION
# =============================================================================

FROM_EMAIL = os.environ.get("FROM_EMAIL", "")
RECONCILIATION_EMAIL = os.environ.get("RECONCILIATION_EMAIL", "")

# =============================================================================
# MS GRAPH CREDENTIALS (from environment)
# =============================================================================

GRAPH_TENANT_ID = os.environ.get("MICROSOFT_GRAPH_TENANT_ID", "")
GRAPH_APP_ID = os.environ.get("MICROSOFT_GRAPH_APP_ID", "")
GRAPH_CLIENT_SECRET = os.environ.get("MICROSOFT_GRAPH_CLIENT_SECRET", "")

# =============================================================================
# API CONFIGURATION
# =============================================================================

BILLING_API_KEY = os.environ.get("BILLING_API_KEY", "")
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "8000"))
API_DEBUG = os.environ.get("API_DEBUG", "false").lower() == "true"
API_VERSION = "1.0.0"
