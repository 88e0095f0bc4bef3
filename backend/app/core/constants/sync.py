"""
Sync constants — job/item states, job types, audit levels, connection status.

Version: 1.0.0
"""

# Job states
JOB_QUEUED: str = "queued"
JOB_RUNNING: str = "running"
JOB_SUCCEEDED: str = "succeeded"
JOB_DEAD: str = "dead"
JOB_STATES = (JOB_QUEUED, JOB_RUNNING, JOB_SUCCEEDED, JOB_DEAD)

# Job types
JOB_TYPE_FULL_SYNC: str = "full_sync"
JOB_TYPE_DELTA: str = "delta"
JOB_TYPES = (JOB_TYPE_FULL_SYNC, JOB_TYPE_DELTA)

# Job item states
ITEM_QUEUED: str = "queued"
ITEM_RUNNING: str = "running"
ITEM_SUCCEEDED: str = "succeeded"
ITEM_FAILED: str = "failed"

# Audit levels
LEVEL_INFO: str = "info"
LEVEL_WARN: str = "warn"
LEVEL_ERROR: str = "error"

# Connection lifecycle
CONNECTION_ACTIVE: str = "active"
CONNECTION_PAUSED: str = "paused"
CONNECTION_DISABLED: str = "disabled"
CONNECTION_STATUSES = (CONNECTION_ACTIVE, CONNECTION_PAUSED, CONNECTION_DISABLED)

# Platforms
PLATFORM_SHOPIFY: str = "shopify"
PLATFORM_WOOCOMMERCE: str = "woocommerce"

# Error text recorded on jobs
CANCELLED_ERROR: str = "cancelled"
CONNECTION_NOT_FOUND_ERROR: str = "Connection not found"
ORPHANED_JOB_ERROR: str = "Worker stopped while job was running"

# Rows considered per claim attempt (oldest first)
CLAIM_CANDIDATES: int = 5

DEFAULT_CURRENCY: str = "USD"
