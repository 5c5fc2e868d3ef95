"""
Deterministic transformation rules.

This file holds the fixed rule set so the pipeline stays a pure function of
its input text.
"""

import re

# Canonical export columns, in order.
FINAL_HEADERS = [
    "Subscription ID",
    "Request Type",
    "VM Type",
    "Region",
    "Zone",
    "Cores",
    "Status",
]

RDQUOTA_COLUMN = "RDQuota"

# Banner line emitted by the Azure DevOps query export. All four must match.
BANNER_PREFIX = "Project: Quota"
BANNER_MARKERS = (
    "Server: https://dev.azure.com/capacityrequest",
    "Query: [None]",
    "List type: Flat",
)

# Raw (ticketing) export columns.
RAW_ID_ALIASES = ("ID", "RDQuota")
REQUIRED_RAW_COLUMNS = (
    "UTC Ticket",
    "Deployment Constraints",
    "Event ID",
    "Reason",
    "Subscription ID",
    "SKU",
    "Region",
)

AZ_ENABLEMENT = "AZ Enablement/Whitelisting"
NOT_APPLICABLE = "N/A"
UNKNOWN_CORES = "-1"

REQUEST_TYPE_REWRITES = {
    "AZ Enablement/Whitelisting": "Zonal Enablement",
    "Region Enablement/Whitelisting": "Region Enablement",
    "Whitelisting/Quota Increase": "Region Enablement & Quota Increase",
    "Quota Increase": "Quota Increase",
    "Region Limit Increase": "Region Limit Increase",
    "RI Enablement/Whitelisting": "Reserved Instances",
}

# Pre-normalized input never maps "Fulfillment Actions Completed".
PRE_NORMALIZED_STATUS_REWRITES = {
    "Verification Successful": "Approved",
    "Abandoned": "Backlogged",
    "-": "Pending Customer Response",
}

RAW_STATUS_REWRITES = {
    "Fulfillment Actions Completed": "Fulfilled",
    **PRE_NORMALIZED_STATUS_REWRITES,
}

# e.g. "Brazil South (SB)" -> "Brazil South"
REGION_ABBREVIATION = re.compile(r"\s\([A-Z]+\)")

PRE_NORMALIZED_ID_PREFIX = "pre-transformed-"

# Upload / export
ACCEPTED_SUFFIXES = (".csv", ".tsv", ".txt")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
SHEET_NAME = "Sheet1"
UNIFIED_FILENAME = "Unified_Table.xlsx"
UNIFIED_RDQUOTA_FILENAME = "Unified_Table_by_RDQuota.xlsx"
