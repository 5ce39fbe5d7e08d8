"""
config/settings.py
Central configuration for the HSL service alert → GTFS-RT translator.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ─────────────────────────────────────────
# KAFKA
# ─────────────────────────────────────────
KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")

KAFKA_TOPICS = {
    "bulletins":           os.getenv("KAFKA_TOPIC_BULLETINS", "transitdata-service-alerts"),
    "gtfs_service_alerts": os.getenv("KAFKA_TOPIC_GTFS_ALERTS", "gtfs-rt-service-alerts"),
}

KAFKA_PRODUCER_CONFIG = {
    "bootstrap_servers": KAFKA_BOOTSTRAP_SERVERS,
    "acks": "all",
    "retries": 3,
    "max_block_ms": 10000,
    "compression_type": "gzip",   # full-dataset feeds repeat most text every snapshot
}

KAFKA_CONSUMER_CONFIG = {
    "bootstrap_servers": KAFKA_BOOTSTRAP_SERVERS,
    "group_id": os.getenv("KAFKA_CONSUMER_GROUP", "transitdata-alert-gtfsrt"),
    "auto_offset_reset": "earliest",
    "enable_auto_commit": False,
    "max_poll_records": 1,
    "session_timeout_ms": 30000,
}

PUBLISH_TIMEOUT_SECONDS = int(os.getenv("PUBLISH_TIMEOUT_SECONDS", 30))

# ─────────────────────────────────────────
# MESSAGE SCHEMA TAGS
# ─────────────────────────────────────────
SCHEMA_HEADER   = "protobuf-schema"
INBOUND_SCHEMA  = "TransitdataServiceAlert"
OUTBOUND_SCHEMA = "GTFS_ServiceAlert"

# ─────────────────────────────────────────
# OMM DATABASE (poll mode)
# ─────────────────────────────────────────
OMM_DB_CONFIG = {
    "host":     os.getenv("OMM_DB_HOST", "localhost"),
    "port":     int(os.getenv("OMM_DB_PORT", 5432)),
    "dbname":   os.getenv("OMM_DB_NAME", "omm_community"),
    "user":     os.getenv("OMM_DB_USER"),
    "password": os.getenv("OMM_DB_PASSWORD"),
}

# Bulletin timestamps in OMM are stored as local wall-clock time
OMM_TIMEZONE = os.getenv("OMM_TIMEZONE", "Europe/Helsinki")

POLL_INTERVAL_SECONDS = int(os.getenv("POLL_INTERVAL_SECONDS", 30))

# ─────────────────────────────────────────
# GTFS-RT
# ─────────────────────────────────────────
GTFS_RT_VERSION = "2.0"

# Agency-wide selector used for bulletins affecting all routes or stops
AGENCY_ID = os.getenv("AGENCY_ID", "HSL")

# ─────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────
LOG_LEVEL  = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
