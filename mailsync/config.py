"""Configuration and settings."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'mailsync.sqlite'}")

# Logging
LOG_DIR = OUTPUT_DIR / "logs"
LOG_FILE = LOG_DIR / "app.jsonl"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

# Ensure log directory exists
LOG_DIR.mkdir(parents=True, exist_ok=True)

# OpenTelemetry
TRACING_ENABLED = os.getenv("TRACING_ENABLED", "false").lower() == "true"
OTEL_EXPORTER_ENDPOINT = os.getenv("OTEL_EXPORTER_ENDPOINT", "http://localhost:4318/v1/traces")
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "mailsync")
DEPLOYMENT_ENVIRONMENT = os.getenv("DEPLOYMENT_ENVIRONMENT", "development")

# Operator identity (the mailbox owner; everyone else is a counterparty)
OPERATOR_EMAIL = os.getenv("OPERATOR_EMAIL", "support@example.com").strip()
OPERATOR_NAME = os.getenv("OPERATOR_NAME", "Support")

# IMAP (inbound)
IMAP_HOST = os.getenv("IMAP_HOST", "")
IMAP_PORT = int(os.getenv("IMAP_PORT", "993"))
IMAP_USER = os.getenv("IMAP_USER", "")
IMAP_PASSWORD = os.getenv("IMAP_PASSWORD", "")
IMAP_FOLDER = os.getenv("IMAP_FOLDER", "INBOX")
IMAP_SENT_FOLDER = os.getenv("IMAP_SENT_FOLDER", "")  # empty = auto-detect
IMAP_TIMEOUT_SECONDS = float(os.getenv("IMAP_TIMEOUT_SECONDS", "60"))

# SMTP (outbound); credentials default to the IMAP account
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_USER = os.getenv("SMTP_USER", IMAP_USER)
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", IMAP_PASSWORD)
SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", "30"))

# Domain used for synthesized and outbound Message-IDs
MESSAGE_ID_DOMAIN = os.getenv("MESSAGE_ID_DOMAIN", OPERATOR_EMAIL.rpartition("@")[2] or "mailsync.local")

# Attachment storage (S3-compatible)
ATTACHMENT_BUCKET = os.getenv("ATTACHMENT_BUCKET", "email-attachments")
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL", "") or None
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY", "") or None
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY", "") or None
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
ATTACHMENT_PUBLIC_BASE_URL = os.getenv("ATTACHMENT_PUBLIC_BASE_URL", "").rstrip("/")

# Threading
SUBJECT_MATCH_WINDOW_DAYS = int(os.getenv("SUBJECT_MATCH_WINDOW_DAYS", "30"))
NO_SUBJECT_PLACEHOLDER = os.getenv("NO_SUBJECT_PLACEHOLDER", "(no subject)")

# Sync
SYNC_BATCH_LIMIT = int(os.getenv("SYNC_BATCH_LIMIT", "0"))  # 0 = no limit

# HTTP API
API_PORT = int(os.getenv("API_PORT", "8000"))
