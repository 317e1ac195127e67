"""Test environment: a temporary SQLite file and fixed operator identity.

Set before any mailsync import because configuration is read at import time.
A file DB (not :memory:) is used so TestClient worker threads see the same data.
"""

import os
import tempfile

_test_db_file = tempfile.NamedTemporaryFile(suffix=".sqlite", delete=False)
_test_db_file.close()

os.environ["DATABASE_URL"] = f"sqlite:///{_test_db_file.name}"
os.environ["OPERATOR_EMAIL"] = "support@shop.example"
os.environ["OPERATOR_NAME"] = "Shop Support"
os.environ["MESSAGE_ID_DOMAIN"] = "shop.example"
os.environ["TRACING_ENABLED"] = "false"
os.environ["SYNC_BATCH_LIMIT"] = "0"
os.environ["SUBJECT_MATCH_WINDOW_DAYS"] = "30"
os.environ["IMAP_SENT_FOLDER"] = ""
os.environ["S3_ENDPOINT_URL"] = ""
os.environ["ATTACHMENT_PUBLIC_BASE_URL"] = ""
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


def pytest_sessionfinish(session, exitstatus):
    try:
        os.unlink(_test_db_file.name)
    except OSError:
        pass
