"""
Google Cloud client construction.

Uses the service account key when it exists, otherwise falls back to
application default credentials (Cloud Functions / Cloud Run).
"""
import logging
from pathlib import Path
from typing import Optional

from google.cloud import firestore, storage
from google.oauth2 import service_account

from .config import Config

log = logging.getLogger("prompto.clients")

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


def load_credentials(sa_path: Optional[Path] = None):
    sa_path = Path(sa_path or Config.SERVICE_ACCOUNT_FILE)
    if not sa_path.exists():
        log.info(f"No service account at {sa_path} — using application default credentials")
        return None

    credentials = service_account.Credentials.from_service_account_file(
        str(sa_path),
        scopes=SCOPES,
    )
    log.info(f"Loaded service account: {credentials.service_account_email}")
    return credentials


def firestore_client(credentials=None) -> firestore.Client:
    return firestore.Client(project=Config.PROJECT_ID, credentials=credentials)


def storage_bucket(credentials=None, bucket_name: Optional[str] = None) -> storage.Bucket:
    client = storage.Client(project=Config.PROJECT_ID, credentials=credentials)
    return client.bucket(bucket_name or Config.BUCKET)
