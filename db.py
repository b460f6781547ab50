"""Local store and bank loader built from the environment. Store is cached via Streamlit."""
import logging
import os
from datetime import timedelta
from typing import Dict

import streamlit as st
from dotenv import load_dotenv

from engine import DEFAULT_BANK, RETENTION_DAYS
from examkit.loader import DEFAULT_TIMEOUT, QuestionBankLoader
from examkit.store import PersistenceStore

load_dotenv()

DEFAULT_DATA_FILE = "./data/exam_store.json"


def retention() -> timedelta:
    raw = os.environ.get("EXAM_RETENTION_DAYS")
    try:
        days = float(raw) if raw else RETENTION_DAYS
    except ValueError:
        logging.getLogger(__name__).warning("EXAM_RETENTION_DAYS=%r is not a number, using %d", raw, RETENTION_DAYS)
        days = RETENTION_DAYS
    return timedelta(days=days)


def bank_catalog() -> Dict[str, str]:
    """EXAM_BANKS="file.json=Label,other.json=Other label"; the default bank is always listed."""
    catalog: Dict[str, str] = {}
    for item in (os.environ.get("EXAM_BANKS") or "").split(","):
        item = item.strip()
        if not item:
            continue
        bank_id, _, label = item.partition("=")
        catalog[bank_id.strip()] = label.strip()
    catalog.setdefault(default_bank(), "")
    return catalog


def default_bank() -> str:
    return os.environ.get("EXAM_DEFAULT_BANK") or DEFAULT_BANK


def _env_store() -> PersistenceStore:
    path = os.environ.get("EXAM_DATA_FILE") or DEFAULT_DATA_FILE
    return PersistenceStore(path, default_ttl=retention())


def _env_loader() -> QuestionBankLoader:
    timeout = float(os.environ.get("EXAM_HTTP_TIMEOUT") or DEFAULT_TIMEOUT)
    return QuestionBankLoader(
        base=os.environ.get("EXAM_BANK_BASE_URL") or None,
        timeout=timeout,
        catalog={k: v for k, v in bank_catalog().items() if v},
    )


@st.cache_resource
def get_store() -> PersistenceStore:
    store = _env_store()
    purged = store.purge_expired()
    if purged:
        logging.getLogger(__name__).info("Purged %d expired entries from %s", purged, store.path)
    return store


def get_store_uncached() -> PersistenceStore:
    """For CLI/scripts (no Streamlit context)."""
    return _env_store()


def get_loader() -> QuestionBankLoader:
    return _env_loader()
