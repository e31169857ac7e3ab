"""Supabase client and exam engine, cached via Streamlit."""
import logging

import streamlit as st
from supabase import Client

from exam_session import config
from exam_session.database import SupabaseStore, create_supabase_client
from exam_session.engine import ExamEngine, build_engine

logger = logging.getLogger(__name__)


@st.cache_resource
def get_supabase() -> Client:
    return create_supabase_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return create_supabase_client()


@st.cache_resource
def get_engine() -> ExamEngine:
    """One engine per server process, shared by every browser session."""
    if config.STORE_BACKEND == "supabase":
        store = SupabaseStore(get_supabase())
        return ExamEngine(store, store)
    return build_engine(config.STORE_BACKEND)


def get_engine_uncached(backend: str = config.STORE_BACKEND) -> ExamEngine:
    """For CLI/scripts (no Streamlit context)."""
    if backend == "supabase":
        store = SupabaseStore(get_supabase_uncached())
        return ExamEngine(store, store)
    return build_engine(backend)
