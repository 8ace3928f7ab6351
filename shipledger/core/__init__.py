"""Core - configuration and logging."""

from shipledger.core.config import Settings, get_engine_url, get_settings
from shipledger.core.logging import setup_logging
