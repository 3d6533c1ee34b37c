"""Environment-driven configuration shared by every scanner command."""
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

DEFAULT_ORGS = [
    "redhat-best-practices-for-k8s",
    "openshift",
    "openshift-kni",
    "redhat-openshift-ecosystem",
    "redhatci",
]
DEFAULT_TRACKING_REPO = "redhat-best-practices-for-k8s/telco-bot"
DEFAULT_CACHE_DIR = "caches"
DEFAULT_REPORT_DIR = "reports"
DEFAULT_LISTS_DIR = "lists"
DEFAULT_LOCAL_REPOS_DIR = os.path.join("~", "Repositories", "go", "src", "github.com")

# Results caches are considered fresh for six hours
DEFAULT_RESULTS_TTL = 6 * 3600
DEFAULT_INACTIVITY_DAYS = 180

INDIVIDUAL_REPOSITORIES = "Individual Repositories"


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class TelcoBotConfig:
    """Configuration for the compliance scanners.

    Values come from the environment (optionally a ``.env`` file) and may be
    overridden by each command's flags after construction.
    """

    def __init__(self, require_token: bool = True):
        self.GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
        if require_token and not self.GITHUB_TOKEN:
            raise ValueError("GITHUB_TOKEN environment variable is required")
        self.GITHUB_API = os.getenv("GITHUB_API", "https://api.github.com")
        self.ORGS = _split_list(os.getenv("TELCO_BOT_ORGS")) or list(DEFAULT_ORGS)
        self.TRACKING_REPO = os.getenv("TELCO_BOT_TRACKING_REPO", DEFAULT_TRACKING_REPO)
        self.CACHE_DIR = os.path.abspath(os.getenv("TELCO_BOT_CACHE_DIR", DEFAULT_CACHE_DIR))
        self.REPORT_DIR = os.path.abspath(os.getenv("TELCO_BOT_REPORT_DIR", DEFAULT_REPORT_DIR))
        # Hand-maintained repository lists and blocklists
        self.LISTS_DIR = os.path.abspath(os.getenv("TELCO_BOT_LISTS_DIR", DEFAULT_LISTS_DIR))
        self.LOCAL_REPOS_DIR = os.path.expanduser(
            os.getenv("TELCO_BOT_LOCAL_REPOS_DIR", DEFAULT_LOCAL_REPOS_DIR)
        )
        self.INACTIVITY_DAYS = int(os.getenv("TELCO_BOT_INACTIVITY_DAYS", str(DEFAULT_INACTIVITY_DAYS)))
        self.RESULTS_TTL = int(os.getenv("TELCO_BOT_RESULTS_TTL", str(DEFAULT_RESULTS_TTL)))
        self.XCRYPTO_SLACK_WEBHOOK = os.getenv("XCRYPTO_SLACK_WEBHOOK")
        if self.INACTIVITY_DAYS <= 0:
            raise ValueError("TELCO_BOT_INACTIVITY_DAYS must be a positive number of days")
        if self.RESULTS_TTL < 0:
            raise ValueError("TELCO_BOT_RESULTS_TTL must not be negative")

    def cache_path(self, name: str) -> str:
        """Return the path of a file inside the shared cache directory."""
        return os.path.join(self.CACHE_DIR, name)

    def report_path(self, name: str) -> str:
        return os.path.join(self.REPORT_DIR, name)

    def list_path(self, name: str) -> str:
        return os.path.join(self.LISTS_DIR, name)

    def ensure_dirs(self) -> None:
        Path(self.CACHE_DIR).mkdir(parents=True, exist_ok=True)
        Path(self.REPORT_DIR).mkdir(parents=True, exist_ok=True)
