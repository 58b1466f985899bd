# provisioner/config.py
# -*- coding: utf-8 -*-
"""
Centralized static constants for the provisioner.

This module holds values that never change at runtime: the script version,
fixed host paths, default tool invocations and logging symbols.

Mutable per-deployment configuration (packages, projects, database
credentials, readiness target) lives in 'provisioner/config_models.py'
and is resolved by 'provisioner/config_loader.py'.
"""

from pathlib import Path

SCRIPT_VERSION: str = "1.0.0"

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent

BANNER_TITLE: str = "App Provisioner"

STATE_FILE_DIR: Path = Path.home() / ".local" / "state" / "app-provisioner"
STATE_FILE_PATH: Path = STATE_FILE_DIR / "completed_steps.txt"
LOCK_FILE_PATH: Path = Path("/tmp") / "app-provisioner.lock"

SYSTEMD_UNIT_DIR: Path = Path("/etc/systemd/system")

LOG_FORMAT: str = "%(asctime)s - %(message)s"
LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

SYMBOLS: dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}

# --- Runtime version manager ---
RUNTIME_DEFAULT: str = "node"
RUNTIME_VERSION_DEFAULT: str = "16"
NVM_VERSION: str = "v0.39.3"
NVM_INSTALL_URL: str = (
    f"https://raw.githubusercontent.com/nvm-sh/nvm/{NVM_VERSION}/install.sh"
)

# --- System packages ensured before anything else ---
BASE_PACKAGES: list[str] = [
    "curl",
    "npm",
]

# --- Project tooling ---
DEPENDENCY_INSTALL_COMMAND: list[str] = ["npm", "install"]
MIGRATION_DEPLOY_COMMAND: list[str] = ["npx", "prisma", "migrate", "deploy"]
MIGRATION_STATUS_COMMAND: list[str] = ["npx", "prisma", "migrate", "status"]

SERVICE_PATH_SUFFIX: str = "/usr/local/bin"
SERVICE_ENVIRONMENT_DEFAULT: dict[str, str] = {"NODE_ENV": "production"}
