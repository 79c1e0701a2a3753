"""
Configuration module for the CFP registry API.

Centralizes all configuration with environment variable support
and validation.
"""

import os
from pathlib import Path
from typing import Dict

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("CFP_ENV", "dev")  # dev|stage|prod

# Ledger transport
RPC_URL = os.getenv("RPC_URL", os.getenv("GANACHE_URL", "http://127.0.0.1:8545"))
RPC_TIMEOUT_SECONDS = int(os.getenv("RPC_TIMEOUT_SECONDS", "30"))
TX_RECEIPT_TIMEOUT_SECONDS = int(os.getenv("TX_RECEIPT_TIMEOUT_SECONDS", "120"))

# Operating key (seed phrase of the account that submits every write)
MNEMONIC = os.getenv("MNEMONIC", "")
MNEMONIC_ACCOUNT_PATH = os.getenv("MNEMONIC_ACCOUNT_PATH", "m/44'/60'/0'/0/0")

# Deployed contracts
CFP_FACTORY_ADDRESS = os.getenv("CFP_FACTORY_ADDRESS", "")
ENS_REGISTRY_ADDRESS = os.getenv("ENS_REGISTRY_ADDRESS", "")
PUBLIC_RESOLVER_ADDRESS = os.getenv("PUBLIC_RESOLVER_ADDRESS", "")
REVERSE_REGISTRAR_ADDRESS = os.getenv("REVERSE_REGISTRAR_ADDRESS", "")
LLAMADOS_REGISTRAR_ADDRESS = os.getenv("LLAMADOS_REGISTRAR_ADDRESS", "")
USUARIOS_REGISTRAR_ADDRESS = os.getenv("USUARIOS_REGISTRAR_ADDRESS", "")

# Naming domains
CALLS_DOMAIN = os.getenv("CALLS_DOMAIN", "llamados.cfp")
USERS_DOMAIN = os.getenv("USERS_DOMAIN", "usuarios.cfp")

# Rate limits (requests per minute, per client, mutating endpoints only)
WRITE_RPM = int(os.getenv("WRITE_RPM", "60"))

# HTTP
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("LOG_FILE", "")


def contract_addresses() -> Dict[str, str]:
    """Configured contract addresses, keyed the way the UI expects them."""
    return {
        "cfpFactoryAddress": CFP_FACTORY_ADDRESS,
        "ensRegistryAddress": ENS_REGISTRY_ADDRESS,
        "publicResolverAddress": PUBLIC_RESOLVER_ADDRESS,
        "reverseRegistrarAddress": REVERSE_REGISTRAR_ADDRESS,
        "llamadosRegistrarAddress": LLAMADOS_REGISTRAR_ADDRESS,
        "usuariosRegistrarAddress": USUARIOS_REGISTRAR_ADDRESS,
    }


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate that all required settings are present.
    Returns dict of setting -> configured.
    """
    required = {
        "rpc_url": RPC_URL,
        "mnemonic": MNEMONIC,
        **contract_addresses(),
    }
    if LOG_FILE:
        required["log_dir"] = str(Path(LOG_FILE).parent) if Path(LOG_FILE).parent.exists() else ""
    return {name: bool(value) for name, value in required.items()}


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("CFP_DEBUG", "").lower() in ("1", "true", "yes")
