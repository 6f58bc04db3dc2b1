import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = Path(os.getenv("COORDINATOR_DATA_DIR", str(BASE_DIR / "data")))
DATA_DIR.mkdir(parents=True, exist_ok=True)

PRODUCT_NAME = "ClawMiner"
PRODUCT_VERSION = "1"
CHAIN_ID = int(os.getenv("CHAIN_ID", os.getenv("NEXT_PUBLIC_CHAIN_ID", "56")))
GENESIS_UTC = os.getenv("GENESIS_UTC", "2026-02-24")
EPOCH_SECONDS = 86400
HALVING_EPOCHS = 180
SUPPLY_CAP = 21_000_000
CREDITS_PER_SOLVE = int(os.getenv("CREDITS_PER_SOLVE", "1"))

LEASE_TTL_SECONDS = int(os.getenv("LEASE_TTL_SECONDS", "86400"))
REGISTER_TTL_SECONDS = int(os.getenv("REGISTER_TTL_SECONDS", "900"))

COORDINATOR_SIGNER_PRIVATE_KEY = os.getenv("COORDINATOR_SIGNER_PRIVATE_KEY", "")
COORDINATOR_HMAC_SECRET = os.getenv(
    "COORDINATOR_HMAC_SECRET", COORDINATOR_SIGNER_PRIVATE_KEY or "clawminer-dev-secret"
)
MINING_CONTRACT_ADDRESS = os.getenv("MINING_CONTRACT_ADDRESS", os.getenv("NEXT_PUBLIC_MINING_ADDRESS", ""))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8787"))

# Unset keeps the coordinator fully stateless.
COORDINATOR_STATE_PATH = os.getenv("COORDINATOR_STATE_PATH", "")
