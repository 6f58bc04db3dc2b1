import calendar
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .settings import CHAIN_ID, EPOCH_SECONDS, GENESIS_UTC, HALVING_EPOCHS, SUPPLY_CAP

BASE_RATE = SUPPLY_CAP / (2 * HALVING_EPOCHS)
DIFFICULTY = 1
TIERS = {"t1": 21000, "t2": 52500, "t3": 105000}


def genesis_timestamp(genesis_utc: str = GENESIS_UTC) -> int:
    year, month, day = (int(part) for part in genesis_utc.split("-"))
    return calendar.timegm((year, month, day, 0, 0, 0))


def utc_midnight(now: float) -> int:
    moment = datetime.fromtimestamp(now, tz=timezone.utc)
    return calendar.timegm((moment.year, moment.month, moment.day, 0, 0, 0))


def epoch_id_at(now: float, genesis_utc: str = GENESIS_UTC) -> int:
    return max(0, (utc_midnight(now) - genesis_timestamp(genesis_utc)) // EPOCH_SECONDS)


def epoch_mint(era: int) -> float:
    return BASE_RATE / (2 ** era)


def minted_total(epoch_id: int) -> float:
    """Closed-form supply emitted before ``epoch_id`` starts, capped."""
    era = epoch_id // HALVING_EPOCHS
    minted_full_eras = SUPPLY_CAP * (1 - 0.5 ** era)
    minted_partial = (epoch_id - era * HALVING_EPOCHS) * epoch_mint(era)
    return min(SUPPLY_CAP, minted_full_eras + minted_partial)


def epoch_info(now: Optional[float] = None, genesis_utc: str = GENESIS_UTC) -> Dict[str, Any]:
    if now is None:
        now = time.time()
    genesis = genesis_timestamp(genesis_utc)
    epoch_id = epoch_id_at(now, genesis_utc)
    era = epoch_id // HALVING_EPOCHS
    epoch_start = genesis + epoch_id * EPOCH_SECONDS
    next_epoch_start = epoch_start + EPOCH_SECONDS
    return {
        "chainId": CHAIN_ID,
        "genesisUtc": genesis_utc,
        "epochSeconds": EPOCH_SECONDS,
        "halvingEpochs": HALVING_EPOCHS,
        "cap": SUPPLY_CAP,
        "epochId": epoch_id,
        "era": era,
        "epochStartTs": epoch_start * 1000,
        "nextEpochStartTs": next_epoch_start * 1000,
        "nextEpochInSeconds": max(0, int(next_epoch_start - now)),
        "difficulty": DIFFICULTY,
        "epochMint": epoch_mint(era),
        "mintedTotal": minted_total(epoch_id),
    }


def format_amount(value: float) -> str:
    text = f"{value:,.6f}".rstrip("0")
    return text.rstrip(".")
