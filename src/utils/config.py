# runtime settings, read once from the environment
import os


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DB_PATH = os.getenv("STOREFRONT_DB_PATH", "data/storefront.sqlite")
CART_PATH = os.getenv("STOREFRONT_CART_PATH", "data/cart.json")

BKASH_NUMBER = os.getenv("STOREFRONT_BKASH_NUMBER", "01XXXXXXXXX")
COD_NUMBER = os.getenv("STOREFRONT_COD_NUMBER", "01XXXXXXXXX")

FEE_SAVAR = _env_int("STOREFRONT_FEE_SAVAR", 70)
FEE_DHAKA = _env_int("STOREFRONT_FEE_DHAKA", 110)
FEE_DEFAULT = _env_int("STOREFRONT_FEE_DEFAULT", 150)

# attempts, not retries: 1 means no retry at all
TXN_ATTEMPTS = max(_env_int("STOREFRONT_TXN_RETRIES", 5), 1)
TXN_BACKOFF_SECONDS = 0.05

# seconds sqlite waits on a locked database before raising
DB_BUSY_TIMEOUT = 5.0

DEBUG = bool(os.getenv("DEBUG"))
