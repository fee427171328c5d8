import os
from dotenv import load_dotenv
load_dotenv()
# ---- Helius ----
HELIUS_API_KEY = os.environ.get("HELIUS_API_KEY")
HELIUS_RPC_URL = os.environ.get("HELIUS_RPC_URL", "https://mainnet.helius-rpc.com/")
HELIUS_REST_URL = os.environ.get("HELIUS_REST_URL", "https://api-mainnet.helius-rpc.com/v0")

HELIUS_REQUESTS_PER_SEC = float(os.environ.get("HELIUS_REQUESTS_PER_SEC", "5"))
HELIUS_TIMEOUT_SEC = 30
# enhanced REST API returns pre-parsed native/token transfers instead of raw balances
HELIUS_USE_ENHANCED_API = os.environ.get("HELIUS_USE_ENHANCED_API", "").lower() in {"1", "true", "yes"}

# ---- Crawl defaults ----
CRAWL_CALL_DELAY_SEC = 0.1

# Balance deltas at or below this many lamports are treated as fee noise
NOISE_THRESHOLD_LAMPORTS = 1000

# ---- Output ----
DEFAULT_OUT_DIR = os.environ.get("SLEUTH_OUT_DIR", "data")

# ---- Logging ----
LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING").upper()
