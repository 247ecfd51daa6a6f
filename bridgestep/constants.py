"""Shared constants for step execution."""

NATIVE_SOL_ADDRESS = "11111111111111111111111111111111"
SOLANA_CHAIN_ID = 1151111081099710

DEFAULT_API_URL = "https://li.quest/v1"
DEFAULT_SOLANA_RPC_URL = "https://api.mainnet-beta.solana.com"

DEFAULT_COMMITMENT = "confirmed"
DEFAULT_BROADCAST_MAX_RETRIES = 5
DEFAULT_STATUS_POLL_INTERVAL = 5.0
DEFAULT_BALANCE_ATTEMPTS = 3
DEFAULT_BALANCE_RETRY_DELAY = 0.2
