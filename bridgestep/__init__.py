"""bridgestep: resumable step execution for cross-chain transfers."""

from .adapters import ChainAdapter, KeypairSigner, SolanaAdapter, get_adapter
from .api import RouteApiClient
from .balance import BalanceGuard
from .chains import ChainRegistry
from .config import load_config
from .contracts import Execution, Process, Step
from .errors import ErrorCode, ExecutionError, parse_error
from .execute import ExecutionOptions, StepExecutor
from .quote import QuoteReconciler
from .status import StatusManager
from .waiter import ReceivingChainWaiter

__version__ = "0.1.0"
__all__ = [
    "BalanceGuard",
    "ChainAdapter",
    "ChainRegistry",
    "ErrorCode",
    "Execution",
    "ExecutionError",
    "ExecutionOptions",
    "KeypairSigner",
    "Process",
    "QuoteReconciler",
    "ReceivingChainWaiter",
    "RouteApiClient",
    "SolanaAdapter",
    "StatusManager",
    "Step",
    "StepExecutor",
    "get_adapter",
    "load_config",
    "parse_error",
]
