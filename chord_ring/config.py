# Identifier space
MIN_NETWORK_BITS: int = 2
MAX_NETWORK_BITS: int = 56         # the default hash yields 7 digest bytes
DEFAULT_NETWORK_BITS: int = 24

# Scheduling (seconds)
STABILIZE_INTERVAL: float = 2.0
FINGER_UPDATE_INTERVAL: float = 2.0
SHUTDOWN_JOIN_TIMEOUT: float = 5.0

# Bootstrap
DEFAULT_INITIAL_NODES: int = 10
DEBUG_INITIAL_NODES: int = 5
DEBUG_NETWORK_BITS: int = 3
NODE_NAME_PREFIX: str = "Node_"

# Logging
LOG_LEVEL: str = "INFO"
LOG_FORMAT: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
