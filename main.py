"""
Main entrypoint: Nosana auto-stake agent.

Follows `docker logs -f nosana-node`, and for every finished job stakes the NOS
it earned into the node's staking vault (transfer + topup in one transaction).

Env: SOLANA_RPC_URL, NOSANA_KEY_PATH, NOSANA_NODE_CONTAINER, LOG_LEVEL, LOG_FORMAT, etc.
"""

import sys

# Configure structured logging before other imports that may log
from nosana_autostake.autostake_logging import get_logger  # noqa: F401
from nosana_autostake.agent_worker.runner import main

if __name__ == "__main__":
    sys.exit(main())
