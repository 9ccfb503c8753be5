"""
Token Gate Daemon - Main Entry Point

Runs the token gate decision API (default port 8765).

Endpoints:
- GET    /health                        - Health check
- POST   /v1/authorize                  - Authorize an operation with a proof
- GET    /v1/operations                 - Protected operations and their tiers
- GET    /api/v1/gate/oracle/stats      - Balance cache statistics
- DELETE /api/v1/gate/oracle/cache      - Invalidate cached balances
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI

from . import __version__
from .api.authorize import router as authorize_router
from .config.gate_config import GateConfig, get_config
from .gate_system import TokenGate
from .service.oracle.balance_oracle import create_oracle_routes

logger = logging.getLogger("tokengate.daemon")


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def create_app(gate: TokenGate) -> FastAPI:
    """Build the decision API around an initialized gate."""
    app = FastAPI(
        title="Token Gate Daemon",
        description="Token-gated authorization for AI assistant tools",
        version=__version__,
    )
    app.state.gate = gate

    app.include_router(authorize_router, tags=["authorize"])
    app.include_router(create_oracle_routes(gate.oracle))

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "tokengate",
            "version": __version__,
            "chain_id": gate.config.chain_id,
            "protected_operations": len(gate.policy),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


def main(config: Optional[GateConfig] = None):
    """Run the token gate daemon."""
    configure_logging()

    config = config or get_config()
    gate = TokenGate.from_config(config)
    app = create_app(gate)

    logger.info(f"Starting Token Gate Daemon v{__version__}")
    logger.info(f"   Listening on http://{config.host}:{config.port}")

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="info",
        access_log=False,
    )


if __name__ == "__main__":
    main()
