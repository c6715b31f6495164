"""
Proving relay worker.

Claims proof-generation tasks from a rollup coordinator, delegates the
proof computation to a remote proving API and reports the outcome back
to the coordinator.

Architecture:
    Coordinator <- WorkerPool (n slots) -> ProvingService

    Each slot runs claim -> key resolve -> prove -> submit sequentially.
    The HealthListener observes the pool and both clients passively.

Usage:
    # Import components from their subpackages to avoid circular imports
    from proving_relay.server.relay_server import RelayServer
    from proving_relay.config import RelayConfig
"""

__version__ = "0.1.0"
