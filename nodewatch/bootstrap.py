from __future__ import annotations

import logging

from .errors import ConfigError, RegistryError
from .health import HealthProbe
from .registry import ChainRegistry
from .runtime import RuntimeState
from .settings import ChainConfig, settings
from .submitter import EosioActionSubmitter
from .watchdog import ChainWatchdog

log = logging.getLogger(__name__)


def check_chain(chain: ChainConfig, registry: ChainRegistry, verify_chain_id: bool = True) -> None:
    """Startup precondition: the RPC endpoint answers and serves the configured chain."""
    try:
        info = registry.chain_info()
    except RegistryError as e:
        raise ConfigError(f"{chain.name}: RPC endpoint {chain.rpc_url} is unusable: {e}") from e
    if verify_chain_id and info.get("chain_id") != chain.chain_id:
        raise ConfigError(
            f"{chain.name}: RPC endpoint {chain.rpc_url} serves chain {info.get('chain_id')!r}, "
            f"configured {chain.chain_id!r}"
        )


def _submitter(chain: ChainConfig) -> EosioActionSubmitter:
    try:
        return EosioActionSubmitter(chain)
    except ConfigError:
        raise
    except Exception as e:
        raise ConfigError(f"{chain.name}: invalid signing key: {type(e).__name__}") from e


def build_watchdog(chain: ChainConfig, runtime: RuntimeState, verify_chain_id: bool = True) -> ChainWatchdog:
    registry = ChainRegistry(chain.rpc_url, chain.contract, timeout_s=chain.rpc_timeout_s)
    try:
        check_chain(chain, registry, verify_chain_id)
        submitter = _submitter(chain)
    except ConfigError:
        registry.close()
        raise
    return ChainWatchdog(
        chain=chain,
        source=registry,
        probe=HealthProbe(timeout_s=chain.probe_timeout_s),
        submitter=submitter,
        runtime=runtime,
    )


def build_watchdogs(chains: list[ChainConfig], runtime: RuntimeState) -> list[ChainWatchdog]:
    """Build one watchdog per chain. Any misconfiguration is fatal for all of them."""
    watchdogs = [build_watchdog(c, runtime, settings.verify_chain_id) for c in chains]
    for c in chains:
        log.info("Watching %s (%s) registry %s as %s@%s", c.name, c.chain_id[:12], c.contract, c.watchdog_account, c.watchdog_permission)
    return watchdogs
