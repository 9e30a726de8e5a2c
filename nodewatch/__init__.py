"""Node Watchdog (NWD).

Long-running liveness watchdog for nodes registered in an on-chain registry:
 - discovers nodes from the registry contract's `nodes` table
 - probes each node's self-reported status endpoint
 - reconciles the on-chain activation flag with the observed health
   (admactivate / admdisable)

One independent loop runs per configured chain.
"""
