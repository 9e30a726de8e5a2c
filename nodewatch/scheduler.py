from __future__ import annotations


class LoopScheduler:
    """Decides how long a watchdog waits before its next sweep.

    A small registry is stable, so it is polled rarely. A registry at or above
    the churn threshold is swept again right away. Failures back off from
    `error_backoff_s`, growing by `multiplier` per consecutive failure up to
    `max_backoff_s`; a multiplier of 1 keeps the delay fixed.
    """

    def __init__(
        self,
        churn_threshold: int = 10,
        steady_interval_s: float = 30 * 60,
        churn_interval_s: float = 0.0,
        error_backoff_s: float = 10.0,
        multiplier: float = 1.0,
        max_backoff_s: float = 300.0,
    ):
        self.churn_threshold = max(0, int(churn_threshold))
        self.steady_interval_s = max(0.0, float(steady_interval_s))
        self.churn_interval_s = max(0.0, float(churn_interval_s))
        self.error_backoff_s = max(0.0, float(error_backoff_s))
        self.multiplier = max(1.0, float(multiplier))
        self.max_backoff_s = max(self.error_backoff_s, float(max_backoff_s))
        self.failures = 0

    @classmethod
    def for_chain(cls, chain) -> "LoopScheduler":
        return cls(
            churn_threshold=chain.churn_threshold,
            steady_interval_s=chain.steady_interval_s,
            churn_interval_s=chain.churn_interval_s,
            error_backoff_s=chain.error_backoff_s,
            multiplier=chain.backoff_multiplier,
            max_backoff_s=chain.max_backoff_s,
        )

    def after_sweep(self, node_count: int) -> float:
        self.failures = 0
        if node_count < self.churn_threshold:
            return self.steady_interval_s
        return self.churn_interval_s

    def after_failure(self) -> float:
        self.failures += 1
        delay = self.error_backoff_s * (self.multiplier ** min(self.failures - 1, 64))
        return min(delay, self.max_backoff_s)
