from prometheus_client import Counter, Gauge, Histogram


class SpinMetrics:
    """
    Spin synchronization metrics

    Tracks coordinator outcomes (success vs typed precondition failures)
    and how many observers are attached to the spin feed.
    """

    def __init__(self) -> None:
        self.spin_initiated = Counter(
            'spin_initiated_total',
            'Initiate spin attempts by outcome',
            ['result'],  # success / Unauthorized / AlreadySpinning / EmptyRoster / CooldownActive
        )

        self.spin_confirmed = Counter(
            'spin_confirmed_total',
            'Confirm winner attempts by outcome',
            ['result'],
        )

        self.spin_cancelled = Counter(
            'spin_cancelled_total',
            'Spins force-retired without a confirmed winner',
        )

        self.spin_duration = Histogram(
            'spin_animation_duration_seconds',
            'Animation duration drawn per spin',
            buckets=[3.0, 3.5, 4.0, 4.5, 5.0, 5.5, 6.0],
        )

        self.feed_subscribers = Gauge(
            'spin_feed_subscribers',
            'Open spin feed subscriptions in this process',
        )

        self.feed_malformed_snapshots = Counter(
            'spin_feed_malformed_snapshots_total',
            'Snapshots dropped because they failed to parse',
        )

    def record_initiate(self, *, result: str, duration_seconds: float | None = None) -> None:
        self.spin_initiated.labels(result=result).inc()
        if duration_seconds is not None:
            self.spin_duration.observe(duration_seconds)

    def record_confirm(self, *, result: str) -> None:
        self.spin_confirmed.labels(result=result).inc()


# Global metrics instance (prometheus registry rejects duplicate metric names)
metrics = SpinMetrics()
