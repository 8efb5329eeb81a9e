# collateral/monitor.py
"""
Polls one Red Bank account on a fixed interval and reports its
collateralization ratio.

Each tick: fetch debts, fetch collaterals, value both sides, compute
Σ(collateral value) ÷ Σ(debt value), hand the result to the reporters.
Ticks never overlap and a failed tick never stops the loop.
"""
import argparse
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from kafka import KafkaProducer

from collateral.config import ENV_FILE, Settings, load_settings
from collateral.errors import FetchError, ValuationError
from collateral.models import DecimalRatio, PositionSet
from collateral.prices import ConstantPriceOracle, DecimalsTable, ValuationContext
from collateral.valuation import ratio_from_totals, sum_values
from ingest.redbank import RedBankClient


@dataclass(frozen=True)
class CycleResult:
    ts:               float
    account:          str
    debts:            PositionSet
    collaterals:      PositionSet
    debt_value:       int
    collateral_value: int
    ratio:            DecimalRatio

    def payload(self) -> dict:
        # u128 values as strings so JSON consumers don't lose precision
        return {
            "ts":               int(self.ts),
            "account":          self.account,
            "ratio":            str(self.ratio),
            "collateral_value": str(self.collateral_value),
            "debt_value":       str(self.debt_value),
        }


Reporter = Callable[[CycleResult], None]


def _coins(positions: PositionSet) -> str:
    return "[" + ", ".join(str(p) for p in positions) + "]"


def log_result(result: CycleResult):
    logging.info(f"Debts: {_coins(result.debts)}")
    logging.info(f"Collaterals: {_coins(result.collaterals)}")
    logging.info(f"Collateralization ratio: {result.ratio}")


class KafkaReporter:
    """Publishes every cycle result to a Kafka topic as JSON."""

    def __init__(self, topic: str, brokers=None, producer=None):
        self.topic = topic
        self.producer = producer or KafkaProducer(
            bootstrap_servers=brokers,
            value_serializer=lambda v: json.dumps(v).encode(),
        )

    def __call__(self, result: CycleResult):
        payload = result.payload()
        self.producer.send(self.topic, value=payload)
        self.producer.flush()
        logging.info(f"Published ratio → {payload}")

    def close(self):
        self.producer.close()


def build_context(settings: Settings) -> ValuationContext:
    return ValuationContext(
        decimals_for=DecimalsTable(settings.token_decimals, settings.decimals_overrides),
        oracle=ConstantPriceOracle(),
    )


def run_cycle(
    client: RedBankClient,
    account: str,
    context: ValuationContext,
    clock: Callable[[], float] = time.time,
) -> CycleResult:
    """
    One fetch-and-value pass. FetchError / ValuationError propagate to the caller.

    Same ratio as valuation.collateralization_ratio, built from the totals so
    each side is valued once.
    """
    debts, collaterals = client.get_user_financials(account)
    coll_value = sum_values(collaterals, context)
    debt_value = sum_values(debts, context)
    return CycleResult(
        ts=clock(),
        account=account,
        debts=debts,
        collaterals=collaterals,
        debt_value=debt_value,
        collateral_value=coll_value,
        ratio=ratio_from_totals(coll_value, debt_value),
    )


def _tick(cycle: Callable[[], CycleResult], reporters: Iterable[Reporter]) -> Optional[CycleResult]:
    try:
        result = cycle()
    except FetchError as e:
        logging.error(f"Request failed: {e}")
        return None
    except ValuationError as e:
        logging.error(f"Failed to calculate the collateralization ratio: {e}")
        return None
    except Exception:
        logging.exception("Cycle crashed, waiting for next tick")
        return None

    for report in reporters:
        try:
            report(result)
        except Exception as e:
            logging.error(f"Reporter {report!r} failed: {e}")
    return result


def run_forever(
    cycle: Callable[[], CycleResult],
    interval: float,
    reporters: Iterable[Reporter] = (log_result,),
    monotonic: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    max_ticks: Optional[int] = None,
) -> int:
    """
    Fixed-interval loop. The first tick fires immediately; a slow tick delays
    the next one and missed ticks are dropped, not replayed. Returns the number
    of ticks run (only reachable with max_ticks).
    """
    reporters = list(reporters)
    ticks = 0
    next_at = monotonic()
    while max_ticks is None or ticks < max_ticks:
        now = monotonic()
        if now < next_at:
            sleep(next_at - now)

        _tick(cycle, reporters)
        ticks += 1

        next_at += interval
        now = monotonic()
        if now > next_at:
            next_at = now
    return ticks


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Red Bank collateralization ratio monitor")
    parser.add_argument("--account", help="account address to watch (default: ACCOUNT_ADDRESS)")
    parser.add_argument("--interval", type=float, help="seconds between ticks (default: POLL_INTERVAL)")
    parser.add_argument("--env-file", default=ENV_FILE, help="dotenv file to load")
    parser.add_argument("--once", action="store_true", help="run a single cycle and exit")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    settings = load_settings(args.env_file, account_address=args.account, poll_interval=args.interval)
    client = RedBankClient.from_settings(settings)
    context = build_context(settings)

    reporters = [log_result]
    kafka = None
    if settings.kafka_brokers:
        kafka = KafkaReporter(settings.ratio_topic, brokers=settings.kafka_brokers)
        reporters.append(kafka)

    def cycle():
        return run_cycle(client, settings.account_address, context)

    logging.info(f"Watching {settings.account_address} every {settings.poll_interval:g}s")
    try:
        run_forever(cycle, settings.poll_interval, reporters, max_ticks=1 if args.once else None)
    except KeyboardInterrupt:
        logging.info("Monitor interrupted by user, shutting down...")
    finally:
        client.close()
        if kafka is not None:
            kafka.close()


if __name__ == "__main__":
    main()
