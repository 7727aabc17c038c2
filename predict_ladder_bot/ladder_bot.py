#!/usr/bin/env python3
"""
Predict-Ladder-Bot: resting BUY ladders for Predict.fun markets

Usage:
    # Run with default settings
    python -m predict_ladder_bot.ladder_bot

    # Single tick against a custom market list, cancelling everything afterwards
    python -m predict_ladder_bot.ladder_bot --markets-file my_markets.json --once --cancel-on-exit

    # Cancel every open order on the account and exit
    python -m predict_ladder_bot.ladder_bot --cancel-all
"""
from __future__ import annotations

import argparse
import importlib
import logging
import signal
import sys
import threading
import time
from typing import Callable, Optional

# Load environment variables FIRST, before any imports that read environment
from dotenv import load_dotenv
load_dotenv()

from predict_ladder_bot.config import BotConfig, ConfigError, load_config
from predict_ladder_bot.exchange.gateway import OrderGateway, OrderStatus
from predict_ladder_bot.exchange.predict_client import OrderSigner, PredictClient
from predict_ladder_bot.logging_utils import setup_logging
from predict_ladder_bot.market.tracking import TrackedMarket, TrackedOrder, load_selected_markets
from predict_ladder_bot.market_data.orderbook import OrderBookProvider
from predict_ladder_bot.orders import LadderOrderPlacer, OrderReconciler, OrderStore, price_from_amounts
from predict_ladder_bot.position import MarketSellLiquidator, PositionLiquidator
from predict_ladder_bot.strategy import LadderRebalancer, initial_ladder_prices
from predict_ladder_bot.strategy.cooldown import check_cooldown

logger = logging.getLogger(__name__)


def load_signer(factory_ref: str, exchange_cfg) -> OrderSigner:
    """
    Build the order signer from a "package.module:factory" reference.

    The factory is called with the ExchangeConfig and must return an object
    implementing OrderSigner.
    """
    if not factory_ref or ":" not in factory_ref:
        raise ConfigError("exchanges.predict.signer_factory must be set as 'module:callable'")
    module_name, _, attr = factory_ref.partition(":")
    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot load signer factory {factory_ref}: {e}") from e
    return factory(exchange_cfg)


class LadderBot:
    """
    Main bot class for ladder maintenance on Predict.fun.

    Responsibilities:
    - Recover and place the initial ladder of each selected market
    - Every tick: liquidate fills, reopen filled rungs, sync with the
      exchange, rebalance each market
    - Handle graceful shutdown
    """

    def __init__(
        self,
        bot_config: Optional[BotConfig] = None,
        gateway: Optional[OrderGateway] = None,
        liquidator: Optional[PositionLiquidator] = None,
        store: Optional[OrderStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.bot_config = bot_config or BotConfig()
        self.clock = clock

        # State
        self.running = False
        self._stop = threading.Event()
        self.markets: list[TrackedMarket] = []

        # Components (built by setup() unless injected)
        self.gateway = gateway
        self.liquidator = liquidator
        self.store = store
        self.provider: Optional[OrderBookProvider] = None
        self.placer: Optional[LadderOrderPlacer] = None
        self.reconciler: Optional[OrderReconciler] = None
        self.rebalancer: Optional[LadderRebalancer] = None

        if gateway is not None and store is not None:
            self._build_core()

    def setup(self) -> None:
        """Initialize exchange client, storage and strategy components."""
        logger.info("==========================================")
        logger.info("Setting up bot components...")
        logger.info("==========================================")

        if self.store is None:
            self.store = OrderStore(self.bot_config.orders_db_path)
        logger.info("Order store has %d stored order(s)", self.store.count_orders())

        if self.gateway is None:
            config = load_config()
            config.predict.validate()
            logger.info("Configuration loaded (api=%s)", config.predict.api_url)

            signer = load_signer(config.predict.signer_factory, config.predict)
            client = PredictClient(config.predict, signer, self.store)
            self.gateway = client
            if self.liquidator is None:
                self.liquidator = MarketSellLiquidator(client)
            logger.info("Exchange client initialized")

        self._build_core()
        logger.info("Bot setup complete")

    def _build_core(self) -> None:
        cfg = self.bot_config.ladder
        self.provider = OrderBookProvider(self.gateway)
        self.placer = LadderOrderPlacer(self.gateway, cfg, clock=self.clock, store=self.store)
        self.reconciler = OrderReconciler(self.gateway, self.store, cfg.tick_size)
        self.rebalancer = LadderRebalancer(self.provider, self.placer, cfg, clock=self.clock)

    # ── startup ───────────────────────────────────────────────

    def bootstrap_markets(self, markets: list[TrackedMarket]) -> list[TrackedMarket]:
        """
        Recover stored orders and place the initial ladder for each market.

        Every market ends up tracked, even when nothing could be placed;
        later ticks fill it in once liquidity appears.
        """
        for market in markets:
            try:
                self._bootstrap_market(market)
            except Exception:
                logger.exception("[%s] Bootstrap failed", market.id)
            logger.info("[%s] Tracking %d order(s): %s", market.id, len(market.orders), market.title[:60])

        self.markets = markets
        return markets

    def _bootstrap_market(self, market: TrackedMarket) -> None:
        cfg = self.bot_config.ladder

        for order in self._recover_stored_orders(market):
            market.orders.append(order)
        market.sort_orders()

        bids = self.provider.fetch_order_book(market.id)
        if not bids:
            logger.info("[%s] No bids, nothing placed", market.id)
            return

        prices = initial_ladder_prices(bids, cfg.min_depth_usd, cfg.tick_size, cfg.max_orders, cfg.scan_depth)
        to_place = [p for p in prices if not market.has_order_at(p)]
        placed = 0
        for price in to_place:
            if self.placer.place_buy(market, price) is not None:
                placed += 1
        if to_place:
            logger.info("[%s] Placed %d/%d initial order(s)", market.id, placed, len(to_place))

    def _recover_stored_orders(self, market: TrackedMarket) -> list[TrackedOrder]:
        recovered: list[TrackedOrder] = []
        for record in self.store.get_orders_for_market(market.id):
            ref = record["order_hash"]
            try:
                details = self.gateway.get_order(ref)
            except Exception as e:
                logger.warning("[%s] Stored order %s... lookup failed: %s", market.id, ref[:10], e)
                continue

            if details.status != OrderStatus.OPEN:
                self.store.delete_order(ref)
                continue

            try:
                price = price_from_amounts(details.side, details.maker_amount, details.taker_amount, self.bot_config.ladder.tick_size)
            except ValueError as e:
                logger.warning("[%s] Stored order %s... has no usable price: %s", market.id, ref[:10], e)
                continue
            recovered.append(TrackedOrder(price=price, order_ref=ref))

        if recovered:
            logger.info("[%s] Recovered %d open order(s) from storage", market.id, len(recovered))
        return recovered

    # ── per-tick steps ────────────────────────────────────────

    def reopen_filled_orders(self) -> int:
        """
        Replace tracked orders that are no longer OPEN with new orders at the same price.

        Markets still in cooldown are left alone; an expired cooldown is cleared
        first. Returns the number of orders reopened.
        """
        reopened = 0
        for market in self.markets:
            if check_cooldown(market, self.clock()):
                continue

            for order in list(market.orders):
                try:
                    status = self.gateway.get_order_status(order.order_ref)
                except Exception as e:
                    logger.debug("[%s] Status lookup for %s... failed: %s", market.id, order.order_ref[:10], e)
                    continue
                if status == OrderStatus.OPEN:
                    continue

                logger.info("[%s] Order @ %.3f is %s, reopening", market.id, order.price, status.value)
                self.store.delete_order(order.order_ref)
                market.remove_refs({order.order_ref})
                if self.placer.place_buy(market, order.price) is not None:
                    reopened += 1
        return reopened

    def run_tick(self) -> None:
        """One control-loop iteration. No step's failure stops the others."""
        sold = False
        try:
            if self.liquidator is not None:
                sold = self.liquidator.liquidate_all_positions()
        except Exception:
            logger.exception("Position liquidation failed")

        if sold:
            logger.info("Position sold, checking for filled orders...")
            try:
                self.reopen_filled_orders()
            except Exception:
                logger.exception("Reopening filled orders failed")

        try:
            self.reconciler.reconcile(self.markets)
        except Exception:
            logger.exception("Open-order sync failed")

        for market in self.markets:
            try:
                self.rebalancer.rebalance(market)
            except Exception:
                logger.exception("[%s] Rebalance failed", market.id)

    # ── lifecycle ─────────────────────────────────────────────

    def run(self, once: bool = False) -> None:
        """Main bot loop."""
        logger.info("Starting bot...")
        self.running = True
        self.setup()

        markets = load_selected_markets(self.bot_config.markets_file, store=self.store)
        self.bootstrap_markets(markets)

        if not self.markets:
            logger.warning("No markets selected, nothing to do")
            return

        interval = self.bot_config.ladder.tick_interval_sec
        logger.info("Monitoring %d market(s) every %.0fs", len(self.markets), interval)
        while not self._stop.is_set():
            logger.info("Checking %d markets...", len(self.markets))
            self.run_tick()
            if once:
                break
            self._stop.wait(interval)

    def request_stop(self) -> None:
        self._stop.set()

    def cancel_all_open_orders(self) -> int:
        """Cancel every open order on the account, including ones no market tracks."""
        n = self.placer.cancel_account_orders(self.markets)
        logger.info("Account-wide cancel: %d order(s) cancelled", n)
        return n

    def shutdown(self, cancel_orders: bool = False) -> None:
        """Graceful shutdown; resting orders stay on the book unless cancel_orders."""
        if not self.running:
            return

        logger.info("Shutting down bot...")
        self.running = False
        self._stop.set()

        try:
            if cancel_orders and self.placer is not None:
                for market in self.markets:
                    if market.orders:
                        n = self.placer.cancel_all(market)
                        logger.info("[%s] Cancelled %d order(s)", market.id, n)

            if self.store is not None:
                self.store.close()
            logger.info("Shutdown complete")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Predict.fun ladder bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Run with default settings (from .env or fallbacks)
            python -m predict_ladder_bot.ladder_bot

            # Verbose logging
            python -m predict_ladder_bot.ladder_bot -v
        """
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging (DEBUG level)"
    )
    parser.add_argument(
        "--markets-file",
        default=None,
        help="JSON list of markets to trade (default: PREDICT_LADDER_MARKETS_FILE or filtered_markets.json)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick and exit"
    )
    parser.add_argument(
        "--cancel-on-exit",
        action="store_true",
        help="Cancel all tracked orders before exiting"
    )
    parser.add_argument(
        "--cancel-all",
        action="store_true",
        help="Cancel every open order on the account (tracked or not) and exit"
    )

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else None
    setup_logging(log_level)

    bot_config = BotConfig()
    if args.markets_file:
        bot_config.markets_file = args.markets_file

    bot = LadderBot(bot_config)

    if args.cancel_all:
        try:
            bot.setup()
            bot.cancel_all_open_orders()
        except Exception as e:
            logger.error(f"Cancel-all failed: {e}", exc_info=True)
            sys.exit(1)
        finally:
            if bot.store is not None:
                bot.store.close()
        return

    # Signal handlers for graceful shutdown
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, shutting down...")
        bot.request_stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        bot.run(once=args.once)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        bot.shutdown(cancel_orders=False)
        sys.exit(1)

    bot.shutdown(cancel_orders=args.cancel_on_exit)


if __name__ == "__main__":
    main()
