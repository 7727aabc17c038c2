# predict_ladder_bot/exchange/predict_client.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, Optional, Protocol
import logging
import time

import requests

from predict_ladder_bot.config import ExchangeConfig
from predict_ladder_bot.exchange.gateway import (
  CancelGroupResult,
  CancelRequest,
  CancelResult,
  GatewayError,
  MarketBid,
  OpenOrderResult,
  OrderDetails,
  OrderGateway,
  OrderSide,
  OrderStatus,
  OrderType,
  RemoteOrder,
)
from predict_ladder_bot.orders.storage import OrderStore

logger = logging.getLogger(__name__)

WEI = Decimal(10) ** 18


@dataclass(frozen=True)
class MarketInfo:
  """Static per-market data needed to build an order."""
  market_id: int
  title: str
  yes_token_id: str
  no_token_id: Optional[str]
  fee_rate_bps: int
  is_neg_risk: bool
  is_yield_bearing: bool


@dataclass(frozen=True)
class Position:
  """A held outcome position, as returned by GET /v1/positions."""
  market_id: int
  market_title: str
  token_id: str
  shares_raw: str          # wei string
  shares: float
  outcome: str
  is_neg_risk: bool
  is_yield_bearing: bool
  fee_rate_bps: int


@dataclass(frozen=True)
class OrderBuildRequest:
  token_id: str
  side: OrderSide
  order_type: OrderType
  amount: str              # USD for buys, share quantity (wei) for sells
  price: Optional[str]     # None for MARKET orders
  fee_rate_bps: int
  is_neg_risk: bool
  is_yield_bearing: bool
  book: Optional[dict[str, Any]] = None  # raw book, MARKET orders only


@dataclass(frozen=True)
class SignedOrder:
  order: dict[str, Any]
  order_hash: str
  price_per_share: str


class OrderSigner(Protocol):
  """Builds/signs orders and performs on-chain cancellation."""

  def build_order(self, request: OrderBuildRequest) -> SignedOrder: ...

  def cancel_orders(
    self,
    orders: list[dict[str, Any]],
    *,
    is_neg_risk: bool,
    is_yield_bearing: bool,
  ) -> Any: ...


def _to_decimal(x: Any) -> Optional[Decimal]:
  if x is None or x == "":
    return None
  try:
    return Decimal(str(x))
  except (InvalidOperation, ValueError):
    return None


def _to_int(x: Any) -> Optional[int]:
  try:
    return int(x)
  except (TypeError, ValueError):
    return None


def parse_remote_order(raw: dict[str, Any]) -> Optional[RemoteOrder]:
  """
  Map one entry of the open-order listing to a RemoteOrder.

  The hash and amounts may sit at the top level or inside the nested
  "order" object. Entries without a hash or market id yield None.
  """
  inner = raw.get("order") or {}
  order_hash = raw.get("hash") or raw.get("orderHash") or inner.get("hash") or inner.get("orderHash")
  market_id = _to_int(raw.get("marketId"))
  if not order_hash or market_id is None:
    return None

  side_raw = raw.get("side")
  if side_raw is None:
    side_raw = inner.get("side")

  order_id = raw.get("id") or raw.get("orderId")
  return RemoteOrder(
    market_id=market_id,
    order_ref=str(order_hash),
    side=OrderSide.parse(side_raw),
    maker_amount=_to_decimal(raw.get("makerAmount") or inner.get("makerAmount")),
    taker_amount=_to_decimal(raw.get("takerAmount") or inner.get("takerAmount")),
    order_id=str(order_id) if order_id is not None else None,
  )


def parse_order_details(order_ref: str, data: dict[str, Any]) -> OrderDetails:
  inner = data.get("order") or {}
  side_raw = inner.get("side")
  if side_raw is None:
    side_raw = data.get("side")
  order_id = data.get("id") or data.get("orderId")
  return OrderDetails(
    order_ref=order_ref,
    status=OrderStatus.parse(data.get("status")),
    market_id=_to_int(data.get("marketId")),
    side=OrderSide.parse(side_raw),
    maker_amount=_to_decimal(inner.get("makerAmount") or data.get("makerAmount")),
    taker_amount=_to_decimal(inner.get("takerAmount") or data.get("takerAmount")),
    is_neg_risk=bool(data.get("isNegRisk", False)),
    is_yield_bearing=bool(data.get("isYieldBearing", False)),
    order_id=str(order_id) if order_id is not None else None,
    payload=inner or None,
  )


class PredictClient(OrderGateway):
  """
  REST gateway for the Predict.fun API.

  Order building/signing and on-chain cancellation are delegated to the
  injected OrderSigner. Opened orders are recorded in the OrderStore and
  successfully cancelled ones are removed from it.
  """

  MARKET_SLIPPAGE_BPS = "200"
  LIQUIDATION_SLIPPAGE_BPS = "500"

  def __init__(
    self,
    cfg: ExchangeConfig,
    signer: OrderSigner,
    store: OrderStore,
    session: requests.Session | None = None,
    page_delay_sec: float = 0.2,
  ):
    self.base = cfg.api_url.rstrip("/")
    self.timeout_sec = cfg.request_timeout_sec
    self.signer = signer
    self.store = store
    self.page_delay_sec = page_delay_sec

    self._api_key = cfg.api_key()
    self._auth_token = cfg.auth_token()
    self._session = session or requests.Session()

    # Market data does not change while we trade it
    self._market_cache: dict[int, MarketInfo] = {}

  # --- transport ---

  def _headers(self) -> dict[str, str]:
    headers = {
      "x-api-key": self._api_key,
      "Content-Type": "application/json",
    }
    if self._auth_token:
      headers["Authorization"] = f"Bearer {self._auth_token}"
    return headers

  def _request(
    self,
    method: str,
    path: str,
    params: dict[str, Any] | None = None,
    json_body: dict[str, Any] | None = None,
  ) -> dict[str, Any]:
    """Perform a call and return the response envelope; raise GatewayError on any failure."""
    url = f"{self.base}{path}"
    try:
      resp = self._session.request(
        method,
        url,
        headers=self._headers(),
        params=params,
        json=json_body,
        timeout=self.timeout_sec,
      )
      resp.raise_for_status()
      body = resp.json()
    except requests.RequestException as e:
      raise GatewayError(f"{method} {path} failed: {e}") from e
    except ValueError as e:
      raise GatewayError(f"{method} {path} returned invalid JSON: {e}") from e

    if not isinstance(body, dict) or not body.get("success"):
      raise GatewayError(f"{method} {path} unsuccessful: {body}")
    return body

  # --- market / book helpers ---

  def _get_raw_order_book(self, market_id: int) -> dict[str, Any]:
    body = self._request("GET", f"/v1/markets/{market_id}/orderbook")
    return body.get("data") or {}

  def fetch_order_book(self, market_id: int) -> list[MarketBid]:
    """Bids as [price, quantity] pairs, kept in the exchange's order (best first)."""
    book = self._get_raw_order_book(market_id)
    bids: list[MarketBid] = []
    for level in book.get("bids") or []:
      try:
        bids.append(MarketBid.from_level(level[0], level[1]))
      except (TypeError, ValueError, IndexError):
        logger.warning("[%s] Skipping malformed bid level: %r", market_id, level)
    return bids

  def get_market(self, market_id: int) -> MarketInfo:
    cached = self._market_cache.get(market_id)
    if cached is not None:
      return cached

    body = self._request("GET", f"/v1/markets/{market_id}")
    market = body.get("data") or {}
    outcomes = market.get("outcomes") or []

    def _token_for(name: str, index: int) -> Optional[str]:
      for o in outcomes:
        if o.get("name") == name and o.get("onChainId"):
          return str(o["onChainId"])
      if len(outcomes) > index and outcomes[index].get("onChainId"):
        return str(outcomes[index]["onChainId"])
      return None

    yes_token = _token_for("Yes", 0)
    if not yes_token:
      raise GatewayError(f"Market {market_id} has no Yes outcome token")

    info = MarketInfo(
      market_id=market_id,
      title=str(market.get("title") or f"Market {market_id}"),
      yes_token_id=yes_token,
      no_token_id=_token_for("No", 1),
      fee_rate_bps=int(market.get("feeRateBps") or 0),
      is_neg_risk=bool(market.get("isNegRisk", False)),
      is_yield_bearing=bool(market.get("isYieldBearing", False)),
    )
    self._market_cache[market_id] = info
    return info

  # --- orders ---

  def _submit(self, signed: SignedOrder, order_type: OrderType, slippage_bps: str | None) -> dict[str, Any]:
    data: dict[str, Any] = {
      "order": {**signed.order, "hash": signed.order_hash},
      "pricePerShare": signed.price_per_share,
      "strategy": order_type.value,
    }
    if slippage_bps is not None:
      data["slippageBps"] = slippage_bps
    body = self._request("POST", "/v1/orders", json_body={"data": data})
    return body.get("data") or {}

  def open_order(
    self,
    market_id: int,
    amount_usd: str,
    price: float,
    side: OrderSide = OrderSide.BUY,
    order_type: OrderType = OrderType.LIMIT,
  ) -> OpenOrderResult:
    try:
      market = self.get_market(market_id)
      book = self._get_raw_order_book(market_id) if order_type == OrderType.MARKET else None
      signed = self.signer.build_order(OrderBuildRequest(
        token_id=market.yes_token_id,
        side=side,
        order_type=order_type,
        amount=amount_usd,
        price=f"{price:.3f}",
        fee_rate_bps=market.fee_rate_bps,
        is_neg_risk=market.is_neg_risk,
        is_yield_bearing=market.is_yield_bearing,
        book=book,
      ))
      slippage = self.MARKET_SLIPPAGE_BPS if order_type == OrderType.MARKET else None
      data = self._submit(signed, order_type, slippage)
    except Exception as e:
      logger.error("[%s] Failed to open %s %s order @ %.3f: %s", market_id, order_type.value, side.name, price, e)
      return OpenOrderResult(success=False, error=str(e))

    raw_id = data.get("orderId") or data.get("id")
    order_id = str(raw_id) if raw_id is not None else None
    logger.info("[%s] Order submitted @ %.3f (id=%s hash=%s...)", market_id, price, order_id, signed.order_hash[:10])

    self.store.add_order(signed.order_hash, order_id, market_id, market.title)
    return OpenOrderResult(success=True, order_ref=signed.order_hash, order_id=order_id)

  def cancel_orders(self, cancel_requests: list[CancelRequest]) -> CancelResult:
    """
    Cancel orders grouped by (is_neg_risk, is_yield_bearing).

    Each group is one signer call; the overall result is successful only
    if every group succeeded.
    """
    if not cancel_requests:
      return CancelResult(success=True)

    grouped: dict[tuple[bool, bool], list[CancelRequest]] = {}
    for req in cancel_requests:
      grouped.setdefault((req.is_neg_risk, req.is_yield_bearing), []).append(req)

    groups: list[CancelGroupResult] = []
    for (neg_risk, yield_bearing), reqs in grouped.items():
      error = None
      try:
        resp = self.signer.cancel_orders(
          [r.payload or {} for r in reqs],
          is_neg_risk=neg_risk,
          is_yield_bearing=yield_bearing,
        )
        ok = resp is not None and not (isinstance(resp, dict) and resp.get("success") is False)
        if not ok:
          error = str(resp)
      except Exception as e:
        ok = False
        error = str(e)

      if ok:
        for r in reqs:
          self.store.delete_order(r.order_ref)
      else:
        logger.warning(
          "Cancel group failed (neg_risk=%s yield_bearing=%s, %d orders): %s",
          neg_risk, yield_bearing, len(reqs), error,
        )

      groups.append(CancelGroupResult(
        is_neg_risk=neg_risk,
        is_yield_bearing=yield_bearing,
        order_refs=[r.order_ref for r in reqs],
        success=ok,
        error=error,
      ))

    return CancelResult(success=all(g.success for g in groups), groups=groups)

  def get_order(self, order_ref: str) -> OrderDetails:
    body = self._request("GET", f"/v1/orders/{order_ref}")
    data = body.get("data") or {}
    self.store.update_order_details(order_ref, data)
    return parse_order_details(order_ref, data)

  def iter_open_orders(self) -> Iterator[RemoteOrder]:
    cursor: Optional[str] = None
    seen_cursors: set[str] = set()
    while True:
      params: dict[str, Any] = {"status": "OPEN"}
      if cursor:
        params["after"] = cursor

      body = self._request("GET", "/v1/orders", params=params)
      for raw in body.get("data") or []:
        order = parse_remote_order(raw)
        if order is None:
          logger.warning("Open order without hash or market id skipped: %s", raw.get("id"))
          continue
        yield order

      cursor = body.get("cursor")
      if not cursor:
        return
      if cursor in seen_cursors:
        raise GatewayError(f"Open-order pagination repeated cursor {cursor}")
      seen_cursors.add(cursor)

      # Small delay between pages to stay under the rate limit
      time.sleep(self.page_delay_sec)

  # --- positions ---

  def get_positions(self) -> list[Position]:
    body = self._request("GET", "/v1/positions")
    positions: list[Position] = []
    for p in body.get("data") or []:
      market = p.get("market") or {}
      outcome = p.get("outcome") or {}
      market_id = _to_int(market.get("id"))
      token_id = outcome.get("onChainId")
      shares_raw = str(p.get("amount") or "0")
      shares = float((_to_decimal(shares_raw) or Decimal(0)) / WEI)
      if market_id is None or not token_id or shares <= 0:
        continue
      positions.append(Position(
        market_id=market_id,
        market_title=str(market.get("title") or f"Market {market_id}"),
        token_id=str(token_id),
        shares_raw=shares_raw,
        shares=shares,
        outcome=str(outcome.get("name") or "Unknown"),
        is_neg_risk=bool(market.get("isNegRisk", False)),
        is_yield_bearing=bool(market.get("isYieldBearing", False)),
        fee_rate_bps=int(market.get("feeRateBps") or 200),
      ))
    return positions

  def sell_position(self, position: Position) -> bool:
    """Sell a whole position with a MARKET order. Returns True on acceptance."""
    try:
      book = self._get_raw_order_book(position.market_id)
      signed = self.signer.build_order(OrderBuildRequest(
        token_id=position.token_id,
        side=OrderSide.SELL,
        order_type=OrderType.MARKET,
        amount=position.shares_raw,
        price=None,
        fee_rate_bps=position.fee_rate_bps,
        is_neg_risk=position.is_neg_risk,
        is_yield_bearing=position.is_yield_bearing,
        book=book,
      ))
      self._submit(signed, OrderType.MARKET, self.LIQUIDATION_SLIPPAGE_BPS)
    except Exception as e:
      logger.error("[%s] Failed to sell %.4f %s shares: %s", position.market_id, position.shares, position.outcome, e)
      return False

    logger.info("[%s] Sold %.4f %s shares", position.market_id, position.shares, position.outcome)
    return True
