"""Signal decision engine.

Rules are an ordered tuple of tagged variants. Precedence is the tuple order:
the first rule that fires picks the action, and every other rule of that
same action that also fires is recorded on the Signal. The sentiment gate is
applied after rule evaluation.

Rules see only the current snapshot and the prior one (for the MACD
histogram turn); no other memory is kept between calls.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Optional, Union

from loguru import logger

from .config import RuleParams
from .data_manager import BB_LOWER, BB_UPPER, CLOSE, MACD_HIST, PI_CYCLE_TOP, RSI, IndicatorFrame
from .errors import InsufficientHistory
from .indicators import validate_sentiment
from .types import Action, IndicatorSnapshot, Signal

SentimentInput = Union[None, int, Mapping[date, int]]


class RuleTag(str, Enum):
    SELL_UPPER_BAND = "SELL_UPPER_BAND"
    SELL_RSI_OVERBOUGHT = "SELL_RSI_OVERBOUGHT"
    SELL_PI_CYCLE_TOP = "SELL_PI_CYCLE_TOP"
    BUY_LOWER_BAND_RSI_MACD_TURN = "BUY_LOWER_BAND_RSI_MACD_TURN"


GATE_EXTREME_GREED = "SENTIMENT_EXTREME_GREED"
GATE_EXTREME_FEAR = "SENTIMENT_EXTREME_FEAR"

Condition = Callable[[IndicatorSnapshot, Optional[IndicatorSnapshot], RuleParams], bool]


def _prior(prior: Optional[IndicatorSnapshot], name: str) -> float:
    if prior is None:
        raise InsufficientHistory(f"prior {name}")
    return prior.require(name)


def _sell_upper_band(snap: IndicatorSnapshot, prior: Optional[IndicatorSnapshot], p: RuleParams) -> bool:
    return snap.require(CLOSE) >= snap.require(BB_UPPER)


def _sell_rsi_overbought(snap: IndicatorSnapshot, prior: Optional[IndicatorSnapshot], p: RuleParams) -> bool:
    return snap.require(RSI) >= p.sell_rsi_threshold


def _sell_pi_cycle_top(snap: IndicatorSnapshot, prior: Optional[IndicatorSnapshot], p: RuleParams) -> bool:
    return snap.require(PI_CYCLE_TOP) == 1.0


def _buy_lower_band_rsi_macd_turn(
    snap: IndicatorSnapshot, prior: Optional[IndicatorSnapshot], p: RuleParams
) -> bool:
    price = snap.require(CLOSE)
    lower = snap.require(BB_LOWER)
    rsi = snap.require(RSI)
    hist = snap.require(MACD_HIST)
    hist_prev = _prior(prior, MACD_HIST)
    return price <= lower and rsi <= p.buy_rsi_threshold and hist_prev < 0.0 < hist


@dataclass(frozen=True)
class Rule:
    tag: RuleTag
    action: Action
    when_in_market: bool
    condition: Condition

    def fires(
        self,
        snap: IndicatorSnapshot,
        prior: Optional[IndicatorSnapshot],
        params: RuleParams,
        in_market: bool,
    ) -> bool:
        if in_market != self.when_in_market:
            return False
        try:
            # the action executes at the close, so every rule needs one
            snap.require(CLOSE)
            return bool(self.condition(snap, prior, params))
        except InsufficientHistory as e:
            logger.trace("{} skipped at {}: {}", self.tag.value, snap.timestamp, e)
            return False


RULES: tuple[Rule, ...] = (
    Rule(RuleTag.SELL_UPPER_BAND, Action.SELL, True, _sell_upper_band),
    Rule(RuleTag.SELL_RSI_OVERBOUGHT, Action.SELL, True, _sell_rsi_overbought),
    Rule(RuleTag.SELL_PI_CYCLE_TOP, Action.SELL, True, _sell_pi_cycle_top),
    Rule(RuleTag.BUY_LOWER_BAND_RSI_MACD_TURN, Action.BUY, False, _buy_lower_band_rsi_macd_turn),
)


def evaluate_rules(
    snap: IndicatorSnapshot,
    prior: Optional[IndicatorSnapshot],
    params: RuleParams,
    in_market: bool,
    rules: tuple[Rule, ...] = RULES,
) -> Signal:
    """Rule evaluation without the sentiment gate."""
    fired = [r for r in rules if r.fires(snap, prior, params, in_market)]
    if not fired:
        return Signal.hold()
    action = fired[0].action
    tags = tuple(r.tag.value for r in fired if r.action is action)
    return Signal(action=action, rules=tags)


def apply_sentiment_gate(signal: Signal, sentiment: Optional[int], params: RuleParams) -> Signal:
    """Downgrade actions that go against an extreme crowd reading."""
    if sentiment is None:
        return signal
    if signal.action is Action.BUY and sentiment >= params.extreme_greed_threshold:
        return Signal.hold(gated_by=GATE_EXTREME_GREED, rules=signal.rules)
    if signal.action is Action.SELL and sentiment <= params.extreme_fear_threshold:
        return Signal.hold(gated_by=GATE_EXTREME_FEAR, rules=signal.rules)
    return signal


def decide(
    snapshot: IndicatorSnapshot,
    prior: Optional[IndicatorSnapshot],
    sentiment: Optional[int],
    params: RuleParams,
    *,
    in_market: bool,
) -> Signal:
    """One discrete action for one time step.

    ``sentiment=None`` means no reading is available and the gate is skipped.
    """
    if sentiment is not None:
        sentiment = validate_sentiment(sentiment)
    signal = evaluate_rules(snapshot, prior, params, in_market)
    gated = apply_sentiment_gate(signal, sentiment, params)
    if gated is not signal:
        logger.debug(
            "{}: {} gated to HOLD by {} (sentiment={})",
            snapshot.timestamp,
            signal.action.value,
            gated.gated_by,
            sentiment,
        )
    return gated


def sentiment_at(sentiment: SentimentInput, ts: date) -> Optional[int]:
    if sentiment is None:
        return None
    if isinstance(sentiment, Mapping):
        return sentiment.get(ts)
    return sentiment


def generate_signals(
    frame: IndicatorFrame,
    params: RuleParams,
    sentiment: SentimentInput = None,
    start: int = 0,
) -> list[Signal]:
    """One Signal per index of ``frame``.

    Indices before ``start`` are warmup: they only feed the prior snapshot and
    are reported as Hold. The in-market flag follows the emitted signals.
    """
    signals: list[Signal] = []
    in_market = False
    prior: Optional[IndicatorSnapshot] = None
    for i, snap in enumerate(frame.snapshots()):
        if i < start:
            signals.append(Signal.hold())
        else:
            s = decide(snap, prior, sentiment_at(sentiment, snap.timestamp), params, in_market=in_market)
            if s.action is Action.BUY:
                in_market = True
            elif s.action is Action.SELL:
                in_market = False
            signals.append(s)
        prior = snap
    return signals
