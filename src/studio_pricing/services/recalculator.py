"""Reactive recalculation of session prices on quantity and configuration events."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal

from studio_pricing.domain.money import coerce_quantity, to_money
from studio_pricing.domain.payloads import snapshot_to_json
from studio_pricing.domain.pricing import ZERO, CalculationResult
from studio_pricing.domain.snapshots import FreezeSnapshot
from studio_pricing.services.calculation import CalculationEngine, PricingContext

_logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class ValueUpdate:
    """New prices to write back to a session."""

    session_id: str
    unit_price: Decimal
    total_price: Decimal
    silent: bool = True


@dataclass(frozen=True)
class _Memo:
    quantity: int
    context_key: str
    result: CalculationResult


ValueListener = Callable[[ValueUpdate], None]


@dataclass
class ReactiveRecalculator:
    """Recomputes prices only when inputs or outputs actually change."""

    engine: CalculationEngine
    tolerance: Decimal = DEFAULT_TOLERANCE
    _listeners: list[ValueListener] = field(
        default_factory=list, init=False, repr=False
    )
    _memos: dict[str, _Memo] = field(default_factory=dict, init=False, repr=False)

    def subscribe(self, listener: ValueListener) -> None:
        """Register a consumer of value updates."""
        self._listeners.append(listener)

    def recalculate(  # noqa: PLR0913
        self,
        session_id: str,
        quantity: object,
        context: PricingContext,
        cached_unit_price: object,
        cached_total_price: object,
        *,
        manual_historical: bool = False,
    ) -> ValueUpdate | None:
        """Return and emit an update when the session's prices must change."""
        if manual_historical:
            return None

        count = coerce_quantity(quantity)
        cached_unit = to_money(cached_unit_price, label="cached unit price")
        cached_total = to_money(cached_total_price, label="cached total price")
        if count == 0 and cached_unit == ZERO and cached_total == ZERO:
            return None

        context_key = self._context_key(context)
        memo = self._memos.get(session_id)
        if memo and memo.quantity == count and memo.context_key == context_key:
            result = memo.result
        else:
            result = self.engine.calculate_extra_photos_total(count, context)
            self._memos[session_id] = _Memo(count, context_key, result)

        if self._within_tolerance(result, cached_unit, cached_total):
            return None

        update = ValueUpdate(
            session_id=session_id,
            unit_price=result.unit_price,
            total_price=result.total_price,
            silent=True,
        )
        self._emit(update)
        return update

    def on_quantity_change(  # noqa: PLR0913
        self,
        session_id: str,
        quantity: object,
        context: PricingContext,
        cached_unit_price: object,
        cached_total_price: object,
        *,
        manual_historical: bool = False,
    ) -> ValueUpdate | None:
        return self.recalculate(
            session_id,
            quantity,
            context,
            cached_unit_price,
            cached_total_price,
            manual_historical=manual_historical,
        )

    def on_configuration_mode_change(self) -> None:
        """Drop memos built from the live configuration."""
        stale = [
            session_id
            for session_id, memo in self._memos.items()
            if memo.context_key.startswith("live:")
        ]
        for session_id in stale:
            self._memos.pop(session_id, None)
        _logger.info("Configuration changed; cleared %s live memos", len(stale))

    def emit_manual(
        self, session_id: str, unit_price: Decimal, total_price: Decimal
    ) -> ValueUpdate:
        """Emit a user-entered price edit and forget any memo for the session."""
        self._memos.pop(session_id, None)
        update = ValueUpdate(
            session_id=session_id,
            unit_price=unit_price,
            total_price=total_price,
            silent=False,
        )
        self._emit(update)
        return update

    def forget(self, session_id: str) -> None:
        self._memos.pop(session_id, None)

    def _context_key(self, context: PricingContext) -> str:
        if isinstance(context, FreezeSnapshot):
            return f"frozen:{snapshot_to_json(context)}"
        revision = self.engine.configuration.revision
        return f"live:{revision}:{context.category_id}:{context.package_id}"

    def _within_tolerance(
        self, result: CalculationResult, cached_unit: Decimal, cached_total: Decimal
    ) -> bool:
        return (
            abs(result.unit_price - cached_unit) <= self.tolerance
            and abs(result.total_price - cached_total) <= self.tolerance
        )

    def _emit(self, update: ValueUpdate) -> None:
        for listener in list(self._listeners):
            listener(update)


@dataclass
class _PendingEdit:
    task: asyncio.Task
    result: asyncio.Future


@dataclass
class QuantityDebouncer:
    """Collapses rapid quantity edits per session into one settled call.

    Every push for a session made before the call runs receives the same
    future, resolved with the outcome of the last edit.
    """

    callback: Callable[[str, object], object]
    settle_seconds: float = 0.4
    _pending: dict[str, _PendingEdit] = field(
        default_factory=dict, init=False, repr=False
    )

    def push(self, session_id: str, quantity: object) -> asyncio.Future:
        """Schedule a call, superseding any pending one for the same session."""
        loop = asyncio.get_running_loop()
        pending = self._pending.pop(session_id, None)
        if pending is not None and not pending.task.done():
            pending.task.cancel()
            result = pending.result
        else:
            result = loop.create_future()
        task = loop.create_task(self._settle(session_id, quantity, result))
        self._pending[session_id] = _PendingEdit(task=task, result=result)
        return result

    async def flush(self) -> None:
        """Wait for every pending call to run."""
        tasks = [edit.task for edit in self._pending.values() if not edit.task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _settle(
        self, session_id: str, quantity: object, result: asyncio.Future
    ) -> None:
        await asyncio.sleep(self.settle_seconds)
        self._pending.pop(session_id, None)
        try:
            value = self.callback(session_id, quantity)
        except Exception as exc:
            _logger.warning("Quantity edit for session %s failed: %s", session_id, exc)
            if not result.done():
                result.set_exception(exc)
            return
        if not result.done():
            result.set_result(value)
