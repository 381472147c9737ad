"""
Recalculation scheduler for derived reservation charges.

The scheduler owns an explicit dependency graph from draft fields to derived
charge nodes. After a mutation it recomputes exactly the nodes reachable from
the changed fields, in topological order, and returns a new immutable
``ChargeBreakdown``. Callers swap the result in as a whole, so no partially
updated breakdown is ever observable.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from graphlib import TopologicalSorter
from typing import Any

from booking_engine.models.catalog import ComplementaryItem, RoomClass
from booking_engine.models.reservation import ChargeBreakdown, ReservationDraft
from booking_engine.services.pricing import (
    BalanceTracker,
    ChargeAggregator,
    ComplementaryItemsAggregator,
    DiscountEngine,
    OccupancySurchargeCalculator,
    PricingPolicy,
    RateResolver,
)
from booking_engine.utils.logger import get_logger

logger = get_logger(__name__)


# Context inputs that are not draft fields
ROOM_CLASS = "room_class"
COMPLEMENTARY_CATALOG = "complementary_catalog"

# Derived node -> draft fields, context inputs and derived nodes it reads
DEPENDENCIES: dict[str, frozenset[str]] = {
    "room_charge": frozenset({
        "room_class_id", ROOM_CLASS, "billing_type",
        "check_in_date", "check_in_time", "check_out_date", "check_out_time",
    }),
    "extra_charges": frozenset({"room_class_id", ROOM_CLASS, "adults", "children"}),
    "complementary_total": frozenset({
        "room_class_id", "complementary_item_ids", COMPLEMENTARY_CATALOG,
    }),
    "discount_amount": frozenset({
        "discount_type", "discount_value",
        "room_charge", "extra_charges", "complementary_total",
    }),
    "commission_amount": frozenset({
        "room_charge", "commission_percent", "commission_amount_override",
    }),
    "total_amount": frozenset({
        "room_charge", "extra_charges", "complementary_total",
        "discount_amount", "commission_amount", "service_charge", "tax",
    }),
    "balance_amount": frozenset({"total_amount", "advance_amount"}),
}


@dataclass(frozen=True)
class PricingContext:
    """Reference data a recomputation reads besides the draft."""

    room_class: RoomClass | None = None
    complementary_items: Mapping[int, ComplementaryItem] = field(default_factory=dict)


NodeFn = Callable[[ReservationDraft, PricingContext, dict[str, Any]], None]


class RecalculationScheduler:
    """
    Recomputes derived charges over the declared dependency graph.

    Usage:
        scheduler = RecalculationScheduler(PricingPolicy())
        breakdown = scheduler.recompute(draft, context)
        breakdown = scheduler.recompute(draft, context, breakdown, {"adults"})
    """

    def __init__(
        self,
        policy: PricingPolicy | None = None,
        graph: Mapping[str, frozenset[str]] = DEPENDENCIES,
    ):
        self.policy = policy or PricingPolicy()
        self.graph = dict(graph)

        self.rates = RateResolver()
        self.occupancy = OccupancySurchargeCalculator()
        self.complementary = ComplementaryItemsAggregator()
        self.discounts = DiscountEngine(self.policy)
        self.charges = ChargeAggregator()
        self.balance = BalanceTracker()

        self._nodes: dict[str, NodeFn] = {
            "room_charge": self._room_charge,
            "extra_charges": self._extra_charges,
            "complementary_total": self._complementary_total,
            "discount_amount": self._discount_amount,
            "commission_amount": self._commission_amount,
            "total_amount": self._total_amount,
            "balance_amount": self._balance_amount,
        }
        missing = set(self.graph) - set(self._nodes)
        if missing:
            raise ValueError(f"No compute function for nodes: {sorted(missing)}")

        order = TopologicalSorter(self.graph).static_order()
        self.order: tuple[str, ...] = tuple(node for node in order if node in self.graph)

    # =========================================================================
    # Graph queries
    # =========================================================================

    def affected_nodes(self, changed: Iterable[str]) -> tuple[str, ...]:
        """
        Transitive closure of derived nodes reachable from ``changed``.

        Returns:
            Node names in topological order
        """
        dirty = set(changed)
        affected = []
        for node in self.order:
            if self.graph[node] & dirty:
                affected.append(node)
                dirty.add(node)
        return tuple(affected)

    # =========================================================================
    # Recomputation
    # =========================================================================

    def recompute(
        self,
        draft: ReservationDraft,
        context: PricingContext,
        previous: ChargeBreakdown | None = None,
        changed: Iterable[str] | None = None,
    ) -> ChargeBreakdown:
        """
        Recompute derived charges.

        Args:
            draft: Current draft
            context: Room class and complementary catalog for the draft's class
            previous: Breakdown computed for the draft before the mutation
            changed: Draft fields or context inputs that changed; when either
                this or ``previous`` is missing every node is recomputed

        Returns:
            New ChargeBreakdown; inputs are left untouched
        """
        if previous is None or changed is None:
            nodes = self.order
            values = ChargeBreakdown().model_dump()
        else:
            nodes = self.affected_nodes(changed)
            values = previous.model_dump()

        for node in nodes:
            self._nodes[node](draft, context, values)

        logger.debug("charges_recomputed", nodes=list(nodes))
        return ChargeBreakdown(**values)

    # =========================================================================
    # Node functions
    # =========================================================================

    def _room_charge(self, draft, context, values) -> None:
        quote = self.rates.resolve(draft, context.room_class)
        values["base_room_rate"] = quote.base_room_rate
        values["total_room_charge"] = quote.total_room_charge
        values["nights"] = quote.nights
        values["hours"] = quote.hours

    def _extra_charges(self, draft, context, values) -> None:
        values["extra_charges"] = self.occupancy.calculate(
            context.room_class, draft.adults, draft.children
        )

    def _complementary_total(self, draft, context, values) -> None:
        values["complementary_total"] = self.complementary.total(
            draft.complementary_item_ids,
            context.complementary_items,
            draft.room_class_id,
        )

    def _discount_amount(self, draft, context, values) -> None:
        base = self.discounts.discount_base(
            values["total_room_charge"],
            values["extra_charges"],
            values["complementary_total"],
        )
        values["discount_base"] = base
        values["discount_amount"] = self.discounts.calculate(
            draft.discount_type, draft.discount_value, base
        )

    def _commission_amount(self, draft, context, values) -> None:
        values["commission_amount"] = self.charges.commission(
            values["total_room_charge"],
            draft.commission_percent,
            draft.commission_amount_override,
        )

    def _total_amount(self, draft, context, values) -> None:
        values["total_amount"] = self.charges.total(
            total_room_charge=values["total_room_charge"],
            extra_charges=values["extra_charges"],
            complementary_total=values["complementary_total"],
            discount_amount=values["discount_amount"],
            service_charge=draft.service_charge,
            tax=draft.tax,
            commission_amount=values["commission_amount"],
        )

    def _balance_amount(self, draft, context, values) -> None:
        total = values["total_amount"]
        values["balance_amount"] = self.balance.balance(total, draft.advance_amount)
        values["payment_status"] = self.balance.payment_status(total, draft.advance_amount)
