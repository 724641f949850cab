"""
Ranking table state: records of the current dataset plus its SortState.

Queries are tracked with a generation counter. Only the result of the latest
query is applied; anything older is dropped without touching what is shown.

Thread-safety: NOT thread-safe. Designed for single-threaded async use.
"""

from __future__ import annotations

from typing import Hashable, NamedTuple, Sequence

from ..types import FieldKey, Record, SortDirection, SortKey, SortState
from .sorting import UNSORTED, compute_order, request_sort, sort_indicator


class RankingTable(NamedTuple):
    """A ranking screen: backend command plus its initial sort."""
    name: str
    command: str
    label_field: str  # Column naming the row (channel or game)
    default_sort: SortState


TOP_CHANNELS = RankingTable(
    name="channels",
    command="get_broadcaster_analytics",
    label_field="channel_name",
    default_sort=SortState(FieldKey("minutes_watched"), SortDirection.DESCENDING),
)

TOP_GAMES = RankingTable(
    name="games",
    command="get_game_analytics",
    label_field="category",
    default_sort=SortState(FieldKey("minutes_watched"), SortDirection.DESCENDING),
)

RANKING_TABLES: dict[str, RankingTable] = {t.name: t for t in (TOP_CHANNELS, TOP_GAMES)}


class QueryTicket(NamedTuple):
    generation: int
    dataset_id: Hashable


class RankingView:
    """
    Holds one table view's records and sort state.

    Usage:
        view = RankingView(TOP_CHANNELS.default_sort)
        ticket = view.begin_query(("channels", start, end))
        records = await client.fetch_ranking(TOP_CHANNELS, start, end)
        view.apply_result(ticket, records)
        rows = view.ordered()
    """

    __slots__ = ('default_sort', 'sort_state', 'dataset_id', '_records', '_generation')

    def __init__(self, default_sort: SortState) -> None:
        self.default_sort = default_sort
        self.sort_state = default_sort
        self.dataset_id: Hashable | None = None
        self._records: Sequence[Record] = []
        self._generation = 0

    @property
    def records(self) -> Sequence[Record]:
        """Records in backend order."""
        return self._records

    def begin_query(self, dataset_id: Hashable) -> QueryTicket:
        """Start a query; supersedes every ticket issued before."""
        self._generation += 1
        return QueryTicket(self._generation, dataset_id)

    def cancel(self) -> None:
        """Supersede the in-flight query, if any."""
        self._generation += 1

    def is_current(self, ticket: QueryTicket) -> bool:
        return ticket.generation == self._generation

    def apply_result(self, ticket: QueryTicket, records: Sequence[Record]) -> bool:
        """
        Show `records` if `ticket` is still the latest query.

        A new dataset identity replaces the sort state with the default.
        Returns False (and changes nothing) for superseded tickets.
        """
        if not self.is_current(ticket):
            return False
        if ticket.dataset_id != self.dataset_id:
            self.sort_state = self.default_sort
            self.dataset_id = ticket.dataset_id
        self._records = records
        return True

    def clear_sort(self) -> None:
        """Drop the active sort; the next request_sort on any key is ascending."""
        self.sort_state = UNSORTED

    def request_sort(self, key: SortKey | str) -> SortState:
        self.sort_state = request_sort(self.sort_state, key)
        return self.sort_state

    def indicator(self, key: SortKey | str) -> str:
        return sort_indicator(self.sort_state, key)

    def ordered(self) -> Sequence[Record]:
        return compute_order(self._records, self.sort_state)
