"""Total-record-count estimation for backends that page without a trusted count."""

from __future__ import annotations

import logging
from typing import Any

from records_browser.models import TotalEstimate

logger = logging.getLogger(__name__)


class TotalEstimator:
    """Track a best-effort total across page responses of one query shape.

    While only full pages have been seen the estimate is a lower bound of
    ``page_index * page_size + 1`` and never decreases. The first short page
    (or a trusted server count) makes it exact; later pages that fit inside
    the known total keep it exact, and a full page past it raises the exact
    value rather than reverting to a lower bound.
    """

    __slots__ = ("_estimate", "_shape")

    def __init__(self) -> None:
        self._estimate = TotalEstimate()
        self._shape: Any = None

    @property
    def estimate(self) -> TotalEstimate:
        return self._estimate

    def reset(self, shape: Any = None) -> None:
        """Forget everything learned; the next response starts a new estimate."""
        self._estimate = TotalEstimate()
        self._shape = shape

    def ensure_shape(self, shape: Any) -> None:
        """Reset when responses start arriving for a different query shape."""
        if shape != self._shape:
            self.reset(shape)

    def observe(
        self,
        *,
        page_index: int,
        page_size: int,
        item_count: int,
        server_total: int | None = None,
        trust_server_total: bool = False,
    ) -> TotalEstimate:
        """Fold one page response into the estimate and return the new value."""
        visible_end = (page_index - 1) * page_size + item_count
        previous = self._estimate

        if trust_server_total and server_total is not None:
            self._estimate = TotalEstimate(value=max(server_total, visible_end), exact=True)
        elif item_count < page_size:
            self._estimate = TotalEstimate(value=visible_end, exact=True)
        elif previous.exact:
            if visible_end > previous.value:
                # The collection grew; stay exact at the new visible end.
                logger.debug(
                    "Full page %d reached past exact total %d; raising to %d",
                    page_index,
                    previous.value,
                    visible_end,
                )
                self._estimate = TotalEstimate(value=visible_end, exact=True)
        else:
            lower_bound = page_index * page_size + 1
            self._estimate = TotalEstimate(value=max(previous.value, lower_bound), exact=False)
        return self._estimate


__all__ = ["TotalEstimator"]
