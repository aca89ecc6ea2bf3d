"""Base class for upstream resort data sources."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from snowpeak.cache.models import ResortSnapshot
from snowpeak.exceptions import SourceUnavailable

logger = logging.getLogger(__name__)


class SnowSource(ABC):
    """An upstream provider of resort snow data.

    Subclasses implement ``fetch`` and list the library errors that mean
    "this source is unavailable right now" in ``recoverable_errors``.
    ``try_fetch`` is the uniform contract used by the fallback chain: it
    returns a canonical snapshot or raises ``SourceUnavailable``.
    """

    #: Short identifier used in logs, errors and the snapshot ``source`` tag
    name: str = "source"

    #: Library exceptions converted into SourceUnavailable by try_fetch
    recoverable_errors: tuple[type[BaseException], ...] = (ValueError,)

    @abstractmethod
    def fetch(self, resort_name: str, state_hint: Optional[str] = None) -> ResortSnapshot:
        """Fetch a resort snapshot.

        Args:
            resort_name: Resort display name (e.g. "Vail")
            state_hint: Two-letter state abbreviation, if known

        Returns:
            Canonical resort snapshot

        Raises:
            SourceUnavailable: If the source has no usable data
        """
        raise NotImplementedError

    def try_fetch(self, resort_name: str, state_hint: Optional[str] = None) -> ResortSnapshot:
        """Fetch a snapshot, mapping any recoverable failure to SourceUnavailable."""
        try:
            return self.fetch(resort_name, state_hint)
        except SourceUnavailable:
            raise
        except self.recoverable_errors as e:
            raise SourceUnavailable(self.name, f"{type(e).__name__}: {e}") from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
