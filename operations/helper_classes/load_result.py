from typing import Any, Dict, NamedTuple, Optional

from operations.helper_classes.queryable import Queryable
from utils.errors import RavenError


class LoadResult(NamedTuple):
    error: Optional[RavenError]
    results: Queryable
    includes: Queryable

    @classmethod
    def of(cls, results=None, includes=None, error: Optional[RavenError] = None) -> "LoadResult":
        return cls(error, Queryable(results), Queryable(includes))

    @property
    def document(self) -> Optional[Dict[str, Any]]:
        """First primary document, the natural answer to a single-id load."""
        return self.results.first()

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
