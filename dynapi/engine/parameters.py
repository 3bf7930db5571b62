"""Build the parameter view for an endpoint and validate required parameters."""

from dataclasses import dataclass, field
from typing import Any, Dict

from dynapi.constants import ParameterSources
from dynapi.exceptions import BadRequestError
from dynapi.models import Endpoint

from .context import RequestContext


def is_missing(value: Any) -> bool:
    """Absent, null and empty-string values fail required checks."""
    return value is None or value == ""


@dataclass(frozen=True)
class ParameterView:
    """Parameters read from the endpoint's declared source.

    For the ``mixed`` source ``values`` is ``{"query": ..., "headers": ...,
    "body": ...}``; for every other source it is a flat map.
    """

    source: str
    values: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        """Direct lookup, lower-casing the name for the header source."""
        if self.source == ParameterSources.HEADER:
            name = name.lower()
        return self.values.get(name)

    def resolve(self, name: str) -> Any:
        """Source-specific resolution used for required-parameter checks.

        For ``mixed`` the query is consulted first, then the lower-cased
        header, then the body; the first non-missing value wins.
        """
        if self.source != ParameterSources.MIXED:
            return self.get(name)

        candidates = (
            self.values.get("query", {}).get(name),
            self.values.get("headers", {}).get(name.lower()),
            self.values.get("body", {}).get(name),
        )
        for candidate in candidates:
            if not is_missing(candidate):
                return candidate
        return None


class ParameterExtractor:
    """Produce a ``ParameterView`` and enforce required parameters."""

    def extract(self, endpoint: Endpoint, context: RequestContext) -> ParameterView:
        source = endpoint.parameter_source

        if source == ParameterSources.QUERY:
            values: Dict[str, Any] = dict(context.query)
        elif source == ParameterSources.HEADER:
            values = {key.lower(): value for key, value in context.headers.items()}
        elif source == ParameterSources.BODY:
            values = dict(context.body_object)
        elif source == ParameterSources.MIXED:
            values = {
                "query": dict(context.query),
                "headers": dict(context.headers),
                "body": dict(context.body_object),
            }
        else:
            values = {}

        return ParameterView(source=source, values=values)

    def validate(self, endpoint: Endpoint, view: ParameterView) -> None:
        """Check every required parameter in declaration order.

        Raises:
            BadRequestError: Naming the first missing parameter and the source
        """
        for spec in endpoint.parameters:
            if spec.required and is_missing(view.resolve(spec.name)):
                raise BadRequestError(
                    f"Missing required parameter: {spec.name}",
                    {"parameter": spec.name, "source": endpoint.parameter_source},
                )
