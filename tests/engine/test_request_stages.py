"""Tests for matching, access protection and parameter extraction."""

import pytest

from dynapi.engine.context import RequestContext
from dynapi.engine.guard import AccessGuard, bearer_token
from dynapi.engine.matcher import RequestMatcher
from dynapi.engine.parameters import ParameterExtractor
from dynapi.exceptions import BadRequestError, NotFoundError, UnauthorizedError
from dynapi.models import Endpoint


def endpoint(path="/items", method="GET", **kwargs):
    kwargs.setdefault("responses", [{"condition": None, "data": {}}])
    return Endpoint(path=path, method=method, **kwargs)


class TestRequestMatcher:
    """Test exact-string, first-match-wins lookup."""

    def setup_method(self):
        self.matcher = RequestMatcher()

    def test_matches_exact_path_and_method(self):
        target = endpoint("/items", "GET")
        found = self.matcher.match([endpoint("/other"), target], "GET", "/items")
        assert found is target

    def test_method_is_case_insensitive_and_any_matches_all(self):
        target = endpoint("/any", "ANY")
        assert self.matcher.match([target], "delete", "/any") is target

    def test_earliest_duplicate_wins(self):
        first = endpoint("/dup", "GET", description="first")
        second = endpoint("/dup", "GET", description="second")
        assert self.matcher.match([first, second], "GET", "/dup") is first

    def test_disabled_endpoints_are_skipped(self):
        disabled = endpoint("/dup", "GET", enabled=False)
        enabled = endpoint("/dup", "GET")
        assert self.matcher.match([disabled, enabled], "GET", "/dup") is enabled

    def test_no_prefix_or_wildcard_matching(self):
        with pytest.raises(NotFoundError):
            self.matcher.match([endpoint("/items")], "GET", "/items/1")
        with pytest.raises(NotFoundError):
            self.matcher.match([endpoint("/items")], "POST", "/items")

    @pytest.mark.parametrize("path", ["/admin", "/admin/x", "/api/admin/endpoints", "/health"])
    def test_reserved_paths_never_match(self, path):
        # Imported data may contain reserved paths; they must stay unreachable
        with pytest.raises(NotFoundError):
            self.matcher.match([endpoint(path, "ANY")], "GET", path)


class TestAccessGuard:
    """Test per-endpoint bearer-token protection."""

    def setup_method(self):
        self.guard = AccessGuard()
        self.protected = endpoint(protected=True, token="s3cret")

    def test_unprotected_endpoint_needs_nothing(self):
        self.guard.check(endpoint(), {})

    def test_missing_header(self):
        with pytest.raises(UnauthorizedError) as exc_info:
            self.guard.check(self.protected, {})
        assert exc_info.value.message == "Authorization required"

    def test_wrong_token(self):
        with pytest.raises(UnauthorizedError) as exc_info:
            self.guard.check(self.protected, {"authorization": "Bearer nope"})
        assert exc_info.value.message == "Invalid token"

    def test_wrong_scheme(self):
        with pytest.raises(UnauthorizedError):
            self.guard.check(self.protected, {"authorization": "Basic s3cret"})

    def test_correct_token(self):
        self.guard.check(self.protected, {"authorization": "Bearer s3cret"})

    def test_bearer_token_parsing(self):
        assert bearer_token("Bearer abc") == "abc"
        assert bearer_token("bearer   abc ") == "abc"
        assert bearer_token("Token abc") is None
        assert bearer_token(None) is None


class TestParameterExtractor:
    """Test parameter views and required-parameter validation."""

    def setup_method(self):
        self.extractor = ParameterExtractor()
        self.context = RequestContext(
            method="POST",
            path="/p",
            query={"q": "1", "empty": ""},
            headers={"X-Key": "abc"},
            body={"b": 2, "shared": "from-body"},
        )

    def test_none_source_is_empty(self):
        view = self.extractor.extract(endpoint(), self.context)
        assert view.values == {}

    def test_query_source(self):
        view = self.extractor.extract(endpoint(parameter_source="query"), self.context)
        assert view.get("q") == "1"

    def test_header_source_lower_cases_names(self):
        view = self.extractor.extract(endpoint(parameter_source="header"), self.context)
        assert view.get("X-KEY") == "abc"

    def test_body_source_defaults_to_empty_object(self):
        context = RequestContext(method="POST", path="/p", body=None)
        view = self.extractor.extract(endpoint(parameter_source="body"), context)
        assert view.values == {}

    def test_mixed_resolution_order(self):
        context = RequestContext(
            method="POST",
            path="/p",
            query={"shared": ""},
            headers={"shared": "from-header"},
            body={"shared": "from-body", "only": "body"},
        )
        view = self.extractor.extract(endpoint(parameter_source="mixed"), context)
        assert view.resolve("shared") == "from-header"
        assert view.resolve("only") == "body"
        assert view.get("query") == {"shared": ""}

    @pytest.mark.parametrize(
        "source,name",
        [("query", "missing"), ("query", "empty"), ("header", "x-missing"), ("body", "nope"), ("mixed", "zzz")],
    )
    def test_missing_required_parameter(self, source, name):
        declared = endpoint(
            parameter_source=source, parameters=[{"name": name, "required": True}]
        )
        view = self.extractor.extract(declared, self.context)
        with pytest.raises(BadRequestError) as exc_info:
            self.extractor.validate(declared, view)
        assert exc_info.value.details == {"parameter": name, "source": source}
        assert name in exc_info.value.message

    def test_null_body_value_fails_validation(self):
        declared = endpoint(
            parameter_source="body", parameters=[{"name": "b", "required": True}]
        )
        context = RequestContext(method="POST", path="/p", body={"b": None})
        with pytest.raises(BadRequestError):
            self.extractor.validate(declared, self.extractor.extract(declared, context))

    def test_present_and_optional_parameters_pass(self):
        declared = endpoint(
            parameter_source="header",
            parameters=[{"name": "X-Key", "required": True}, {"name": "other"}],
        )
        self.extractor.validate(declared, self.extractor.extract(declared, self.context))
