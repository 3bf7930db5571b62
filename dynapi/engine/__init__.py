"""Request-time engine turning endpoint declarations into responses."""

from .conditions import ConditionEvaluator, ConditionScope, compile_condition
from .context import RequestContext, read_body
from .dispatcher import ResponseDispatcher
from .guard import AccessGuard
from .matcher import RequestMatcher
from .parameters import ParameterExtractor, ParameterView
from .pipeline import DynamicRequestHandler
from .templates import TemplateRenderer

__all__ = [
    "AccessGuard",
    "ConditionEvaluator",
    "ConditionScope",
    "DynamicRequestHandler",
    "ParameterExtractor",
    "ParameterView",
    "RequestContext",
    "RequestMatcher",
    "ResponseDispatcher",
    "TemplateRenderer",
    "compile_condition",
    "read_body",
]
