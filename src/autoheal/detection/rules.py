"""Scanner rules for the error detector.

Each category has one ``ScanRule``: the keywords that pull records into the
scan, the result limit, and a list of insights that turn message text into
recommendations. An insight marked ``critical`` also flags every record it
matches as a critical item.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from autoheal.core.models import ErrorCategory, ErrorRecord


@dataclass(frozen=True)
class Insight:
    """A message pattern that produces a recommendation."""

    terms: tuple[str, ...]
    recommendation: str
    critical: bool = False
    min_count: int = 1
    """Minimum matching records before the recommendation is emitted."""

    extra: Callable[[ErrorRecord], bool] | None = None
    """Additional predicate that also counts as a match."""

    def matches(self, record: ErrorRecord) -> bool:
        message = record.message.lower()
        if any(term in message for term in self.terms):
            return True
        return self.extra is not None and self.extra(record)


@dataclass(frozen=True)
class ScanRule:
    category: ErrorCategory
    keywords: tuple[str, ...] = ()
    limit: int = 30
    insights: tuple[Insight, ...] = field(default_factory=tuple)


def _slow_context(record: ErrorRecord) -> bool:
    duration = record.context.get("duration_ms")
    return isinstance(duration, (int, float)) and duration > 5000


SCAN_RULES: dict[ErrorCategory, ScanRule] = {
    ErrorCategory.RUNTIME: ScanRule(
        category=ErrorCategory.RUNTIME,
        keywords=("unhandled", "uncaught", "is not a function", "cannot read propert"),
        limit=50,
        insights=(
            Insight(
                terms=("react", "hook", "component"),
                recommendation="Component errors detected - check hook usage "
                "and component lifecycle",
                min_count=4,
            ),
            Insight(
                terms=("unhandled promise", "unhandledrejection", "unhandled rejection"),
                recommendation="Unhandled promise rejections found - add rejection "
                "handlers to async operations",
                min_count=3,
            ),
        ),
    ),
    ErrorCategory.AUTH: ScanRule(
        category=ErrorCategory.AUTH,
        keywords=("permission", "unauthorized", "forbidden"),
        insights=(
            Insight(
                terms=("row level security", "rls", "policy"),
                recommendation="RLS policy issues detected - check table policies",
                critical=True,
            ),
            Insight(
                terms=("token", "unauthorized"),
                recommendation="Authentication errors detected - verify login state "
                "and token validity",
            ),
            Insight(
                terms=("permission denied", "forbidden"),
                recommendation="Permission denied errors - check that access "
                "policies allow the operation",
            ),
        ),
    ),
    ErrorCategory.BUILD: ScanRule(
        category=ErrorCategory.BUILD,
        keywords=("cannot find module", "syntax error", "type error"),
        insights=(
            Insight(
                terms=("is not assignable", "type '"),
                recommendation="Type errors found - add proper type annotations "
                "and interface definitions",
                critical=True,
            ),
            Insight(
                terms=("cannot find module", "module not found"),
                recommendation="Module resolution errors - verify import paths "
                "and installed dependencies",
            ),
            Insight(
                terms=("syntax error", "syntaxerror", "unexpected token"),
                recommendation="Syntax errors detected - check for missing brackets "
                "or invalid statements",
                critical=True,
            ),
        ),
    ),
    ErrorCategory.INTEGRATION: ScanRule(
        category=ErrorCategory.INTEGRATION,
        keywords=("edge function", "timeout", "webhook"),
        insights=(
            Insight(
                terms=("timeout", "timed out"),
                recommendation="Integration timeouts detected - optimize the "
                "function or increase timeout limits",
            ),
            Insight(
                terms=("crash", "memory"),
                recommendation="Integration crashes detected - check for memory "
                "leaks and infinite loops",
                critical=True,
            ),
        ),
    ),
    ErrorCategory.PERFORMANCE: ScanRule(
        category=ErrorCategory.PERFORMANCE,
        keywords=("performance", "slow", "memory"),
        insights=(
            Insight(
                terms=("memory", "heap"),
                recommendation="Memory issues detected - check for leaks, unnecessary "
                "re-renders and large data structures",
            ),
            Insight(
                terms=("slow", "timeout"),
                recommendation="Slow operations detected - optimize queries, add "
                "pagination or move work to the background",
                extra=_slow_context,
            ),
        ),
    ),
    ErrorCategory.DEPENDENCY: ScanRule(
        category=ErrorCategory.DEPENDENCY,
        keywords=("circular", "cannot find module", "version"),
        insights=(
            Insight(
                terms=("circular", "cycle"),
                recommendation="Circular dependency detected - refactor imports "
                "to break the cycle",
                critical=True,
            ),
            Insight(
                terms=("cannot find module", "module not found"),
                recommendation="Missing dependencies detected - install the "
                "required packages",
            ),
        ),
    ),
    ErrorCategory.NETWORK: ScanRule(
        category=ErrorCategory.NETWORK,
        keywords=("network", "cors", "fetch", "api"),
        insights=(
            Insight(
                terms=("cors", "cross-origin"),
                recommendation="CORS errors detected - configure CORS headers on "
                "the API endpoints",
            ),
            Insight(
                terms=("api", "fetch failed"),
                recommendation="API failures detected - check endpoint URLs, "
                "authentication and error handling",
            ),
            Insight(
                terms=("timeout", "timed out"),
                recommendation="Network timeouts detected - add retries with "
                "exponential backoff",
            ),
        ),
    ),
}
