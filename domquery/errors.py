#!/usr/bin/env python3
"""
errors.py - Exception hierarchy for domquery

Every failure raised by the facade derives from DomQueryError so callers can
catch library errors in one place. lxml exceptions are chained, never
swallowed.
"""


class DomQueryError(Exception):
    """Base exception for domquery operations"""
    pass


class LoadError(DomQueryError):
    """Source markup could not be loaded into a document"""
    pass


class QueryError(DomQueryError):
    """XPath expression is invalid or did not select a node-set"""
    pass


class StructuralError(DomQueryError):
    """Mutation targets a node lacking the required parent"""
    pass


class CallbackResolutionError(DomQueryError):
    """Callback passed to walk()/each() cannot be invoked"""
    pass


class UnknownMemberError(DomQueryError, AttributeError):
    """Unknown operation or property requested from the facade"""
    pass
