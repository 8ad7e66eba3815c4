#!/usr/bin/env python3
"""
config.py - Environment driven settings for domquery

Settings are read from DOMQUERY_* environment variables. Nothing here
configures logging on import; call configure_logging() from an application
entry point when log output is wanted.
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def _env_int(name: str, default: str) -> int:
    """Read an integer environment variable, falling back on junk values"""
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return int(default)


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() not in ('0', 'false', 'no', 'off', '')


@dataclass(frozen=True)
class Settings:
    """
    Parser and serializer options for a DocumentQuery

    Attributes:
        debug: Debug level, anything above 0 turns on debug logging
        pretty_print: Indent serialized output
        preserve_whitespace: Keep whitespace-only text nodes when parsing
        xml_declaration: Emit an XML declaration for whole-document output
        huge_tree: Lift lxml's safety limits for very deep or large trees
    """
    debug: int = 0
    pretty_print: bool = True
    preserve_whitespace: bool = False
    xml_declaration: bool = True
    huge_tree: bool = False

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            debug=_env_int('DOMQUERY_DEBUG', '0'),
            pretty_print=_env_flag('DOMQUERY_PRETTY_PRINT', '1'),
            preserve_whitespace=_env_flag('DOMQUERY_PRESERVE_WHITESPACE', '0'),
            xml_declaration=_env_flag('DOMQUERY_XML_DECLARATION', '1'),
            huge_tree=_env_flag('DOMQUERY_HUGE_TREE', '0'),
        )


def is_debug_mode() -> bool:
    """Check if debug mode is enabled"""
    return _env_int('DOMQUERY_DEBUG', '0') > 0


def configure_logging(level: Optional[int] = None) -> None:
    """
    Send domquery log records to stderr

    Args:
        level: Logging level, defaults to DEBUG when DOMQUERY_DEBUG is set
            and INFO otherwise
    """
    if level is None:
        level = logging.DEBUG if is_debug_mode() else logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)]
    )
    logging.getLogger('domquery').setLevel(level)
