"""Browser capture components: interception, event correlation, sizing and orchestration."""

from .browser_factory import BrowserConfig, BrowserEngineType, BrowserFactory
from .correlator import EventCorrelator
from .engine import CaptureEngine, CaptureEngineConfig, execute_capture
from .event_feed import PageEventFeed
from .interception import (
    Allow,
    Deny,
    InterceptionDecision,
    InterceptionPolicy,
    interception_required,
    merge_headers,
)
from .page_session import PageSession
from .viewport import adjust_viewport_for_full_height, plan_full_height

__all__ = [
    'BrowserConfig',
    'BrowserEngineType',
    'BrowserFactory',
    'EventCorrelator',
    'CaptureEngine',
    'CaptureEngineConfig',
    'execute_capture',
    'PageEventFeed',
    'Allow',
    'Deny',
    'InterceptionDecision',
    'InterceptionPolicy',
    'interception_required',
    'merge_headers',
    'PageSession',
    'adjust_viewport_for_full_height',
    'plan_full_height',
]
