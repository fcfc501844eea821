"""Full-page-height viewport sizing.

``plan_full_height`` is pure: it turns layout metrics and the configured
baseline viewport into the viewport a full-height screenshot needs. The
async helpers read metrics from the page and apply the plan.
"""

import logging
import math
import sys
from typing import Optional

from playwright.async_api import Error, Page

from ..models.capture import LayoutMetrics, Viewport

logger = logging.getLogger(__name__)

FALLBACK_WIDTH = 1024
MAX_HEIGHT_MULTIPLIER = 10

_METRICS_SCRIPT = """() => ({
    content_width: Math.max(
        document.documentElement.scrollWidth,
        document.body ? document.body.scrollWidth : 0
    ),
    content_height: Math.max(
        document.documentElement.scrollHeight,
        document.body ? document.body.scrollHeight : 0
    ),
    visual_client_width: window.visualViewport ? window.visualViewport.width : null,
    visual_client_height: window.visualViewport ? window.visualViewport.height : null,
    layout_client_width: document.documentElement.clientWidth,
    layout_client_height: document.documentElement.clientHeight
})"""


def _positive_ceil(value: Optional[float]) -> int:
    if value is None:
        return 0
    return int(math.ceil(value))


def plan_full_height(
    metrics: LayoutMetrics,
    baseline: Viewport,
    active: Optional[Viewport] = None,
) -> Optional[Viewport]:
    """Compute the viewport for a full-height capture.

    Args:
        metrics: Current page layout metrics
        baseline: Configured viewport; zero dimensions mean unset
        active: Viewport currently applied to the page, if known

    Returns:
        The viewport to apply, or None when no change is needed
    """
    target_height = _positive_ceil(metrics.content_height)

    min_height = baseline.height
    if min_height <= 0:
        min_height = _positive_ceil(metrics.visual_client_height)
    if min_height <= 0:
        min_height = metrics.layout_client_height or 0
    if min_height <= 0:
        min_height = target_height
    if min_height <= 0:
        min_height = 1

    target_height = max(target_height, min_height)

    if min_height > sys.maxsize // MAX_HEIGHT_MULTIPLIER:
        max_height = sys.maxsize
    else:
        max_height = min_height * MAX_HEIGHT_MULTIPLIER
    target_height = min(target_height, max_height)

    if target_height <= 0:
        return None

    width = baseline.width
    if width <= 0:
        width = _positive_ceil(metrics.visual_client_width)
    if width <= 0:
        width = metrics.layout_client_width or 0
    if width <= 0:
        width = _positive_ceil(metrics.content_width)
    if width <= 0:
        width = FALLBACK_WIDTH

    current = active or baseline
    if current.width == width and current.height == target_height:
        return None

    return Viewport(width=width, height=target_height)


async def query_layout_metrics(page: Page) -> LayoutMetrics:
    """Read layout metrics over CDP, falling back to in-page measurement."""
    try:
        session = await page.context.new_cdp_session(page)
    except Error as e:
        logger.debug(f"CDP unavailable, measuring layout in page: {e}")
        return LayoutMetrics(**await page.evaluate(_METRICS_SCRIPT))

    try:
        return LayoutMetrics.from_cdp(await session.send("Page.getLayoutMetrics"))
    finally:
        await session.detach()


async def adjust_viewport_for_full_height(page: Page, baseline: Viewport) -> Optional[Viewport]:
    """Resize the page viewport to fit its content height.

    Returns:
        The applied viewport, or None if the page already had it
    """
    metrics = await query_layout_metrics(page)

    active = None
    if page.viewport_size:
        active = Viewport(**page.viewport_size)

    planned = plan_full_height(metrics, baseline, active)
    if planned is None:
        logger.debug("Viewport already matches full page height")
        return None

    await page.set_viewport_size(planned.to_playwright())
    logger.debug(f"Viewport adjusted for full height: {planned.width}x{planned.height}")
    return planned
