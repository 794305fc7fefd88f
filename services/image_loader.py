"""
Image Load Waiting

Browser-side helpers that make sure story images have actually loaded before
stories are extracted and the page is photographed. Each <img> gets its own
deadline and settles when it loads, errors or times out, so one broken image
never holds up the rest.
"""

from playwright.async_api import Page

from utils.logger import get_logger

logger = get_logger(__name__)

# Resolves to {"total": n, "loaded": n, "additional": n}
WAIT_FOR_IMAGES_JS = """
async ({ timeoutMs, settleMs }) => {
    const isLoaded = (img) => !!(
        img.src && img.complete && img.naturalWidth > 0 && img.naturalHeight > 0
    );

    const waitForImage = (img) => new Promise((resolve) => {
        if (isLoaded(img)) {
            resolve();
            return;
        }
        let timer = null;
        const done = () => {
            clearTimeout(timer);
            img.removeEventListener('load', done);
            img.removeEventListener('error', done);
            resolve();
        };
        img.addEventListener('load', done, { once: true });
        img.addEventListener('error', done, { once: true });

        // Reassign src so load/error fire even for images that stalled earlier
        const src = img.src;
        img.src = '';
        setTimeout(() => { img.src = src; }, 10);

        timer = setTimeout(done, timeoutMs);
    });

    const initial = Array.from(document.querySelectorAll('img'));
    if (initial.length === 0) {
        return { total: 0, loaded: 0, additional: 0 };
    }
    await Promise.all(initial.map(waitForImage));

    await new Promise((resolve) => setTimeout(resolve, settleMs));

    const seen = new Set(initial);
    const additional = Array.from(document.querySelectorAll('img')).filter((img) => !seen.has(img));
    if (additional.length > 0) {
        await Promise.all(additional.map(waitForImage));
    }

    const finalImages = Array.from(document.querySelectorAll('img'));
    return {
        total: finalImages.length,
        loaded: finalImages.filter(isLoaded).length,
        additional: additional.length,
    };
}
"""

SCROLL_PAGE_JS = """
async ({ step, intervalMs, maxSteps }) => {
    await new Promise((resolve) => {
        let travelled = 0;
        let steps = 0;
        const timer = setInterval(() => {
            const scrollHeight = document.body.scrollHeight;
            window.scrollBy(0, step);
            travelled += step;
            steps += 1;
            if (travelled >= scrollHeight || steps >= maxSteps) {
                clearInterval(timer);
                window.scrollTo(0, 0);
                setTimeout(resolve, 1000);
            }
        }, intervalMs);
    });
}
"""


async def ensure_all_images_loaded(page: Page, timeout_ms: int = 10000, settle_ms: int = 2000) -> dict:
    """
    Wait for every <img> on the page, then for any that appeared meanwhile.

    Args:
        page: The Playwright page
        timeout_ms: Deadline per image
        settle_ms: Pause before looking for lazily added images

    Returns:
        dict: 'total', 'loaded' and 'additional' image counts
    """
    stats = await page.evaluate(WAIT_FOR_IMAGES_JS, {"timeoutMs": timeout_ms, "settleMs": settle_ms})
    stats = stats or {"total": 0, "loaded": 0, "additional": 0}
    logger.info(
        f"Image loading complete: {stats.get('loaded', 0)}/{stats.get('total', 0)} loaded"
        f" ({stats.get('additional', 0)} lazy-loaded)"
    )
    return stats


async def scroll_page(page: Page, step_px: int = 200, interval_ms: int = 100, max_steps: int = 150) -> None:
    """
    Scroll down in fixed steps to trigger lazy loading, then back to the top.

    Stops at the bottom of the page or after `max_steps`, whichever comes
    first, so infinite-scroll pages cannot keep the capture waiting.
    """
    await page.evaluate(SCROLL_PAGE_JS, {"step": step_px, "intervalMs": interval_ms, "maxSteps": max_steps})
