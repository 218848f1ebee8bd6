"""
Demonstration of request interception with browser-control.

This example shows:
1. How to attach browser-control to a Playwright page
2. How to block, mock and rewrite requests
3. How redirects and failures are reported
"""

import asyncio
import os

from dotenv import load_dotenv
from playwright.async_api import async_playwright

from browser_control import ErrorCode, Page, PageOptions

# Load environment variables (BROWSER_CONTROL_*, DEMO_URL)
load_dotenv()


async def demonstrate_interception():
    """Block images, mock an API endpoint and tag every other request."""
    print("=== Request Interception Demonstration ===\n")
    url = os.getenv("DEMO_URL", "https://example.com")

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=os.getenv("HEADLESS", "true") != "false")
        playwright_page = await browser.new_page()
        page = await Page.from_playwright(playwright_page, PageOptions.from_env())

        await page.set_extra_http_headers({"X-Demo": "browser-control"})
        await page.set_request_interception(True)

        async def on_request(request):
            if request.resource_type.value in ("image", "media", "font"):
                print(f"   [BLOCK] {request.url}")
                await request.abort(ErrorCode.BLOCKED_BY_CLIENT)
            elif request.url.endswith("/api/status"):
                print(f"   [MOCK]  {request.url}")
                await request.respond(status=200, content_type="application/json", body='{"ok": true}')
            else:
                await request.continue_(headers={**request.headers, "X-Intercepted": "1"})

        page.on("request", on_request)
        page.on("request_failed", lambda request: print(f"   [FAIL]  {request.url}: {request.failure_text}"))

        print(f"1. Navigating to {url}...")
        response = await page.goto(url)
        if response is not None:
            print(f"\n2. Main resource: {response.status} {response.url}")
            for hop in response.request.redirect_chain:
                print(f"   - redirected from {hop.url} ({hop.response.status})")

        print("\n3. Waiting for the first heading...")
        heading = await page.wait_for_selector("h1", visible=True, timeout=5000)
        if heading is not None:
            print(f"   Heading: {await heading.evaluate('node => node.textContent')}")

        await page.close()
        await browser.close()


if __name__ == "__main__":
    asyncio.run(demonstrate_interception())
