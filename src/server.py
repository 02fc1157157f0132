"""Protean Engine runner for the marketplace domain.

With PROTEAN_ENV=production, event handlers (buyer notifications) run
asynchronously in this process rather than inside the API request.

Usage:
    python src/server.py
"""

import asyncio

from protean.server.engine import Engine

from marketplace.domain import marketplace


async def run():
    marketplace.init()
    engine = Engine(marketplace)
    await engine.run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
