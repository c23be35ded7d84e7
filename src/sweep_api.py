# Wayfourth - Reminder Sweep Service
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Reminder Sweep HTTP Service

Exposes the due-reminder sweep to an external scheduler (cron, Vercel cron,
Cloud Scheduler, ...). Every call to the sweep endpoint must carry the shared
secret:

    curl -H "Authorization: Bearer $CRON_SECRET" \
        https://host/api/cron/process-reminders

Run locally:
    python src/sweep_api.py
"""

import hmac
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from analytics import AnalyticsTracker, analytics_enabled_from_env
from notifications import NotificationConfig, build_channel
from reminders import ReminderStore, ReminderStoreError, ReminderSweeper, SweepConfig

logger = logging.getLogger("wayfourth.sweep_api")

SWEEP_PATH = "/api/cron/process-reminders"


def extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


async def require_cron_secret(request: Request) -> None:
    """Reject callers that do not present the configured CRON_SECRET."""
    secret = request.app.state.config.cron_secret
    if not secret:
        raise HTTPException(status_code=503, detail="CRON_SECRET is not configured")

    token = extract_token(request)
    if token and hmac.compare_digest(token, secret):
        return

    raise HTTPException(status_code=401, detail="Unauthorized")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Build the store, channel, and sweeper unless a sweeper was injected."""
    if app.state.sweeper is not None:
        yield
        return

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required")

    config: SweepConfig = app.state.config
    notification_config = NotificationConfig.from_env()

    logger.info(f"Setup: CRON_SECRET={'set' if config.cron_secret else 'missing'}")
    logger.info(f"Setup: NOTIFICATION_BACKEND={notification_config.backend}")

    db_pool = await asyncpg.create_pool(database_url, min_size=1, max_size=5)
    channel = build_channel(notification_config, config.delivery_timeout_seconds)
    analytics = AnalyticsTracker(db_pool, enabled=analytics_enabled_from_env())
    app.state.sweeper = ReminderSweeper(
        store=ReminderStore(db_pool, batch_limit=config.batch_limit),
        channel=channel,
        config=config,
        analytics=analytics,
    )
    logger.info("Reminder sweep service ready")

    try:
        yield
    finally:
        await analytics.flush()
        await channel.close()
        await db_pool.close()
        app.state.sweeper = None
        logger.info("Reminder sweep service stopped")


def create_app(
    config: Optional[SweepConfig] = None,
    sweeper: Optional[ReminderSweeper] = None,
) -> FastAPI:
    """
    Create the sweep service app.

    Args:
        config: Sweep configuration (defaults to SweepConfig.from_env())
        sweeper: Pre-built sweeper; when None one is built from the environment
            on startup
    """
    app = FastAPI(title="Wayfourth Reminder Sweep", lifespan=_lifespan)
    app.state.config = config or SweepConfig.from_env()
    app.state.sweeper = sweeper

    if not app.state.config.cron_secret:
        logger.warning("CRON_SECRET not set - sweep endpoint will refuse all calls")

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.api_route(
        SWEEP_PATH,
        methods=["GET", "POST"],
        dependencies=[Depends(require_cron_secret)],
    )
    async def process_reminders(request: Request):
        """Run one sweep and report per-reminder outcomes."""
        sweeper: ReminderSweeper = request.app.state.sweeper
        try:
            result = await sweeper.run_sweep()
        except ReminderStoreError as e:
            return JSONResponse({"error": str(e)}, status_code=500)
        except Exception as e:
            logger.error(f"Cron job error: {e}", exc_info=True)
            return JSONResponse({"error": str(e)}, status_code=500)

        return result.to_dict()

    return app


def main() -> None:
    """Run the sweep service with uvicorn."""
    import uvicorn
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = SweepConfig.from_env()
    uvicorn.run(create_app(config=config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
