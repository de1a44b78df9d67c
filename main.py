# main.py
import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from alert_state import NullAlertStateTracker, SqlAlertStateTracker
from auth import auth_router, user_from_token
from config import (
    ALERT_DEDUP_ENABLED,
    LOG_LEVEL,
    PUSH_TIMEOUT_SECONDS,
    SCHEDULER_ENABLED,
)
from database import SessionLocal, get_db, init_db
from dispatcher import AlertDispatcher, EmailService, NotificationService
from live import NotificationHub, topic_for
from router import router
from scheduler import BudgetAlertScheduler
from snapshot import SqlBudgetReader

logger = logging.getLogger(__name__)

hub = NotificationHub()


def build_scheduler(session_factory=SessionLocal, notification_hub=hub, mailer=None):
    tracker = (
        SqlAlertStateTracker(session_factory)
        if ALERT_DEDUP_ENABLED
        else NullAlertStateTracker()
    )
    dispatcher = AlertDispatcher(
        NotificationService(session_factory, notification_hub),
        mailer or EmailService(),
    )
    return BudgetAlertScheduler(SqlBudgetReader(session_factory), dispatcher, tracker)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    init_db()
    alert_scheduler = build_scheduler()
    app.state.alert_scheduler = alert_scheduler
    if SCHEDULER_ENABLED:
        alert_scheduler.start()
    yield
    alert_scheduler.stop()


app = FastAPI(title="Personal Budget Tracker API", lifespan=lifespan)

app.include_router(router, prefix="/api", tags=["budgets"])
app.include_router(auth_router, prefix="/auth", tags=["authentication"])


@app.get("/")
def home():
    return {"message": "Welcome to Personal Budget Tracker API"}


@app.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket, token: str, db: Session = Depends(get_db)
):
    user = user_from_token(db, token)
    db.close()
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    topic = topic_for(user.id)

    def forward(payload: dict) -> None:
        # the sweep publishes from the scheduler thread
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.create_task(websocket.send_json(payload))
            return
        future = asyncio.run_coroutine_threadsafe(websocket.send_json(payload), loop)
        try:
            future.result(timeout=PUSH_TIMEOUT_SECONDS)
        except Exception:
            future.cancel()
            raise

    hub.subscribe(topic, forward)
    try:
        await websocket.send_json({"type": "subscribed", "topic": topic})
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Live subscriber on %s disconnected", topic)
    finally:
        hub.unsubscribe(topic, forward)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
