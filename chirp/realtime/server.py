from __future__ import annotations

import asyncio
import contextlib
import json
import logging

import redis.asyncio as aioredis
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from chirp.constants import EVENT_ERROR, EVENT_HEARTBEAT, ERR_BAD_MESSAGE
from chirp.exceptions import ChirpError
from chirp.realtime.distributor import RealtimeDistributor, envelope
from chirp.realtime.session import Session
from chirp.utils import utcnow, format_timestamp

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 60.0


async def writer(websocket: WebSocket, session: Session, heartbeat_seconds: float):
    while True:
        try:
            # nothing queued for a while, keep the connection alive
            message = await asyncio.wait_for(session.queue.get(), timeout=heartbeat_seconds)
        except asyncio.TimeoutError:
            message = envelope(EVENT_HEARTBEAT, {'at': format_timestamp(utcnow())})
        await websocket.send_text(json.dumps(message, default=str))


async def reader(websocket: WebSocket, session: Session, distributor: RealtimeDistributor):
    while True:
        try:
            incoming = await websocket.receive_json()
        except WebSocketDisconnect:
            logger.debug(f"Session {session.handle} closed by client")
            return
        except (json.JSONDecodeError, ValueError):
            session.deliver(envelope(EVENT_ERROR, {'code': ERR_BAD_MESSAGE, 'message': 'Messages must be JSON'}))
            continue
        if not isinstance(incoming, dict) or incoming.get('type') != 'authenticate':
            session.deliver(envelope(EVENT_ERROR, {'code': ERR_BAD_MESSAGE, 'message': 'Unknown message type'}))
            continue
        try:
            distributor.authenticate(session.handle, incoming.get('user_id'), incoming.get('display_name'))
        except ChirpError as e:
            session.deliver(envelope(EVENT_ERROR, {'code': e.code, 'message': e.message}))


async def serve_session(websocket: WebSocket, distributor: RealtimeDistributor, heartbeat_seconds: float):
    """Run one accepted connection until either direction ends, then drop its session.

    Reading and writing are sibling tasks. When the client goes away the reader ends, when a send
    fails the writer ends, and either way the other task is cancelled and both are collected.
    """
    session = distributor.connect()
    tasks = [asyncio.create_task(reader(websocket, session, distributor)),
             asyncio.create_task(writer(websocket, session, heartbeat_seconds))]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        distributor.disconnect(session.handle)
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, WebSocketDisconnect):
                logger.info(f"Session {session.handle} ended: {result!r}")


def create_realtime_app(config, distributor: RealtimeDistributor | None = None, redis_client=None,
                        heartbeat_seconds: float = HEARTBEAT_SECONDS) -> FastAPI:
    """The WebSocket front of the distributor.

    When a redis client is given, events published by the web process on REALTIME_CHANNEL are relayed
    into the distributor. Without one the distributor is only fed in-process.
    """
    app = FastAPI(title='Chirp realtime')
    app.state.distributor = distributor or RealtimeDistributor()
    app.state.redis = redis_client
    channel = config['REALTIME_CHANNEL']

    allowed_origins = config.get('ALLOWED_ORIGINS') or ['*']
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    async def redis_listener():
        while True:
            try:
                logger.info(f"Starting Redis listener on {channel}")
                pubsub = redis_client.pubsub()
                await pubsub.subscribe(channel)

                async for message in pubsub.listen():
                    if message["type"] != "message":
                        continue
                    try:
                        data = json.loads(message["data"])
                        app.state.distributor.broadcast(data["event"], data.get("data"))
                    except (json.JSONDecodeError, KeyError, TypeError) as e:
                        logger.error(f"Ignoring malformed realtime message on {channel}: {e}")

            except aioredis.ConnectionError as e:
                logger.error(f"Redis connection error: {e}")
                await asyncio.sleep(5)  # Wait before reconnecting
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Unexpected error in Redis listener: {e}", exc_info=True)
                await asyncio.sleep(5)

    @app.on_event("startup")
    async def startup_event():
        app.state.distributor.start(asyncio.get_running_loop())
        app.state.listener = asyncio.create_task(redis_listener()) if redis_client is not None else None

    @app.on_event("shutdown")
    async def shutdown_event():
        listener = getattr(app.state, 'listener', None)
        if listener:
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener
        app.state.distributor.stop()
        if redis_client is not None:
            await redis_client.aclose()

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        await serve_session(websocket, app.state.distributor, heartbeat_seconds)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring/load balancers"""
        distributor = app.state.distributor
        result = {
            "status": "healthy",
            "active_connections": len(distributor.registry),
            "authenticated": distributor.member_count(),
        }
        if redis_client is None:
            return result
        try:
            await redis_client.ping()
            result["redis"] = "connected"
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            result.update({"status": "unhealthy", "redis": "disconnected", "error": str(e)})
        return result

    return app
