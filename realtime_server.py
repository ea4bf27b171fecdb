import logging
import os

import redis.asyncio as redis
from dotenv import load_dotenv

from config import Config
from chirp.realtime.server import create_realtime_app

# Load .env file
load_dotenv()

DEBUG = os.getenv("FLASK_DEBUG", "false").lower() in ("true", "1", "yes")

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

config = {key: getattr(Config, key) for key in dir(Config) if key.isupper()}
redis_client = redis.from_url(config["CACHE_REDIS_URL"], decode_responses=True) \
    if config["REALTIME_PUBLISHER"] == "redis" else None

app = create_realtime_app(config, redis_client=redis_client)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
