"""
Entry point for running the skill's HTTP server locally.

Usage:
    python -m voice_skill

Listens on http://$HOST:$PORT (default 0.0.0.0:3000); POST envelopes to /lambda.
"""
import uvicorn

from logging_setup import setup_logging
from voice_skill.config import SkillConfig, load_local_env
from voice_skill.server import create_app

if __name__ == "__main__":
    load_local_env()
    config = SkillConfig.from_env()

    setup_logging(level=config.log_level, use_json=config.log_json)

    uvicorn.run(
        create_app(),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
