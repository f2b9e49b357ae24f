"""
HTTP server for the skill.

Exposes the request envelope endpoint the platform (or a local test client)
posts to, plus a health check. Can be run standalone or mounted elsewhere.
"""
import json
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from logging_setup import get_logger, Component

from .config import SkillConfig, load_local_env
from .skill import Skill, build_skill

logger = get_logger(Component.HTTP_SERVER)


def create_app(skill: Optional[Skill] = None) -> FastAPI:
    """Build the FastAPI app around a Skill (built from the environment if not given)."""
    if skill is None:
        load_local_env()
        skill = build_skill(SkillConfig.from_env())

    app = FastAPI(title="Voice Answer Skill")
    app.state.skill = skill

    @app.post("/lambda")
    async def handle_envelope(request: Request):
        """
        Request envelope endpoint.
        Always answers 200 with a speakable response envelope.
        """
        body = await request.body()
        logger.debug("Envelope received", body_size=len(body))

        event: Any
        try:
            event = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Failed to parse envelope body as JSON", body_size=len(body))
            event = {}

        response = await app.state.skill.handle(event)
        return JSONResponse(content=response)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "component": "voice_skill"}

    return app


if __name__ == "__main__":
    import uvicorn
    config = SkillConfig.from_env()
    uvicorn.run(create_app(), host=config.host, port=config.port)
