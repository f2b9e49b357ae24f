"""
AWS Lambda entry point.

The skill is built on the first invocation of a container and reused by
later ones, so string tables are parsed and the API key is resolved at most
once per container.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping, Optional

from logging_setup import setup_logging

from .config import SkillConfig
from .skill import Skill, build_skill


class LambdaEntryPoint:
    """Holds the container's Skill between invocations."""

    def __init__(self, config_loader=SkillConfig.from_env):
        self._config_loader = config_loader
        self._skill: Optional[Skill] = None

    @property
    def skill(self) -> Skill:
        if self._skill is None:
            config = self._config_loader()
            setup_logging(level=config.log_level, use_json=config.log_json)
            self._skill = build_skill(config)
        return self._skill

    def __call__(self, event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
        return asyncio.run(self.skill.handle(event))


handler = LambdaEntryPoint()
