"""AI opponents and their targeting machinery."""

from .player import AiPlayer
from .targeting import SkillLevel, Targeter, TargetingMemory, TargetingStrategy

__all__ = ["AiPlayer", "SkillLevel", "Targeter", "TargetingMemory", "TargetingStrategy"]
