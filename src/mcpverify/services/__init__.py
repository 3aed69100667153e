"""Services layer: challenge lifecycle orchestration."""

from mcpverify.services.lifecycle import ChallengeLifecycleController

__all__ = ["ChallengeLifecycleController"]
