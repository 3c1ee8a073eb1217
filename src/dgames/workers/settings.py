"""arq worker settings module.

Import path for arq CLI: arq dgames.workers.settings.WorkerSettings
"""

from __future__ import annotations

from dgames.challenges.worker import ChallengeWorkerSettings as WorkerSettings

__all__ = ["WorkerSettings"]
