"""The identity on whose behalf a write happens."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ActorContext:
    """Who triggered the work, stamped onto created rows as ``created_by``."""

    actor_id: str
    label: str = ""

    def __str__(self) -> str:
        return self.label or self.actor_id


SYSTEM_ACTOR = ActorContext(actor_id="system", label="system")
SCHEDULER_ACTOR = ActorContext(actor_id="scheduler", label="cron")
WEBHOOK_ACTOR = ActorContext(actor_id="webhook", label="webhook")
