from webhooks.models import (
    ALL_EVENT_KINDS,
    DeliveryFailure,
    EventKind,
    WebhookConfig,
    WebhookEvent
)
from webhooks.dispatcher import WebhookDispatcher
