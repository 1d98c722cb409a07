"""Subscription overview — which bookings are being watched right now."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/subscriptions")
async def list_subscriptions(request: Request):
    relay = request.app.state.relay
    counts = await relay.hub.subscriber_counts()
    topics = [
        {"topic": topic, "subscribers": n}
        for topic, n in sorted(counts.items(), key=lambda item: str(item[0]))
    ]
    return {
        "total_topics": len(topics),
        "total_subscriptions": sum(counts.values()),
        "topics": topics,
    }
