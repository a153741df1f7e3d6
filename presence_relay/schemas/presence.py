from pydantic import BaseModel


class PresenceSnapshot(BaseModel):
    """
    Point-in-time view of presence state.

    Attributes:
        online: Registered user ids in registration order.
        activities: Activity label per registered user.
    """

    online: list[str]
    activities: dict[str, str]
