class ActivityTracker:
    """
    Last-write-wins activity label per user.

    No history is kept. Like ConnectionRegistry, it relies on its owner
    for serialization.
    """

    def __init__(self) -> None:
        self._activities: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._activities)

    def set(self, user_id: str, label: str) -> bool:
        """
        Insert or replace the label of user_id.

        Returns:
            True if the stored label changed.
        """
        changed = self._activities.get(user_id) != label
        self._activities[user_id] = label
        return changed

    def get(self, user_id: str) -> str | None:
        return self._activities.get(user_id)

    def remove(self, user_id: str) -> None:
        self._activities.pop(user_id, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of the current user -> label mapping."""
        return dict(self._activities)
