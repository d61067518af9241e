"""Active-surface election

Several browser surfaces may point at the same store. Only the surface whose
id is recorded under activeWorkerId runs mutating steps.
"""

import uuid

ACTIVE_WORKER_KEY = "activeWorkerId"


def new_surface_id():
    return f"surface-{uuid.uuid4().hex[:12]}"


class StoreArbiter:
    def __init__(self, store, surface_id=None):
        self.store = store
        self.surface_id = surface_id or new_surface_id()

    def claim_active_surface(self):
        """Record this surface as the active one. Returns True once stored."""
        self.store.set({ACTIVE_WORKER_KEY: self.surface_id})
        return self.is_this_surface_active()

    def is_this_surface_active(self):
        # Always re-read: another surface may have claimed since the last tick
        stored = self.store.get([ACTIVE_WORKER_KEY]).get(ACTIVE_WORKER_KEY)
        return stored is not None and stored == self.surface_id
