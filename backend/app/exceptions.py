"""Domain exceptions shared by services and routers."""


class ConflictError(Exception):
    """Raised when a request collides with existing state; retrying later may succeed."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class TrainingPlanConflictError(ConflictError):
    """Raised when a training plan already exists for the requested date."""

    def __init__(self, plan_date: str):
        self.plan_date = plan_date
        super().__init__(f"Training plan for {plan_date} already exists.")


class SyncInProgressError(ConflictError):
    """Raised when a sync is requested while another one is running."""

    def __init__(self):
        super().__init__("Sync already in progress.")


class NotConfiguredError(Exception):
    """Raised when an optional collaborator (e.g. the AI generator) is not set up."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)
