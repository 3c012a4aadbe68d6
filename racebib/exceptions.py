class RegistrationNotFound(Exception):
    def __init__(self, registration_id):
        super().__init__(f"Registration not found: {registration_id}")
        self.registration_id = registration_id

class CategoryNotFound(Exception):
    def __init__(self, event_id, category_id):
        super().__init__(f"Category {category_id} not found for event {event_id}")
        self.event_id = event_id
        self.category_id = category_id

class WriteConflict(Exception):
    """The registration left ``pending`` between our read and our write."""

    def __init__(self, registration_id):
        super().__init__(f"Registration {registration_id} is no longer pending")
        self.registration_id = registration_id

class UpstreamUnavailable(Exception):
    pass

class InvalidWebhookPayload(Exception):
    pass
