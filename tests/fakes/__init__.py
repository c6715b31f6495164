from .fake_coordinator import FakeCoordinator as FakeCoordinator
from .fake_proving_service import (
    API_KEY as API_KEY,
    FakeProvingService as FakeProvingService,
    urlsafe_unpadded as urlsafe_unpadded,
)
from .documents import relay_document as relay_document
