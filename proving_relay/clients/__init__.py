from .coordinator_client import CoordinatorClient as CoordinatorClient
from .http_session import HttpSession as HttpSession
from .proving_service_client import (
    ProvingServiceClient as ProvingServiceClient,
    reformat_verification_key as reformat_verification_key,
    reprocess_input as reprocess_input,
)
