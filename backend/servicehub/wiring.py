from servicehub import config
from servicehub.services.availability import AvailabilityManager
from servicehub.services.availability_store import AvailabilityStore
from servicehub.services.booking_conflicts import BookingConflictChecker
from servicehub.services.directory_store import CategoryDirectory, ProviderDirectory
from servicehub.services.matching import MatchingService, MatchScorer
from servicehub.services.provider_locks import ProviderLockRegistry
from servicehub.services.request_lifecycle import ServiceRequestStateMachine
from servicehub.services.request_store import RequestStore

provider_directory = ProviderDirectory(db_path=config.DB_PATH, seed_demo_data=config.SEED_DEMO_DATA)
category_directory = CategoryDirectory(db_path=config.DB_PATH, seed_demo_data=config.SEED_DEMO_DATA)
availability_store = AvailabilityStore(db_path=config.DB_PATH)
request_store = RequestStore(db_path=config.DB_PATH)

# Slot writes and accept checks for one provider share a single mutex.
provider_locks = ProviderLockRegistry()

availability_manager = AvailabilityManager(store=availability_store, locks=provider_locks)
conflict_checker = BookingConflictChecker(
    availability_store=availability_store,
    request_store=request_store,
    default_duration_minutes=config.DEFAULT_DURATION_MINUTES,
)
request_lifecycle = ServiceRequestStateMachine(
    request_store=request_store,
    conflict_checker=conflict_checker,
    provider_directory=provider_directory,
    locks=provider_locks,
    default_duration_minutes=config.DEFAULT_DURATION_MINUTES,
)
matching_service = MatchingService(
    scorer=MatchScorer(telemetry_enabled=config.MATCH_TELEMETRY_ENABLED),
    provider_directory=provider_directory,
    request_store=request_store,
    default_max_results=config.MATCH_MAX_RESULTS,
)
