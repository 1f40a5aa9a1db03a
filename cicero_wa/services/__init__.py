from cicero_wa.services.event_aggregator import EventAggregator
from cicero_wa.services.processing_lock import ProcessingLock
from cicero_wa.services.state_machine import (
    InvalidTransitionError,
    UserMenuStep,
    can_transition,
    set_user_menu_step,
)
from cicero_wa.services.timeout_scheduler import TimeoutScheduler
from cicero_wa.services.user_menu_handlers import (
    USER_MENU_HANDLERS,
    close_session,
)
