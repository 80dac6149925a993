"""Leave request lifecycle: eligibility, authorization, state machine."""
