# events/__init__.py
"""
Events app - domain events and post-commit reactions for staffdesk.

This app provides:
- DomainEvent: Immutable event records
- ReactionRun: Per-reaction outcome of each event
- emit / dispatch_event: Event recording and isolated reaction dispatch
- Event type definitions with payload schemas
- Reconciliation of events whose reactions did not all succeed

Usage:
    from events.dispatcher import emit
    from events.types import EventTypes, CompanyDeletedData

    emit(
        EventTypes.COMPANY_DELETED,
        CompanyDeletedData(company_public_id=str(company.public_id), name=company.name),
        aggregate_type="Company",
        aggregate_id=company.public_id,
        user=actor.user,
    )
"""
