"""Meeting scheduling domain -- schemas, storage codec, query planner, and store.

Provides the layer beneath the HTTP handlers: Pydantic models for meetings
and participants, translation to and from MongoDB documents, pure predicate
planning for list and RSVP-conflict queries, and the deadline-bounded
MeetingStore.
"""
