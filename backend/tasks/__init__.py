"""
RDC Portal Celery Tasks

Task Modules:
    - reminders: daily reminder emails (meeting, PPT, EMR interest, evaluation)
    - maintenance: nightly purge of read notifications and old activity log rows

Usage:
    from backend.tasks import reminders

    reminders.send_meeting_reminders.delay()
"""
