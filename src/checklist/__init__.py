"""
Checklist backend package.

Task list service: filtered/sorted task views and the reminders that
accompany tasks with a due time. Build the ASGI app with
`checklist.main.create_app`, or serve `checklist.asgi:app`.
"""

__version__ = "0.1.0"
