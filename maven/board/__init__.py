# Task board: status buckets, drag-and-drop status changes, persistence
#
# Components:
#   schema.py        - Data model (Task, TaskStatus, DragGesture, StatusIntent)
#   buckets.py       - Column definitions and status bucketing
#   notifications.py - Notification sink (success/error messages)
#   store.py         - TaskStore interface and SQLite backend
#   rest_store.py    - Hosted REST database backend
#   cache.py         - Caller-side task snapshot cache
#   controller.py    - Drag gesture handling and the status mutation protocol
