"""Starter tag catalog loaded by ``init_db.py --seed-tags``.

Colors are display hints for the front-end.
"""

TAG_CATALOG = [
    {"name": "Abnormal", "color": "#d9534f"},
    {"name": "Cardiology", "color": "#c0392b"},
    {"name": "Follow-up", "color": "#f0ad4e"},
    {"name": "Neurology", "color": "#8e44ad"},
    {"name": "Normal", "color": "#5cb85c"},
    {"name": "Oncology", "color": "#2c3e50"},
    {"name": "Pediatrics", "color": "#5bc0de"},
    {"name": "Radiology", "color": "#337ab7"},
    {"name": "Reviewed", "color": "#777777"},
    {"name": "Urgent", "color": "#e74c3c"},
]
