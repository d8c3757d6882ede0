"""Calendar Tools: aggregate, bucket and render events

Components:
    aggregator.py: Concurrent fetch, day bucketing, event insertion
    durations.py: Today / this week / this month / next week ranges
    template.py: Jinja2 prompt rendering and the built-in template
"""
