"""
Driving School Booking Assistant Tests

Running Tests:
    # Run all tests
    pytest tests -v

    # Run one module
    pytest tests/unit/test_dialogue_engine.py -v

Test Coverage:
    - Date, time, number and contact parsing
    - Extraction with the Claude oracle fallback
    - Slot generation and the availability gateway
    - Google Calendar and Sheets backends
    - Session storage, TTL and turn locks
    - Escape rules and intent routing
    - Dialogue engine states and end-to-end conversations
    - HTTP endpoints
"""
