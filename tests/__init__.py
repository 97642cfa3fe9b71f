"""
Test Package Initialization

This package contains all unit and integration tests for the
Interview Copilot project.

Test Structure:
- test_config.py: Configuration tests
- test_classifier.py: Intent classifier tables
- test_formatting.py: Reply cleaning and request/response shapes
- test_session.py: Buffer, dispatch gate and bounded histories
- test_events.py: Event bus
- test_aggregator.py: Fragment aggregation and mode switching
- test_conversation.py: Context building and history commits
- test_scheduler.py: Tick outcomes, gating and end-to-end flow
- test_gateway.py: Gemini client error mapping
- test_stt_stream.py: Transcript message parsing and replay
- test_controller.py: Session lifecycle and manual asks
- test_api.py: HTTP API
- test_cli.py: CLI commands and console sink

Run tests with:
    pytest tests/ -v
    pytest tests/ -v --cov=copilot
"""
