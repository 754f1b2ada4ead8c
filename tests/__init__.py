"""
tests/
------
CampusGuide - Campus Directory Assistant - Test Package
-------------------------------------------------------
Test suites for the directory assistant.

Test Modules:
    - test_deadline.py: DeadlineTracker budget math
    - test_schemas.py: Record/Query models and BudgetPolicy validation
    - test_directory_store.py: SQLite store client, fail-closed behaviour
    - test_llm_backend.py: Backend timeout, refusal and payload handling
    - test_resolver.py: Budget-bounded record resolution
    - test_correction.py: Marker extraction and the Correction Advisor
    - test_response_node.py: Tier selection, prompts, TEMPLATE routing, degradation
    - test_workflow.py: End-to-end orchestrator branches
    - test_fallback.py: Out-of-scope refusal
    - test_main.py: Webhook endpoints

Project: CampusGuide - Campus Directory Assistant
"""
