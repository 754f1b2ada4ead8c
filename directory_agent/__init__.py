"""
__init__.py
-----------
CampusGuide - Campus Directory Assistant - LangGraph directory agent package
-----------------------------------------------------------------------------
Time-budgeted answer pipeline for teacher lookups:
Resolver → (Correction Advisor → Resolver) → Tiered Response Generator,
all under one request deadline.

Project: CampusGuide - Campus Directory Assistant
"""
